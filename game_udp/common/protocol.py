"""Binary packet framing and payload schemas shared by client and server.

Every datagram carries exactly one packet:

    +-----+---------+-----------------+-----------------+
    | tag | version | sequence number | payload ...     |
    | u8  | u8      | u32 big-endian  | rest of datagram|
    +-----+---------+-----------------+-----------------+

The codec only handles the header. Payloads are decoded per message type by
the ``deserialize_*`` functions below.
"""

from __future__ import annotations

import json
import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from .constants import HEADER_SIZE, PROTOCOL_VERSION

_HEADER = struct.Struct(">BBI")


class MessageType(IntEnum):
    POSITION_UPDATE = 0x01
    CHAT_MESSAGE = 0x02
    HEARTBEAT = 0x03
    CONNECTION_INIT = 0x04
    PLAYER_JOIN = 0x05
    CONFIRM_PLAYER_MOVEMENT = 0x06
    PLAYER_LEFT = 0x07


# Types only the server may send; ignored when received by the server.
SERVER_ONLY_TYPES = frozenset(
    {
        MessageType.PLAYER_JOIN,
        MessageType.CONFIRM_PLAYER_MOVEMENT,
        MessageType.PLAYER_LEFT,
    }
)


class ProtocolError(ValueError):
    """Base class for wire-level decode failures."""


class MalformedPacketError(ProtocolError):
    """Datagram is too short for a header or carries an unknown tag."""


class PayloadDecodeError(ProtocolError):
    """Payload bytes do not match the schema of their message type."""


@dataclass(frozen=True)
class Packet:
    message_type: MessageType
    sequence_number: int
    payload: bytes = b""
    version: int = PROTOCOL_VERSION


@dataclass(frozen=True)
class Position:
    x: int = 0
    y: int = 0
    z: int = 0


ORIGIN = Position(0, 0, 0)


@dataclass(frozen=True)
class PlayerUpdate:
    """Another player's accepted move, as broadcast by the server."""

    player: str
    position: Position


@dataclass
class WorldState:
    """Full state snapshot sent in reply to CONNECTION_INIT."""

    players: dict[str, Position] = field(default_factory=dict)
    board_size: tuple[int, int] = (0, 0)


# --- Packet framing ---


def encode_packet(packet: Packet) -> bytes:
    """Serialize a packet header followed by its raw payload."""
    try:
        header = _HEADER.pack(
            int(packet.message_type), packet.version, packet.sequence_number
        )
    except struct.error as e:
        raise ValueError(f"Cannot encode packet {packet!r}: {e}") from e
    return header + packet.payload


def decode_packet(data: bytes) -> Packet:
    """Parse a datagram into a Packet.

    Raises MalformedPacketError if the datagram is shorter than the header or
    the tag is not a known message type. The payload is not inspected.
    """
    if len(data) < HEADER_SIZE:
        raise MalformedPacketError(f"Datagram too short: {len(data)} bytes")
    tag, version, seq = _HEADER.unpack_from(data)
    try:
        msg_type = MessageType(tag)
    except ValueError:
        raise MalformedPacketError(f"Unknown message type: 0x{tag:02x}") from None
    return Packet(msg_type, seq, bytes(data[HEADER_SIZE:]), version)


# --- Transport identities ---


def format_identity(address: tuple[Any, ...]) -> str:
    """Format a socket address as ``host:port`` (``[host]:port`` for IPv6)."""
    host, port = address[0], address[1]
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_identity(identity: str) -> tuple[str, int]:
    """Inverse of format_identity. Raises ValueError for malformed input."""
    host, sep, port = identity.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Not a host:port identity: {identity!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


# --- Payload helpers ---


def _dumps(obj: object) -> bytes:
    return json.dumps(obj, separators=(",", ":")).encode("utf-8")


def _loads(data: bytes) -> Any:
    try:
        return json.loads(data.decode("utf-8"))
    # Also covers over-long integer literals and deeply nested arrays
    except (ValueError, RecursionError) as e:
        raise PayloadDecodeError(f"Invalid JSON payload: {e}") from e


def _require(obj: Any, key: str, kind: type) -> Any:
    if not isinstance(obj, dict):
        raise PayloadDecodeError(f"Expected object, got {type(obj).__name__}")
    if key not in obj:
        raise PayloadDecodeError(f"Missing field: {key}")
    value = obj[key]
    # bool is a subclass of int, but true/false are not coordinates
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise PayloadDecodeError(f"Field {key} must be {kind.__name__}")
    return value


def _position_to_dict(position: Position) -> dict[str, int]:
    return {"x": position.x, "y": position.y, "z": position.z}


def _position_from_obj(obj: Any) -> Position:
    return Position(_require(obj, "x", int), _require(obj, "y", int), _require(obj, "z", int))


# --- Position (POSITION_UPDATE from client, CONFIRM_PLAYER_MOVEMENT) ---


def serialize_position(position: Position) -> bytes:
    return _dumps(_position_to_dict(position))


def deserialize_position(data: bytes) -> Position:
    return _position_from_obj(_loads(data))


# --- Chat (CHAT_MESSAGE) ---


def serialize_chat(text: str) -> bytes:
    return _dumps({"text": text})


def deserialize_chat(data: bytes) -> str:
    text: str = _require(_loads(data), "text", str)
    return text


# --- Player update (POSITION_UPDATE broadcast from server) ---


def serialize_player_update(update: PlayerUpdate) -> bytes:
    return _dumps(
        {"player": update.player, "position": _position_to_dict(update.position)}
    )


def deserialize_player_update(data: bytes) -> PlayerUpdate:
    obj = _loads(data)
    return PlayerUpdate(
        _require(obj, "player", str), _position_from_obj(_require(obj, "position", dict))
    )


# --- World state (CONNECTION_INIT reply) ---


def serialize_world_state(state: WorldState) -> bytes:
    return _dumps(
        {
            "players": {
                identity: {"position": _position_to_dict(position)}
                for identity, position in state.players.items()
            },
            "board_size": list(state.board_size),
        }
    )


def deserialize_world_state(data: bytes) -> WorldState:
    obj = _loads(data)
    players_obj = _require(obj, "players", dict)
    board_size = _require(obj, "board_size", list)
    if len(board_size) != 2 or not all(
        isinstance(v, int) and not isinstance(v, bool) for v in board_size
    ):
        raise PayloadDecodeError("board_size must be [width, height]")
    players = {
        str(identity): _position_from_obj(_require(entry, "position", dict))
        for identity, entry in players_obj.items()
    }
    return WorldState(players, (board_size[0], board_size[1]))


# --- Identity payloads (PLAYER_JOIN, PLAYER_LEFT) ---


def serialize_identity(identity: str) -> bytes:
    return identity.encode("utf-8")


def deserialize_identity(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise PayloadDecodeError(f"Invalid identity payload: {e}") from e
