"""UDP game client: connection handshake, state tracking and outbound messages."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..common.protocol import (
    ORIGIN,
    MalformedPacketError,
    MessageType,
    Packet,
    PayloadDecodeError,
    Position,
    WorldState,
    decode_packet,
    deserialize_chat,
    deserialize_identity,
    deserialize_player_update,
    deserialize_position,
    deserialize_world_state,
    encode_packet,
    format_identity,
    serialize_chat,
    serialize_position,
)

_logger = logging.getLogger(__name__)

RECEIVED_QUEUE_SIZE = 256


class ClientProtocol(asyncio.DatagramProtocol):
    def __init__(self, client: GameClient) -> None:
        self._client = client

    def datagram_received(self, data: bytes, addr: tuple[Any, ...]) -> None:
        try:
            packet = decode_packet(data)
        except MalformedPacketError as e:
            _logger.debug(f"Dropping datagram from {addr}: {e}")
            return
        self._client._handle_server_message(packet)

    def error_received(self, exc: Exception) -> None:
        _logger.warning(f"Transport error: {exc}")


class GameClient:
    def __init__(self, host: str, port: int) -> None:
        self.host = host
        self.port = port
        self.position: Position = ORIGIN
        self.board_size: tuple[int, int] = (0, 0)
        # Other players by identity, as last reported by the server
        self.players: dict[str, Position] = {}
        self.chat_log: list[str] = []
        # Decoded packets in arrival order; the oldest is dropped when full
        self.received: asyncio.Queue[Packet] = asyncio.Queue(RECEIVED_QUEUE_SIZE)
        self.transport: asyncio.DatagramTransport | None = None
        self.local_identity: str = ""
        self._seq = 0
        self._init_future: asyncio.Future[WorldState] | None = None

    def _next_seq(self) -> int:
        self._seq = (self._seq + 1) & 0xFFFFFFFF
        return self._seq

    def _send_message(self, msg_type: MessageType, payload: bytes = b"") -> int:
        """Send a packet to the server. Returns its sequence number."""
        if self.transport is None:
            raise ConnectionError("Client is not connected")
        seq = self._next_seq()
        self.transport.sendto(encode_packet(Packet(msg_type, seq, payload)))
        return seq

    async def connect(self, timeout: float = 5.0) -> WorldState:
        """Open the socket, send CONNECTION_INIT and wait for the state snapshot."""
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: ClientProtocol(self),
            remote_addr=(self.host, self.port),
        )
        self.transport = transport
        self.local_identity = format_identity(transport.get_extra_info("sockname"))
        self._init_future = loop.create_future()
        try:
            self._send_message(MessageType.CONNECTION_INIT)
            return await asyncio.wait_for(self._init_future, timeout)
        except BaseException:
            self.close()
            raise
        finally:
            self._init_future = None

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()
            self.transport = None

    def send_position(self, position: Position) -> int:
        return self._send_message(MessageType.POSITION_UPDATE, serialize_position(position))

    def send_chat(self, text: str) -> int:
        return self._send_message(MessageType.CHAT_MESSAGE, serialize_chat(text))

    def send_heartbeat(self) -> int:
        return self._send_message(MessageType.HEARTBEAT)

    async def wait_for(
        self, msg_type: MessageType, timeout: float = 5.0
    ) -> Packet:
        """Pop received packets until one of msg_type arrives."""

        async def _next() -> Packet:
            while True:
                packet = await self.received.get()
                if packet.message_type == msg_type:
                    return packet

        return await asyncio.wait_for(_next(), timeout)

    def _handle_server_message(self, packet: Packet) -> None:
        try:
            self._apply(packet)
        except PayloadDecodeError as e:
            _logger.debug(f"Bad {packet.message_type.name} payload: {e}")
            return
        if self.received.full():
            self.received.get_nowait()
        self.received.put_nowait(packet)

    def _apply(self, packet: Packet) -> None:
        msg_type = packet.message_type
        if msg_type == MessageType.CONNECTION_INIT:
            state = deserialize_world_state(packet.payload)
            self.board_size = state.board_size
            self.players = {
                identity: position
                for identity, position in state.players.items()
                if identity != self.local_identity
            }
            if self._init_future is not None and not self._init_future.done():
                self._init_future.set_result(state)

        elif msg_type == MessageType.CONFIRM_PLAYER_MOVEMENT:
            self.position = deserialize_position(packet.payload)

        elif msg_type == MessageType.POSITION_UPDATE:
            update = deserialize_player_update(packet.payload)
            self.players[update.player] = update.position

        elif msg_type == MessageType.PLAYER_JOIN:
            identity = deserialize_identity(packet.payload)
            self.players.setdefault(identity, ORIGIN)
            _logger.info(f"Player joined: {identity}")

        elif msg_type == MessageType.PLAYER_LEFT:
            identity = deserialize_identity(packet.payload)
            self.players.pop(identity, None)
            _logger.info(f"Player left: {identity}")

        elif msg_type == MessageType.CHAT_MESSAGE:
            self.chat_log.append(deserialize_chat(packet.payload))

        elif msg_type == MessageType.HEARTBEAT:
            # Answering keeps the session from being reaped
            if self.transport is not None:
                self.send_heartbeat()
