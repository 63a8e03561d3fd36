"""Authoritative UDP game server: receive loop and message dispatch."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

from ..common.constants import (
    PING_INTERVAL,
    REAP_INTERVAL,
    SESSION_TIMEOUT,
    WELCOME_TEXT,
)
from ..common.protocol import (
    ORIGIN,
    SERVER_ONLY_TYPES,
    MalformedPacketError,
    MessageType,
    Packet,
    PayloadDecodeError,
    PlayerUpdate,
    decode_packet,
    deserialize_chat,
    deserialize_position,
    format_identity,
    serialize_chat,
    serialize_identity,
    serialize_player_update,
    serialize_position,
    serialize_world_state,
)
from .broadcast import Broadcaster
from .heartbeat import HeartbeatMonitor
from .registry import Registry, SessionNotFoundError, Snapshot
from .world import World

logger = logging.getLogger(__name__)

Handler = Callable[[Packet, str], Awaitable[None]]


class Renderer(Protocol):
    def render(self, snapshot: Snapshot) -> None: ...


class ServerProtocol(asyncio.DatagramProtocol):
    """Queues inbound datagrams for the single receive loop."""

    def __init__(self, queue: asyncio.Queue[tuple[bytes, str]]) -> None:
        self._queue = queue

    def datagram_received(self, data: bytes, addr: tuple[Any, ...]) -> None:
        self._queue.put_nowait((data, format_identity(addr)))

    def error_received(self, exc: Exception) -> None:
        # ICMP errors for earlier sends (e.g. port unreachable) land here
        logger.warning(f"Transport error: {exc}")


class GameServer:
    def __init__(
        self,
        host: str,
        port: int,
        world: World,
        registry: Registry | None = None,
        broadcaster: Broadcaster | None = None,
        renderer: Renderer | None = None,
        ping_interval: float = PING_INTERVAL,
        reap_interval: float = REAP_INTERVAL,
        session_timeout: float = SESSION_TIMEOUT,
    ) -> None:
        self.host = host
        self.port = port
        self.world = world
        self.registry = registry if registry is not None else Registry(world)
        self.broadcaster = (
            broadcaster if broadcaster is not None else Broadcaster(self._sendto)
        )
        self.renderer = renderer
        self.heartbeat = HeartbeatMonitor(
            self.registry,
            self.broadcaster,
            ping_interval=ping_interval,
            reap_interval=reap_interval,
            session_timeout=session_timeout,
            on_change=self._notify_change,
        )
        self.transport: asyncio.DatagramTransport | None = None
        self._queue: asyncio.Queue[tuple[bytes, str]] = asyncio.Queue()
        self._handlers: dict[MessageType, Handler] = {
            MessageType.CONNECTION_INIT: self._handle_connection_init,
            MessageType.POSITION_UPDATE: self._handle_position_update,
            MessageType.CHAT_MESSAGE: self._handle_chat_message,
            MessageType.HEARTBEAT: self._handle_heartbeat,
        }
        for msg_type in SERVER_ONLY_TYPES:
            self._handlers[msg_type] = self._handle_server_only

    def _sendto(self, data: bytes, address: tuple[str, int]) -> None:
        if self.transport is None:
            raise OSError("Server socket is not bound")
        self.transport.sendto(data, address)

    async def bind(self) -> tuple[str, int]:
        """Open the UDP socket. Returns the bound address."""
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: ServerProtocol(self._queue),
            local_addr=(self.host, self.port),
        )
        self.transport = transport
        sockname = transport.get_extra_info("sockname")
        return sockname[0], sockname[1]

    def close(self) -> None:
        if self.transport is not None:
            self.transport.close()
            self.transport = None

    async def start(self) -> None:
        host, port = await self.bind()
        print(f"Server listening on {host}:{port}")
        print(f"World size: {self.world.width}x{self.world.height}")
        try:
            await self.serve_forever()
        finally:
            self.close()

    async def serve_forever(self) -> None:
        """Run the receive loop plus the ping and reap tasks until cancelled."""
        ping_task = asyncio.create_task(self.heartbeat.run_ping_loop())
        reap_task = asyncio.create_task(self.heartbeat.run_reap_loop())
        try:
            await self._receive_loop()
        finally:
            for task in (ping_task, reap_task):
                task.cancel()
            for task in (ping_task, reap_task):
                try:
                    await task
                except asyncio.CancelledError:
                    pass

    async def _receive_loop(self) -> None:
        while True:
            data, identity = await self._queue.get()
            try:
                await self.handle_datagram(data, identity)
            except Exception as e:
                logger.error(
                    f"Unexpected error handling datagram from {identity}: "
                    f"{type(e).__name__}: {e}",
                    exc_info=True,
                )

    async def handle_datagram(self, data: bytes, identity: str) -> None:
        """Decode one datagram and route it to its handler."""
        try:
            packet = decode_packet(data)
        except MalformedPacketError as e:
            logger.debug(f"Dropping datagram from {identity}: {e}")
            return
        handler = self._handlers[packet.message_type]
        try:
            await handler(packet, identity)
        except PayloadDecodeError as e:
            logger.debug(
                f"Dropping {packet.message_type.name} from {identity}: {e}"
            )

    def _notify_change(self, snapshot: Snapshot) -> None:
        """Schedule the renderer off the send path."""
        if self.renderer is None:
            return
        asyncio.get_running_loop().call_soon(self._render_safely, snapshot)

    def _render_safely(self, snapshot: Snapshot) -> None:
        if self.renderer is None:
            return
        try:
            self.renderer.render(snapshot)
        except Exception as e:
            logger.error(f"Renderer failed: {type(e).__name__}: {e}", exc_info=True)

    async def _handle_connection_init(self, packet: Packet, identity: str) -> None:
        async with self.registry.lock:
            is_new = identity not in self.registry
            session = self.registry.upsert(identity, ORIGIN)
            if not is_new:
                self.registry.touch_heartbeat(identity)
            snapshot = self.registry.snapshot()

        seq = packet.sequence_number
        self.broadcaster.send_to(
            identity,
            Packet(
                MessageType.CONNECTION_INIT,
                seq,
                serialize_world_state(snapshot.to_world_state()),
            ),
        )
        self.broadcaster.broadcast(
            Packet(MessageType.PLAYER_JOIN, seq, serialize_identity(identity)),
            snapshot.sessions.keys(),
            exclude=identity,
        )
        self.broadcaster.send_to(
            identity, Packet(MessageType.CHAT_MESSAGE, seq, serialize_chat(WELCOME_TEXT))
        )

        if is_new:
            logger.info(f"Player {session.player_number} joined from {identity}")
            self._notify_change(snapshot)

    async def _handle_position_update(self, packet: Packet, identity: str) -> None:
        position = deserialize_position(packet.payload)
        snapshot: Snapshot | None = None
        recipients: set[str] = set()

        async with self.registry.lock:
            is_new = identity not in self.registry
            # Unknown senders are registered at the origin before validation
            session = self.registry.upsert(identity, ORIGIN)
            accepted = self.world.is_valid_position(position)
            if accepted:
                self.registry.update_position(identity, position)
                recipients = self.registry.identities()
            current = session.position
            if accepted or is_new:
                snapshot = self.registry.snapshot()

        seq = packet.sequence_number
        if accepted:
            self.broadcaster.broadcast(
                Packet(
                    MessageType.POSITION_UPDATE,
                    seq,
                    serialize_player_update(PlayerUpdate(identity, position)),
                ),
                recipients,
                exclude=identity,
            )
        else:
            logger.debug(f"Rejected move of {identity} to {position}")
        self.broadcaster.send_to(
            identity,
            Packet(MessageType.CONFIRM_PLAYER_MOVEMENT, seq, serialize_position(current)),
        )

        if snapshot is not None:
            self._notify_change(snapshot)

    async def _handle_chat_message(self, packet: Packet, identity: str) -> None:
        text = deserialize_chat(packet.payload)
        logger.info(f"Chat from {identity}: {text}")
        async with self.registry.lock:
            recipients = self.registry.identities()
        # Relayed unchanged, sender included, heartbeat not refreshed
        self.broadcaster.broadcast(packet, recipients)

    async def _handle_heartbeat(self, packet: Packet, identity: str) -> None:
        async with self.registry.lock:
            try:
                self.registry.touch_heartbeat(identity)
            except SessionNotFoundError:
                logger.debug(f"Heartbeat from unknown sender {identity} ignored")

    async def _handle_server_only(self, packet: Packet, identity: str) -> None:
        logger.debug(f"Ignoring server-only {packet.message_type.name} from {identity}")
