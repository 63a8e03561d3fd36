"""Periodic liveness pings and eviction of idle sessions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from ..common.constants import PING_INTERVAL, REAP_INTERVAL, SESSION_TIMEOUT
from ..common.protocol import MessageType, Packet, serialize_identity
from .broadcast import Broadcaster
from .registry import Registry, Snapshot

logger = logging.getLogger(__name__)


class HeartbeatMonitor:
    """Runs the ping and reap tasks against a shared registry."""

    def __init__(
        self,
        registry: Registry,
        broadcaster: Broadcaster,
        ping_interval: float = PING_INTERVAL,
        reap_interval: float = REAP_INTERVAL,
        session_timeout: float = SESSION_TIMEOUT,
        on_change: Callable[[Snapshot], None] | None = None,
    ) -> None:
        self.registry = registry
        self.broadcaster = broadcaster
        self.ping_interval = ping_interval
        self.reap_interval = reap_interval
        self.session_timeout = session_timeout
        self.on_change = on_change

    async def ping(self) -> None:
        """Send an empty HEARTBEAT to every session."""
        async with self.registry.lock:
            recipients = self.registry.identities()
        self.broadcaster.broadcast(Packet(MessageType.HEARTBEAT, 0), recipients)

    async def reap(self) -> list[str]:
        """Evict sessions idle for longer than the session timeout.

        Each eviction is announced with PLAYER_LEFT to the sessions present
        just before it is removed, never to the evicted session itself.
        """
        removed: list[str] = []
        async with self.registry.lock:
            for identity in self.registry.expired(self.session_timeout):
                recipients = self.registry.identities()
                self.broadcaster.broadcast(
                    Packet(MessageType.PLAYER_LEFT, 0, serialize_identity(identity)),
                    recipients,
                    exclude=identity,
                )
                session = self.registry.remove(identity)
                removed.append(identity)
                logger.info(
                    f"Session {identity} (player {session.player_number}) timed out"
                )
            snapshot = self.registry.snapshot() if removed else None
        if snapshot is not None and self.on_change is not None:
            self.on_change(snapshot)
        return removed

    async def run_ping_loop(self) -> None:
        while True:
            await asyncio.sleep(self.ping_interval)
            await self.ping()

    async def run_reap_loop(self) -> None:
        while True:
            await asyncio.sleep(self.reap_interval)
            await self.reap()
