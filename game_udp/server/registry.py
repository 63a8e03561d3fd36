"""Authoritative session registry."""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from ..common.protocol import Position, WorldState
from .session import Session, SessionView
from .world import World

logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """No session is registered under the given identity."""


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time copy of the registry contents."""

    sessions: Mapping[str, SessionView]
    world: World

    def to_world_state(self) -> WorldState:
        return WorldState(
            {identity: view.position for identity, view in self.sessions.items()},
            self.world.size,
        )


class Registry:
    """Mapping of transport identity to Session.

    Callers hold ``lock`` for the duration of one logical operation (a
    lookup, an upsert, a snapshot or recipient-set copy). The methods
    themselves never await, so a held lock is never released mid-operation.
    """

    def __init__(
        self,
        world: World,
        clock: Callable[[], float] = time.monotonic,
        player_numbers: Iterator[int] | None = None,
    ) -> None:
        self.world = world
        self.clock = clock
        self._player_numbers = (
            player_numbers if player_numbers is not None else itertools.count()
        )
        self._sessions: dict[str, Session] = {}
        self.lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, identity: object) -> bool:
        return identity in self._sessions

    def upsert(self, identity: str, default_position: Position) -> Session:
        """Return the session for identity, creating it at default_position if needed."""
        session = self._sessions.get(identity)
        if session is not None:
            return session
        session = Session(
            identity=identity,
            player_number=next(self._player_numbers),
            last_heartbeat=self.clock(),
            position=default_position,
        )
        self._sessions[identity] = session
        logger.info(
            f"Session {identity} registered as player {session.player_number}"
        )
        return session

    def get(self, identity: str) -> Session:
        try:
            return self._sessions[identity]
        except KeyError:
            raise SessionNotFoundError(identity) from None

    def update_position(self, identity: str, position: Position) -> None:
        """Store an accepted position and refresh the heartbeat."""
        session = self.get(identity)
        session.position = position
        session.last_heartbeat = self.clock()

    def touch_heartbeat(self, identity: str) -> None:
        self.get(identity).last_heartbeat = self.clock()

    def remove(self, identity: str) -> Session:
        try:
            return self._sessions.pop(identity)
        except KeyError:
            raise SessionNotFoundError(identity) from None

    def identities(self) -> set[str]:
        """Copy of the current recipient set."""
        return set(self._sessions)

    def expired(self, timeout: float) -> list[str]:
        """Identities whose last heartbeat is more than timeout seconds old."""
        now = self.clock()
        return [
            identity
            for identity, session in self._sessions.items()
            if now - session.last_heartbeat > timeout
        ]

    def snapshot(self) -> Snapshot:
        views = {
            identity: SessionView(
                session.position, session.player_number, session.last_heartbeat
            )
            for identity, session in self._sessions.items()
        }
        return Snapshot(MappingProxyType(views), self.world)
