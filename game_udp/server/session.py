"""Session state for the server."""

from __future__ import annotations

from dataclasses import dataclass

from ..common.protocol import ORIGIN, Position


@dataclass
class Session:
    # Transport address formatted as host:port; the socket itself is not owned
    identity: str
    player_number: int
    last_heartbeat: float
    position: Position = ORIGIN


@dataclass(frozen=True)
class SessionView:
    """Read-only copy of a Session handed to observers."""

    position: Position
    player_number: int
    last_heartbeat: float
