"""Shared fixtures for server tests: fake clock and a socket-free sender."""

from __future__ import annotations

from typing import Any

import pytest

from game_udp.common.protocol import Packet, decode_packet, format_identity
from game_udp.server.broadcast import Broadcaster
from game_udp.server.game_server import GameServer
from game_udp.server.registry import Registry
from game_udp.server.world import World


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSender:
    """Stands in for DatagramTransport.sendto and records decoded packets."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, Packet]] = []

    def __call__(self, data: bytes, address: Any) -> None:
        self.sent.append((format_identity(address), decode_packet(data)))

    def to(self, identity: str) -> list[Packet]:
        return [packet for dest, packet in self.sent if dest == identity]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def world() -> World:
    return World(80, 24)


@pytest.fixture
def registry(world: World, clock: FakeClock) -> Registry:
    return Registry(world, clock=clock)


@pytest.fixture
def broadcaster(sender: RecordingSender) -> Broadcaster:
    return Broadcaster(sender)


@pytest.fixture
def server(world: World, registry: Registry, broadcaster: Broadcaster) -> GameServer:
    return GameServer("127.0.0.1", 0, world, registry=registry, broadcaster=broadcaster)
