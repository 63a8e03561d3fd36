"""Tests for the session registry."""

from __future__ import annotations

import itertools
from types import MappingProxyType

import pytest

from game_udp.common.protocol import ORIGIN, Position, WorldState
from game_udp.server.registry import Registry, SessionNotFoundError
from game_udp.server.world import World

from conftest import FakeClock

ALICE = "10.0.0.1:5001"
BOB = "10.0.0.2:5002"


class TestUpsert:
    """Tests for session creation."""

    def test_creates_session(self, registry: Registry, clock: FakeClock) -> None:
        session = registry.upsert(ALICE, ORIGIN)
        assert session.identity == ALICE
        assert session.position == ORIGIN
        assert session.last_heartbeat == clock.now
        assert session.player_number == 0
        assert ALICE in registry
        assert len(registry) == 1

    def test_idempotent(self, registry: Registry) -> None:
        first = registry.upsert(ALICE, ORIGIN)
        second = registry.upsert(ALICE, Position(5, 5, 5))
        assert second is first
        assert second.position == ORIGIN
        assert len(registry) == 1

    def test_player_numbers_increase(self, registry: Registry) -> None:
        numbers = [registry.upsert(f"10.0.0.{i}:5000", ORIGIN).player_number for i in range(5)]
        assert numbers == [0, 1, 2, 3, 4]

    def test_number_not_reused_after_removal(self, registry: Registry) -> None:
        first = registry.upsert(ALICE, ORIGIN).player_number
        registry.remove(ALICE)
        second = registry.upsert(ALICE, ORIGIN).player_number
        assert second > first

    def test_injected_counter(self, world: World) -> None:
        registry = Registry(world, player_numbers=itertools.count(100))
        assert registry.upsert(ALICE, ORIGIN).player_number == 100
        assert registry.upsert(BOB, ORIGIN).player_number == 101

    def test_key_matches_identity(self, registry: Registry) -> None:
        registry.upsert(ALICE, ORIGIN)
        registry.upsert(BOB, ORIGIN)
        for identity in registry.identities():
            assert registry.get(identity).identity == identity


class TestLookups:
    """Tests for get/remove on unknown identities."""

    def test_get_unknown(self, registry: Registry) -> None:
        with pytest.raises(SessionNotFoundError):
            registry.get(ALICE)

    def test_remove_unknown(self, registry: Registry) -> None:
        with pytest.raises(SessionNotFoundError):
            registry.remove(ALICE)

    def test_touch_unknown(self, registry: Registry) -> None:
        with pytest.raises(SessionNotFoundError):
            registry.touch_heartbeat(ALICE)

    def test_remove_returns_session(self, registry: Registry) -> None:
        created = registry.upsert(ALICE, ORIGIN)
        assert registry.remove(ALICE) is created
        assert ALICE not in registry


class TestUpdates:
    """Tests for position and heartbeat refreshes."""

    def test_update_position_refreshes_heartbeat(
        self, registry: Registry, clock: FakeClock
    ) -> None:
        registry.upsert(ALICE, ORIGIN)
        clock.advance(4)
        registry.update_position(ALICE, Position(1, 2, 3))
        session = registry.get(ALICE)
        assert session.position == Position(1, 2, 3)
        assert session.last_heartbeat == clock.now

    def test_touch_heartbeat(self, registry: Registry, clock: FakeClock) -> None:
        registry.upsert(ALICE, ORIGIN)
        clock.advance(7)
        registry.touch_heartbeat(ALICE)
        assert registry.get(ALICE).last_heartbeat == clock.now


class TestExpired:
    """Tests for idle session detection."""

    def test_strictly_older_than_timeout(
        self, registry: Registry, clock: FakeClock
    ) -> None:
        registry.upsert(ALICE, ORIGIN)
        clock.advance(10)
        assert registry.expired(10) == []
        clock.advance(0.5)
        assert registry.expired(10) == [ALICE]

    def test_only_idle_sessions(self, registry: Registry, clock: FakeClock) -> None:
        registry.upsert(ALICE, ORIGIN)
        clock.advance(6)
        registry.upsert(BOB, ORIGIN)
        clock.advance(5)
        assert registry.expired(10) == [ALICE]


class TestSnapshot:
    """Tests for point-in-time copies."""

    def test_snapshot_is_a_copy(self, registry: Registry) -> None:
        registry.upsert(ALICE, ORIGIN)
        snapshot = registry.snapshot()
        registry.update_position(ALICE, Position(3, 3, 3))
        registry.upsert(BOB, ORIGIN)
        assert set(snapshot.sessions) == {ALICE}
        assert snapshot.sessions[ALICE].position == ORIGIN

    def test_snapshot_is_read_only(self, registry: Registry) -> None:
        registry.upsert(ALICE, ORIGIN)
        snapshot = registry.snapshot()
        assert isinstance(snapshot.sessions, MappingProxyType)
        with pytest.raises(TypeError):
            snapshot.sessions[BOB] = snapshot.sessions[ALICE]  # type: ignore[index]

    def test_snapshot_carries_player_numbers(self, registry: Registry) -> None:
        registry.upsert(ALICE, ORIGIN)
        registry.upsert(BOB, ORIGIN)
        snapshot = registry.snapshot()
        assert snapshot.sessions[ALICE].player_number == 0
        assert snapshot.sessions[BOB].player_number == 1

    def test_to_world_state(self, registry: Registry) -> None:
        registry.upsert(ALICE, Position(1, 1, 0))
        assert registry.snapshot().to_world_state() == WorldState(
            {ALICE: Position(1, 1, 0)}, (80, 24)
        )

    def test_identities_is_a_copy(self, registry: Registry) -> None:
        registry.upsert(ALICE, ORIGIN)
        recipients = registry.identities()
        registry.upsert(BOB, ORIGIN)
        assert recipients == {ALICE}
