"""Tests for packet fan-out."""

from __future__ import annotations

from typing import Any

from game_udp.common.protocol import MessageType, Packet, format_identity
from game_udp.server.broadcast import Broadcaster

from conftest import RecordingSender

A = "10.0.0.1:5001"
B = "10.0.0.2:5002"
C = "10.0.0.3:5003"


class TestBroadcast:
    """Tests for multi-recipient sends."""

    def test_sends_to_all(self, broadcaster: Broadcaster, sender: RecordingSender) -> None:
        packet = Packet(MessageType.CHAT_MESSAGE, 9, b'{"text":"hi"}')
        assert broadcaster.broadcast(packet, [A, B, C]) == 3
        assert {dest for dest, _ in sender.sent} == {A, B, C}
        assert all(p == packet for _, p in sender.sent)

    def test_exclude(self, broadcaster: Broadcaster, sender: RecordingSender) -> None:
        packet = Packet(MessageType.HEARTBEAT, 0)
        assert broadcaster.broadcast(packet, [A, B, C], exclude=B) == 2
        assert sender.to(B) == []

    def test_empty_recipients(self, broadcaster: Broadcaster, sender: RecordingSender) -> None:
        assert broadcaster.broadcast(Packet(MessageType.HEARTBEAT, 0), []) == 0
        assert sender.sent == []

    def test_failure_does_not_abort(self) -> None:
        """One unreachable recipient does not stop delivery to the rest."""
        delivered: list[str] = []

        def flaky_send(data: bytes, address: Any) -> None:
            identity = format_identity(address)
            if identity == B:
                raise OSError("Network is unreachable")
            delivered.append(identity)

        broadcaster = Broadcaster(flaky_send)
        sent = broadcaster.broadcast(Packet(MessageType.HEARTBEAT, 0), [A, B, C])
        assert sent == 2
        assert sorted(delivered) == [A, C]

    def test_unparseable_identity_skipped(
        self, broadcaster: Broadcaster, sender: RecordingSender
    ) -> None:
        sent = broadcaster.broadcast(Packet(MessageType.HEARTBEAT, 0), ["bogus", A])
        assert sent == 1
        assert [dest for dest, _ in sender.sent] == [A]


class TestSendTo:
    """Tests for single-recipient sends."""

    def test_send_to(self, broadcaster: Broadcaster, sender: RecordingSender) -> None:
        packet = Packet(MessageType.CONFIRM_PLAYER_MOVEMENT, 3, b"{}")
        assert broadcaster.send_to(A, packet) is True
        assert sender.to(A) == [packet]

    def test_send_to_failure(self) -> None:
        def failing_send(data: bytes, address: Any) -> None:
            raise OSError("boom")

        assert Broadcaster(failing_send).send_to(A, Packet(MessageType.HEARTBEAT, 0)) is False
