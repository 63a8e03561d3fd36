"""Fan-out of encoded packets to sets of sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from ..common.protocol import Packet, encode_packet, parse_identity

logger = logging.getLogger(__name__)

# Matches DatagramTransport.sendto(data, addr)
SendFunc = Callable[[bytes, Any], None]


class Broadcaster:
    def __init__(self, send: SendFunc) -> None:
        self._send = send

    def _send_raw(self, data: bytes, identity: str) -> bool:
        try:
            address = parse_identity(identity)
        except ValueError:
            logger.warning(f"Cannot send to {identity!r}: not a socket address")
            return False
        try:
            self._send(data, address)
        except OSError as e:
            logger.warning(f"Send to {identity} failed: {e}")
            return False
        return True

    def send_to(self, identity: str, packet: Packet) -> bool:
        """Send a packet to a single session."""
        return self._send_raw(encode_packet(packet), identity)

    def broadcast(
        self,
        packet: Packet,
        recipients: Iterable[str],
        exclude: str | None = None,
    ) -> int:
        """Send a packet to every recipient except exclude.

        A failed send is logged and skipped. Returns the number of
        successful sends.
        """
        data = encode_packet(packet)
        sent = 0
        for identity in recipients:
            if identity == exclude:
                continue
            if self._send_raw(data, identity):
                sent += 1
        return sent
