"""Outgoing frame queueing and transmission for the hub."""

from __future__ import annotations

from typing import TYPE_CHECKING

import RNS

from .codec import encode

if TYPE_CHECKING:
    from .service import HubService


class MessageHelper:
    """
    Helper methods for queueing and sending frames.

    Handlers queue ``(link, payload)`` pairs while the state lock is held;
    the hub transmits them once the lock is released.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = hub.log

    def queue_payload(
        self, outgoing: list[tuple[RNS.Link, bytes]], link: RNS.Link, payload: bytes
    ) -> None:
        """Add a raw payload to the outgoing queue."""
        outgoing.append((link, payload))

    def queue_env(
        self, outgoing: list[tuple[RNS.Link, bytes]], link: RNS.Link, env: dict
    ) -> None:
        """Encode and queue an envelope."""
        self.queue_payload(outgoing, link, encode(env))

    def transmit(self, link: RNS.Link, payload: bytes) -> bool:
        """Send one frame. Failures are logged and reported, never raised."""
        try:
            RNS.Packet(link, payload).send()
        except OSError as e:
            # Common failure mode on low-MTU links: packet too large.
            self.hub.stats_manager.inc("send_failures")
            self.log.warning(
                "Send failed link_id=%s bytes=%s err=%s",
                self.hub._fmt_link_id(link),
                len(payload),
                e,
            )
            return False
        except Exception:
            # The link may have closed between queueing and sending.
            self.hub.stats_manager.inc("send_failures")
            self.log.debug(
                "Send failed link_id=%s bytes=%s",
                self.hub._fmt_link_id(link),
                len(payload),
                exc_info=True,
            )
            return False

        self.hub.stats_manager.inc("bytes_out", len(payload))
        return True

    def flush(self, outgoing: list[tuple[RNS.Link, bytes]]) -> int:
        """Transmit every queued frame; return how many were sent."""
        sent = 0
        for out_link, payload in outgoing:
            if self.transmit(out_link, payload):
                sent += 1
        return sent
