from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .registry import Identity

if TYPE_CHECKING:
    import RNS

    from .service import HubService


class ConnectionState(enum.Enum):
    UNBOUND = "open-unbound"
    BOUND = "open-bound"
    CLOSED = "closed"


@dataclass
class _RateState:
    """Token bucket state for rate limiting."""

    tokens: float
    last_refill: float


class SessionManager:
    """
    Tracks the lifecycle of hub connections.

    This class is responsible for:
    - Recording links as they open (Open, unbound)
    - Removing registry entries exactly once when links close
    - Answering which state a link is in
    - Per-link rate limiting with a token bucket

    A closed link never reopens; a reconnecting client arrives as a new link.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("exnebula.session")
        self._open: set[RNS.Link] = set()
        self._rate: dict[RNS.Link, _RateState] = {}

    def on_link_established(self, link: RNS.Link) -> None:
        """
        Record a freshly opened link.

        Must be called with state lock held.
        """
        self._open.add(link)
        self._rate[link] = _RateState(
            tokens=float(self.hub.config.rate_limit_msgs_per_minute),
            last_refill=time.monotonic(),
        )
        self.log.info("Session created link_id=%s", self.hub._fmt_link_id(link))

    def on_link_closed(self, link: RNS.Link) -> Identity | None:
        """
        Forget a closed link and unbind it.

        Returns the identity that was bound, if any. Safe to call for links
        that never bound or were already closed.
        Must be called with state lock held.
        """
        self._open.discard(link)
        self._rate.pop(link, None)
        return self.hub.registry.remove(link)

    def is_open(self, link: RNS.Link) -> bool:
        return link in self._open

    def state(self, link: RNS.Link) -> ConnectionState:
        if link not in self._open:
            return ConnectionState.CLOSED
        if self.hub.registry.lookup(link) is None:
            return ConnectionState.UNBOUND
        return ConnectionState.BOUND

    def refill_and_take(self, link: RNS.Link, cost: float = 1.0) -> bool:
        """
        Token bucket rate limiting.

        Refills tokens based on elapsed time and attempts to take `cost` tokens.
        Returns True if tokens were available and taken, False if rate limited.
        A limit of 0 disables rate limiting.

        Must be called with state lock held.
        """
        per_min = float(self.hub.config.rate_limit_msgs_per_minute)
        if per_min <= 0:
            return True

        state = self._rate.get(link)
        if state is None:
            return True

        now = time.monotonic()
        rate_per_s = per_min / 60.0
        elapsed = max(0.0, now - state.last_refill)
        state.tokens = min(per_min, state.tokens + elapsed * rate_per_s)
        state.last_refill = now

        if state.tokens < cost:
            return False

        state.tokens -= cost
        return True

    def clear_all(self) -> list[RNS.Link]:
        """
        Forget every link and return them for teardown.

        Must be called with state lock held.
        """
        links = list(self._open)
        self._open.clear()
        self._rate.clear()
        self.hub.registry.clear()
        return links

    def get_stats(self) -> dict[str, Any]:
        """Get connection statistics for monitoring."""
        total = len(self._open)
        bound = sum(1 for link in self._open if link in self.hub.registry)
        return {
            "total": total,
            "bound": bound,
            "unbound": total - bound,
        }
