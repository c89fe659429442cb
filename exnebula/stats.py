"""Statistics tracking and reporting for the hub."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import HubService


class StatsManager:
    """
    Lifetime counters for the hub.

    Tracks:
    - Bytes and packets in/out
    - Dropped packets (malformed, rate limited, unbound sender)
    - Binds and rebinds
    - Community messages and their fan-out deliveries
    - Mentor replies and learning paths sent
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub

        self.started_wall_time: float | None = None
        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "bytes_in": 0,
            "bytes_out": 0,
            "pkts_in": 0,
            "pkts_bad": 0,
            "rate_limited": 0,
            "binds": 0,
            "rebinds": 0,
            "community_msgs": 0,
            "deliveries": 0,
            "mentor_replies": 0,
            "paths_sent": 0,
            "dropped_unbound": 0,
            "pings_in": 0,
            "announces": 0,
            "send_failures": 0,
        }

    def set_start_time(self) -> None:
        """Set the start time for uptime calculations."""
        self.started_wall_time = time.time()
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        with self.hub._state_lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self.hub._state_lock:
            return int(self._counters.get(key, 0))

    def format_stats(self) -> str:
        """Format current statistics as a human-readable string."""
        from . import __version__

        started_mono = self.started_monotonic
        uptime_s = (time.monotonic() - started_mono) if started_mono is not None else 0.0

        with self.hub._state_lock:
            session_stats = self.hub.session_manager.get_stats()
            c = dict(self._counters)

        lines: list[str] = []
        lines.append(f"exnebula {__version__} stats")
        lines.append(f"uptime_s={uptime_s:.1f}")
        lines.append(
            f"connections_total={session_stats['total']} "
            f"connections_bound={session_stats['bound']} "
            f"connections_unbound={session_stats['unbound']}"
        )
        lines.append(
            "io: pkts_in={} pkts_bad={} bytes_in={} bytes_out={} send_failures={}".format(
                c.get("pkts_in", 0),
                c.get("pkts_bad", 0),
                c.get("bytes_in", 0),
                c.get("bytes_out", 0),
                c.get("send_failures", 0),
            )
        )
        lines.append(
            "events: binds={} rebinds={} community_msgs={} deliveries={} "
            "mentor_replies={} paths_sent={}".format(
                c.get("binds", 0),
                c.get("rebinds", 0),
                c.get("community_msgs", 0),
                c.get("deliveries", 0),
                c.get("mentor_replies", 0),
                c.get("paths_sent", 0),
            )
        )
        lines.append(
            "drops: unbound={} rate_limited={}".format(
                c.get("dropped_unbound", 0),
                c.get("rate_limited", 0),
            )
        )
        lines.append(
            "misc: pings_in={} announces={}".format(
                c.get("pings_in", 0),
                c.get("announces", 0),
            )
        )

        return "\n".join(lines)
