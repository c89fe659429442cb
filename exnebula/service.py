from __future__ import annotations

import logging
import os
import signal
import threading
import time

import RNS

from .codec import encode
from .config import HubRuntimeConfig
from .mentor import MentorResponseSelector
from .messages import MessageHelper
from .registry import ConnectionRegistry
from .router import MessageRouter
from .session import SessionManager
from .stats import StatsManager
from .templates import DEFAULT_TEMPLATES, Templates, load_templates
from .util import expand_path


class HubService:
    def __init__(
        self,
        config: HubRuntimeConfig,
        *,
        templates: Templates | None = None,
        mentor: MentorResponseSelector | None = None,
    ) -> None:
        self.config = config
        self.log = logging.getLogger("exnebula.hub")

        # Link callbacks arrive on Reticulum threads; session state and
        # counters are guarded by a single re-entrant lock. The registry
        # carries its own lock as well.
        self._state_lock = threading.RLock()

        self._shutdown = threading.Event()

        self.registry = ConnectionRegistry()
        self.stats_manager = StatsManager(self)
        self.message_helper = MessageHelper(self)
        self.session_manager = SessionManager(self)
        self.router = MessageRouter(self)

        self.templates = templates or DEFAULT_TEMPLATES
        self.mentor = mentor or MentorResponseSelector(self.templates.mentor)

        self.identity: RNS.Identity | None = None
        self.destination: RNS.Destination | None = None

        self._announce_thread: threading.Thread | None = None
        self._stats_thread: threading.Thread | None = None

    def _fmt_link_id(self, link: RNS.Link) -> str:
        lid = getattr(link, "link_id", None)
        if isinstance(lid, (bytes, bytearray)):
            return bytes(lid).hex()
        h = getattr(link, "hash", None)
        if isinstance(h, (bytes, bytearray)):
            return bytes(h).hex()
        return "-"

    def start(self) -> None:
        self.log.info("Starting Reticulum")
        self.stats_manager.set_start_time()
        RNS.Reticulum(configdir=self.config.configdir, require_shared_instance=False)

        if not self.config.identity_path:
            raise RuntimeError("identity_path is not set")
        self.identity = self._load_identity(self.config.identity_path)

        self._load_templates()

        parts = [p for p in str(self.config.dest_name).split(".") if p]
        if not parts:
            raise ValueError("dest_name must not be empty")
        app_name, aspects = parts[0], parts[1:]

        self.destination = RNS.Destination(
            self.identity,
            RNS.Destination.IN,
            RNS.Destination.SINGLE,
            app_name,
            *aspects,
        )
        self.destination.set_link_established_callback(self._on_link)

        if self.config.announce_on_start:
            self._announce_once()

        if self.config.announce_period_s and self.config.announce_period_s > 0:
            self._announce_thread = threading.Thread(
                target=self._announce_loop,
                name="exnebula-announce",
                daemon=True,
            )
            self._announce_thread.start()

        if self.config.stats_log_interval_s and self.config.stats_log_interval_s > 0:
            self._stats_thread = threading.Thread(
                target=self._stats_loop,
                name="exnebula-stats",
                daemon=True,
            )
            self._stats_thread.start()

        self.log.info(
            "Hub running dest_name=%s dest_hash=%s",
            self.config.dest_name,
            self.destination.hash.hex() if self.destination else "-",
        )
        self.log.info(
            "Policy max_text_chars=%s rate_limit_msgs_per_minute=%s",
            self.config.max_text_chars,
            self.config.rate_limit_msgs_per_minute,
        )

    def _load_templates(self) -> None:
        path = self.config.templates_path
        if not path:
            return
        p = expand_path(str(path))
        if not os.path.exists(p):
            self.log.debug("No templates file at %s; using built-in tables", p)
            return
        templates, err = load_templates(p, base=self.templates)
        if err is not None:
            self.log.warning("Using built-in templates: %s", err)
            return
        self.templates = templates
        self.mentor = MentorResponseSelector(templates.mentor, rng=self.mentor.rng)
        self.log.info(
            "Loaded templates from %s goals=%s paths=%s",
            path,
            len(templates.mentor.by_goal),
            len(templates.paths),
        )

    def _load_identity(self, path: str) -> RNS.Identity:
        p = expand_path(path)
        if not os.path.exists(p):
            raise RuntimeError(f"Identity not found at {p}")
        ident = RNS.Identity.from_file(p)
        if ident is None:
            raise RuntimeError(f"Failed to load identity from {p}")
        return ident

    def _announce_once(self) -> None:
        if self.destination is None:
            return
        try:
            self.destination.announce(
                app_data=encode({"proto": "exnebula", "v": 1, "hub": self.config.hub_name})
            )
            self.stats_manager.inc("announces")
        except Exception:
            self.log.exception("Announce failed")

    def _announce_loop(self) -> None:
        while not self._shutdown.is_set():
            period = float(self.config.announce_period_s)
            if period <= 0:
                break
            if self._shutdown.wait(period):
                break
            self._announce_once()

    def _stats_loop(self) -> None:
        while not self._shutdown.is_set():
            interval = float(self.config.stats_log_interval_s)
            if interval <= 0:
                break
            if self._shutdown.wait(interval):
                break
            self.log.info("%s", self.stats_manager.format_stats())

    def run_forever(self) -> None:
        if self.destination is None:
            self.start()

        signal.signal(signal.SIGINT, lambda *_: self.stop())
        signal.signal(signal.SIGTERM, lambda *_: self.stop())

        while not self._shutdown.is_set():
            time.sleep(0.25)

    def stop(self) -> None:
        if self._shutdown.is_set():
            return
        self._shutdown.set()

        with self._state_lock:
            links = self.session_manager.clear_all()

        for link in links:
            try:
                link.teardown()
            except Exception:
                self.log.debug(
                    "Teardown failed link_id=%s", self._fmt_link_id(link), exc_info=True
                )

        self.log.info("Hub stopped\n%s", self.stats_manager.format_stats())

    # Link callbacks

    def _on_link(self, link: RNS.Link) -> None:
        link.set_packet_callback(lambda data, pkt: self._on_packet(link, data))
        link.set_link_closed_callback(lambda closed_link: self._on_close(closed_link))

        with self._state_lock:
            self.session_manager.on_link_established(link)

        # A close that lands before the link is tracked finds nothing to
        # remove; catch it here so the link does not linger as open.
        if getattr(link, "status", None) == RNS.Link.CLOSED:
            self._on_close(link)
            return

        self.log.info("Link established link_id=%s", self._fmt_link_id(link))

    def _on_packet(self, link: RNS.Link, data: bytes) -> None:
        # Keep state mutations under the shared lock, but do not hold the
        # lock while sending packets via RNS.
        outgoing: list[tuple[RNS.Link, bytes]] = []
        with self._state_lock:
            self.router.route_packet(link, data, outgoing)

        if self.log.isEnabledFor(logging.DEBUG) and outgoing:
            self.log.debug(
                "Sending %d frame(s) for link_id=%s",
                len(outgoing),
                self._fmt_link_id(link),
            )

        self.message_helper.flush(outgoing)

    def _on_close(self, link: RNS.Link) -> None:
        with self._state_lock:
            was_open = self.session_manager.is_open(link)
            identity = self.session_manager.on_link_closed(link)

        if not was_open:
            return

        self.log.info(
            "Link closed name=%r user_id=%s link_id=%s",
            identity.display_name if identity else None,
            identity.user_id if identity else None,
            self._fmt_link_id(link),
        )
