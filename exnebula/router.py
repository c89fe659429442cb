from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .codec import decode, encode
from .constants import (
    B_PATH_DESCRIPTION,
    B_PATH_MODULES,
    B_PATH_PROGRESS,
    B_PATH_TITLE,
    T_COMMUNITY,
    T_MENTOR_REPLY,
    T_PATH,
    T_PONG,
)
from .envelope import make_envelope, now_ms, validate_envelope
from .events import (
    BindEvent,
    CommunitySend,
    Event,
    MentorQuery,
    PathRequest,
    Ping,
    parse_event,
)
from .registry import Identity
from .templates import learning_path_for

if TYPE_CHECKING:
    import RNS

    from .service import HubService


class MessageRouter:
    """
    Routes inbound frames for the hub.

    This class is responsible for:
    - Decoding and validating incoming packets into typed events
    - Binding identities to connections
    - Broadcasting community messages to every bound connection
    - Answering mentor queries and learning-path requests on the asking link

    Nothing here ever answers with an error: bad or unattributable input is
    dropped and counted.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("exnebula.router")

    def route_packet(
        self,
        link: RNS.Link,
        data: bytes,
        outgoing: list[tuple[RNS.Link, bytes]],
    ) -> None:
        """
        Main entry point for routing an incoming packet.

        This method should be called with the state lock held.
        """
        if not self.hub.session_manager.is_open(link):
            # Closed (or never seen) links do not get to bind or send.
            return

        self.hub.stats_manager.inc("pkts_in")
        self.hub.stats_manager.inc("bytes_in", len(data))

        if not self.hub.session_manager.refill_and_take(link, 1.0):
            self.hub.stats_manager.inc("rate_limited")
            self.log.debug("Rate limited link_id=%s", self.hub._fmt_link_id(link))
            return

        cfg = self.hub.config
        try:
            env = decode(data)
            validate_envelope(env)
            event = parse_event(
                env,
                max_text_chars=cfg.max_text_chars,
                display_name_max_chars=cfg.display_name_max_chars,
                user_id_max_chars=cfg.user_id_max_chars,
            )
        except Exception as e:
            self.hub.stats_manager.inc("pkts_bad")
            self.log.debug(
                "Dropped packet link_id=%s bytes=%s err=%s",
                self.hub._fmt_link_id(link),
                len(data),
                e,
            )
            return

        self.dispatch(link, event, outgoing)

    def dispatch(
        self,
        link: RNS.Link,
        event: Event,
        outgoing: list[tuple[RNS.Link, bytes]],
    ) -> None:
        if isinstance(event, BindEvent):
            self._handle_bind(link, event)
        elif isinstance(event, Ping):
            self._handle_ping(link, event, outgoing)
        elif isinstance(event, CommunitySend):
            self._handle_community(link, event, outgoing)
        elif isinstance(event, MentorQuery):
            self._handle_mentor_query(link, event, outgoing)
        elif isinstance(event, PathRequest):
            self._handle_path_request(link, event, outgoing)

    def _sender(self, link: RNS.Link, kind: str) -> Identity | None:
        identity = self.hub.registry.lookup(link)
        if identity is None:
            self.hub.stats_manager.inc("dropped_unbound")
            self.log.debug(
                "Dropped %s from unbound link_id=%s", kind, self.hub._fmt_link_id(link)
            )
        return identity

    def _handle_bind(self, link: RNS.Link, event: BindEvent) -> None:
        # Taken on the client's word; not checked against the auth service.
        identity = Identity(display_name=event.display_name, user_id=event.user_id)
        previous = self.hub.registry.bind(link, identity)

        if previous is None:
            self.hub.stats_manager.inc("binds")
            self.log.info(
                "BIND name=%r user_id=%s link_id=%s",
                identity.display_name,
                identity.user_id,
                self.hub._fmt_link_id(link),
            )
        else:
            self.hub.stats_manager.inc("rebinds")
            self.log.info(
                "Re-BIND name=%r->%r user_id=%s->%s link_id=%s",
                previous.display_name,
                identity.display_name,
                previous.user_id,
                identity.user_id,
                self.hub._fmt_link_id(link),
            )

    def _handle_community(
        self,
        link: RNS.Link,
        event: CommunitySend,
        outgoing: list[tuple[RNS.Link, bytes]],
    ) -> None:
        sender = self._sender(link, "community message")
        if sender is None or self.hub.identity is None:
            return

        env = make_envelope(
            T_COMMUNITY,
            src=self.hub.identity.hash,
            body=event.text,
            nick=sender.display_name,
            ts=now_ms(),
        )
        # Encode once; every recipient gets the same frame.
        payload = encode(env)

        def deliver(other: RNS.Link, _identity: Identity) -> None:
            self.hub.message_helper.queue_payload(outgoing, other, payload)

        recipients = self.hub.registry.for_each(deliver)

        self.hub.stats_manager.inc("community_msgs")
        self.hub.stats_manager.inc("deliveries", recipients)

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "Broadcast name=%r recipients=%s chars=%s link_id=%s",
                sender.display_name,
                recipients,
                len(event.text),
                self.hub._fmt_link_id(link),
            )

    def _handle_mentor_query(
        self,
        link: RNS.Link,
        event: MentorQuery,
        outgoing: list[tuple[RNS.Link, bytes]],
    ) -> None:
        sender = self._sender(link, "mentor query")
        if sender is None or self.hub.identity is None:
            return

        text = self.hub.mentor.reply(event.goal)
        reply = make_envelope(T_MENTOR_REPLY, src=self.hub.identity.hash, body=text)
        self.hub.message_helper.queue_env(outgoing, link, reply)
        self.hub.stats_manager.inc("mentor_replies")

        self.log.debug(
            "Mentor reply name=%r goal=%r link_id=%s",
            sender.display_name,
            event.goal,
            self.hub._fmt_link_id(link),
        )

    def _handle_path_request(
        self,
        link: RNS.Link,
        event: PathRequest,
        outgoing: list[tuple[RNS.Link, bytes]],
    ) -> None:
        sender = self._sender(link, "path request")
        if sender is None or self.hub.identity is None:
            return

        path = learning_path_for(event.goal, self.hub.templates.paths)
        body = {
            B_PATH_TITLE: path.title,
            B_PATH_DESCRIPTION: path.description,
            B_PATH_MODULES: list(path.modules),
            B_PATH_PROGRESS: path.progress,
        }
        env = make_envelope(T_PATH, src=self.hub.identity.hash, body=body)
        self.hub.message_helper.queue_env(outgoing, link, env)
        self.hub.stats_manager.inc("paths_sent")

        self.log.info(
            "PATH name=%r goal=%r title=%r link_id=%s",
            sender.display_name,
            event.goal,
            path.title,
            self.hub._fmt_link_id(link),
        )

    def _handle_ping(
        self,
        link: RNS.Link,
        event: Ping,
        outgoing: list[tuple[RNS.Link, bytes]],
    ) -> None:
        self.hub.stats_manager.inc("pings_in")
        if self.hub.identity is not None:
            pong = make_envelope(T_PONG, src=self.hub.identity.hash, body=event.body)
            self.hub.message_helper.queue_env(outgoing, link, pong)
