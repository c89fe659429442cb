import os
import random
from types import SimpleNamespace

import pytest
import RNS

from exnebula.codec import decode, encode
from exnebula.config import HubRuntimeConfig
from exnebula.mentor import MentorResponseSelector
from exnebula.service import HubService

HUB_HASH = b"\x01" * 16


class FakeLink:
    """Stands in for RNS.Link: hashable by identity, records callbacks."""

    def __init__(self) -> None:
        self.link_id = os.urandom(16)
        self.packet_callback = None
        self.closed_callback = None
        self.torn_down = False
        self.status = RNS.Link.ACTIVE

    def set_packet_callback(self, cb) -> None:
        self.packet_callback = cb

    def set_link_closed_callback(self, cb) -> None:
        self.closed_callback = cb

    def teardown(self) -> None:
        self.torn_down = True

    def receive(self, data: bytes) -> None:
        self.packet_callback(data, None)

    def close(self) -> None:
        self.status = RNS.Link.CLOSED
        self.closed_callback(self)


def make_hub(**overrides) -> HubService:
    cfg = HubRuntimeConfig(**{"rate_limit_msgs_per_minute": 0, **overrides})
    hub = HubService(cfg, mentor=MentorResponseSelector(rng=random.Random(1234)))
    hub.identity = SimpleNamespace(hash=HUB_HASH)
    return hub


def connect(hub: HubService) -> FakeLink:
    link = FakeLink()
    with hub._state_lock:
        hub.session_manager.on_link_established(link)
    return link


def disconnect(hub: HubService, link: FakeLink) -> None:
    with hub._state_lock:
        hub.session_manager.on_link_closed(link)


def route(hub: HubService, link: FakeLink, env_or_bytes) -> list[tuple[FakeLink, dict]]:
    data = env_or_bytes if isinstance(env_or_bytes, bytes) else encode(env_or_bytes)
    outgoing: list = []
    with hub._state_lock:
        hub.router.route_packet(link, data, outgoing)
    return [(out_link, decode(payload)) for out_link, payload in outgoing]


@pytest.fixture
def hub() -> HubService:
    return make_hub()
