import pytest

from exnebula.constants import (
    B_BIND_NAME,
    B_BIND_USER_ID,
    T_BIND,
    T_COMMUNITY,
    T_MENTOR_QUERY,
    T_PATH_REQUEST,
    T_PING,
)
from exnebula.envelope import make_envelope
from exnebula.events import (
    BindEvent,
    CommunitySend,
    EventError,
    MentorQuery,
    PathRequest,
    Ping,
    parse_event,
)


def _bind(body):
    return make_envelope(T_BIND, src=b"peer", body=body)


def test_bind_event() -> None:
    event = parse_event(_bind({B_BIND_NAME: "  Alice ", B_BIND_USER_ID: "u-1"}))
    assert event == BindEvent(display_name="Alice", user_id="u-1")


def test_bind_accepts_numeric_user_id() -> None:
    event = parse_event(_bind({B_BIND_NAME: "Alice", B_BIND_USER_ID: 42}))
    assert event == BindEvent(display_name="Alice", user_id="42")


@pytest.mark.parametrize(
    "body",
    [
        None,
        "Alice",
        {B_BIND_NAME: "Alice"},
        {B_BIND_USER_ID: "1"},
        {B_BIND_NAME: "   ", B_BIND_USER_ID: "1"},
        {B_BIND_NAME: "Alice", B_BIND_USER_ID: ""},
        {B_BIND_NAME: "Al\nice", B_BIND_USER_ID: "1"},
        {B_BIND_NAME: "Alice", B_BIND_USER_ID: True},
    ],
)
def test_bind_rejects_incomplete_payloads(body) -> None:
    with pytest.raises(EventError):
        parse_event(_bind(body))


def test_bind_rejects_overlong_display_name() -> None:
    env = _bind({B_BIND_NAME: "x" * 10, B_BIND_USER_ID: "1"})
    with pytest.raises(EventError):
        parse_event(env, display_name_max_chars=5)


def test_community_send_keeps_text_as_sent() -> None:
    env = make_envelope(T_COMMUNITY, src=b"peer", body="    def f():\n")
    assert parse_event(env) == CommunitySend(text="    def f():\n")


def test_community_send_requires_text() -> None:
    for body in (None, "", "   ", 123, {"text": "hi"}):
        with pytest.raises(EventError):
            parse_event(make_envelope(T_COMMUNITY, src=b"peer", body=body))


def test_text_length_limit() -> None:
    env = make_envelope(T_COMMUNITY, src=b"peer", body="abcdef")
    with pytest.raises(EventError):
        parse_event(env, max_text_chars=3)


def test_mentor_query_with_and_without_goal() -> None:
    env = make_envelope(T_MENTOR_QUERY, src=b"peer", body="what should I learn?")
    assert parse_event(env) == MentorQuery(text="what should I learn?", goal=None)

    env = make_envelope(
        T_MENTOR_QUERY, src=b"peer", body="what next?", goal="Data Scientist"
    )
    assert parse_event(env) == MentorQuery(text="what next?", goal="Data Scientist")


def test_mentor_query_accepts_blank_text() -> None:
    env = make_envelope(T_MENTOR_QUERY, src=b"peer", body="")
    assert parse_event(env) == MentorQuery(text="", goal=None)

    for body in (None, 7):
        with pytest.raises(EventError):
            parse_event(make_envelope(T_MENTOR_QUERY, src=b"peer", body=body))


def test_path_request_goal_is_optional() -> None:
    assert parse_event(make_envelope(T_PATH_REQUEST, src=b"peer")) == PathRequest()
    env = make_envelope(T_PATH_REQUEST, src=b"peer", body="ML Engineer")
    assert parse_event(env) == PathRequest(goal="ML Engineer")


def test_ping_keeps_body() -> None:
    env = make_envelope(T_PING, src=b"peer", body=12345)
    assert parse_event(env) == Ping(body=12345)


def test_unknown_type_is_rejected() -> None:
    with pytest.raises(EventError):
        parse_event(make_envelope(99, src=b"peer", body="hi"))
