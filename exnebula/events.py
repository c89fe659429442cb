"""Typed inbound events decoded from client envelopes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from .constants import (
    B_BIND_NAME,
    B_BIND_USER_ID,
    DISPLAY_NAME_MAX_CHARS,
    K_BODY,
    K_GOAL,
    K_T,
    T_BIND,
    T_COMMUNITY,
    T_MENTOR_QUERY,
    T_PATH_REQUEST,
    T_PING,
    USER_ID_MAX_CHARS,
)
from .util import normalize_display_name, normalize_user_id


class EventError(ValueError):
    """An envelope is well-formed but does not carry a usable event."""


@dataclass(frozen=True)
class BindEvent:
    display_name: str
    user_id: str


@dataclass(frozen=True)
class CommunitySend:
    text: str


@dataclass(frozen=True)
class MentorQuery:
    text: str
    goal: str | None = None


@dataclass(frozen=True)
class PathRequest:
    goal: str | None = None


@dataclass(frozen=True)
class Ping:
    body: Any = None


Event = Union[BindEvent, CommunitySend, MentorQuery, PathRequest, Ping]


def _text(body: Any, max_chars: int, *, allow_blank: bool = False) -> str:
    # Returned as sent; whitespace only matters for the emptiness check.
    if not isinstance(body, str):
        raise EventError("text body must be a string")
    if not allow_blank and not body.strip():
        raise EventError("text body must not be empty")
    if max_chars > 0 and len(body) > max_chars:
        raise EventError(f"text body too long: {len(body)} > {max_chars}")
    return body


def _goal(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    goal = value.strip()
    return goal or None


def parse_event(
    env: dict,
    *,
    max_text_chars: int = 2000,
    display_name_max_chars: int = DISPLAY_NAME_MAX_CHARS,
    user_id_max_chars: int = USER_ID_MAX_CHARS,
) -> Event:
    """Turn a validated envelope into an Event.

    Raises EventError for unknown message types and for missing or
    ill-typed required fields.
    """
    t = env.get(K_T)
    body = env.get(K_BODY)

    if t == T_BIND:
        if not isinstance(body, dict):
            raise EventError("bind body must be a map")
        name = normalize_display_name(
            body.get(B_BIND_NAME), max_chars=display_name_max_chars
        )
        if name is None:
            raise EventError("bind requires a display name")
        user_id = normalize_user_id(
            body.get(B_BIND_USER_ID), max_chars=user_id_max_chars
        )
        if user_id is None:
            raise EventError("bind requires a user id")
        return BindEvent(display_name=name, user_id=user_id)

    if t == T_COMMUNITY:
        return CommunitySend(text=_text(body, max_text_chars))

    if t == T_MENTOR_QUERY:
        return MentorQuery(
            text=_text(body, max_text_chars, allow_blank=True),
            goal=_goal(env.get(K_GOAL)),
        )

    if t == T_PATH_REQUEST:
        return PathRequest(goal=_goal(body))

    if t == T_PING:
        return Ping(body=body)

    raise EventError(f"unknown message type {t!r}")
