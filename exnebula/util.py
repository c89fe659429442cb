from __future__ import annotations

import os

from .constants import DISPLAY_NAME_MAX_CHARS, USER_ID_MAX_CHARS


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def _normalize_label(value, max_chars: int) -> str | None:
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s:
        return None

    # Rejected, not truncated: a cut name could match someone else's.
    if max_chars > 0 and len(s) > max_chars:
        return None

    # Embedded newlines or NUL break chat rendering and log lines.
    if "\n" in s or "\r" in s or "\x00" in s:
        return None

    try:
        s.encode("utf-8", "strict")
    except UnicodeError:
        return None

    return s


def normalize_display_name(value, *, max_chars: int = DISPLAY_NAME_MAX_CHARS) -> str | None:
    return _normalize_label(value, int(max_chars))


def normalize_user_id(value, *, max_chars: int = USER_ID_MAX_CHARS) -> str | None:
    # Some clients send numeric or ObjectId-like ids; accept ints as text.
    if isinstance(value, int) and not isinstance(value, bool):
        value = str(value)
    return _normalize_label(value, int(max_chars))
