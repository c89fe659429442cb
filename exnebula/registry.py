from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """What a connection asserted about itself at bind time.

    Not verified against the auth service; the hub trusts the client.
    """

    display_name: str
    user_id: str


class ConnectionRegistry:
    """
    Live mapping of connection -> bound Identity.

    A connection is present if and only if it has bound and has not yet been
    removed. Mutations and snapshots are serialized with a lock because link
    callbacks arrive on Reticulum's threads.
    """

    def __init__(self) -> None:
        self.log = logging.getLogger("exnebula.registry")
        self._lock = threading.RLock()
        self._entries: dict[Hashable, Identity] = {}

    def bind(self, conn: Hashable, identity: Identity) -> Identity | None:
        """Insert or replace the identity for ``conn``; return the previous one."""
        with self._lock:
            previous = self._entries.get(conn)
            self._entries[conn] = identity
        return previous

    def lookup(self, conn: Hashable) -> Identity | None:
        with self._lock:
            return self._entries.get(conn)

    def remove(self, conn: Hashable) -> Identity | None:
        """Drop ``conn`` if present. Removing an unknown connection is a no-op."""
        with self._lock:
            removed = self._entries.pop(conn, None)
        if removed is not None:
            self.log.debug("Unbound name=%r user_id=%s", removed.display_name, removed.user_id)
        return removed

    def snapshot(self) -> list[tuple[Hashable, Identity]]:
        with self._lock:
            return list(self._entries.items())

    def for_each(self, fn: Callable[[Hashable, Identity], None]) -> int:
        """Apply ``fn`` to a snapshot of all bound pairs; return how many were visited.

        ``fn`` runs outside the lock, so it may call back into the registry.
        Entries removed after the snapshot was taken are skipped.
        """
        visited = 0
        for conn, identity in self.snapshot():
            if conn not in self:
                continue
            fn(conn, identity)
            visited += 1
        return visited

    def clear(self) -> list[Hashable]:
        with self._lock:
            conns = list(self._entries.keys())
            self._entries.clear()
        return conns

    def __contains__(self, conn: object) -> bool:
        with self._lock:
            return conn in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
