"""Uniqueness checks and the per-record locks that make check-then-write atomic."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Callable, Dict, Hashable, Iterator, List, Optional, Tuple

from errors import LendingError


class KeyedLock:
    """Re-entrant locks created on demand per key.

    Entries are reference counted and dropped once nobody holds or waits on
    them, so the registry stays as small as the set of records in flight.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, List] = {}  # key -> [lock, users]

    def _checkout(self, key: Hashable) -> threading.RLock:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._entries[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, *keys: Tuple[str, str]) -> Iterator[None]:
        """Hold every key's lock for the duration of the block.

        Keys are acquired in sorted order, so callers that need several
        records at once cannot deadlock against each other.
        """
        held: List[Tuple[Hashable, threading.RLock]] = []
        try:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                lock.acquire()
                held.append((key, lock))
            yield
        finally:
            for key, lock in reversed(held):
                lock.release()
                self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


def book_key(book_id: int) -> Tuple[str, str]:
    return ("book", str(book_id))


def isbn_key(isbn: str) -> Tuple[str, str]:
    return ("isbn", isbn)


def member_key(member_id: int) -> Tuple[str, str]:
    return ("member", str(member_id))


def email_key(email: str) -> Tuple[str, str]:
    return ("email", email)


def ensure_unique(
    exists: Callable[[str], bool],
    key: str,
    entity: str,
    field: str,
    current: Optional[str] = None,
) -> None:
    """Reject ``key`` if another record already uses it.

    On update pass the record's stored value as ``current``: an unchanged key
    is never re-checked, so a record does not collide with itself.
    """
    if current is not None and current == key:
        return
    if exists(key):
        raise LendingError.duplicate_key(entity, field, key)
