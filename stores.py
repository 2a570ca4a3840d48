"""Persistence contracts consumed by the lending core, plus in-memory stores.

Stores hand out copies: a caller may mutate what ``find_by_id`` returns, and
nothing changes until it passes the entity back to ``save``.
"""

from __future__ import annotations

import copy
import itertools
import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from book import Book
from errors import LendingError
from loan import Loan
from member import Member


class CatalogStore(ABC):
    @abstractmethod
    def save(self, book: Book) -> Book:
        """Insert a book without an id, or overwrite the stored row with its id."""

    @abstractmethod
    def find_by_id(self, book_id: int) -> Optional[Book]: ...

    @abstractmethod
    def exists_by_isbn(self, isbn: str) -> bool: ...

    @abstractmethod
    def exists_by_id(self, book_id: int) -> bool: ...

    @abstractmethod
    def set_borrowed(self, book_id: int, borrowed: bool) -> bool:
        """Flip the borrowed flag only if it currently holds the opposite value.

        Returns False when the flag already had the requested value (or the
        book is gone), so concurrent writers cannot both win the same transition.
        """

    @abstractmethod
    def delete_by_id(self, book_id: int) -> None: ...

    @abstractmethod
    def find_all(self) -> List[Book]: ...


class MemberStore(ABC):
    @abstractmethod
    def save(self, member: Member) -> Member:
        """Insert a member without an id, or overwrite the stored row with its id."""

    @abstractmethod
    def find_by_id(self, member_id: int) -> Optional[Member]: ...

    @abstractmethod
    def exists_by_email(self, email: str) -> bool: ...

    @abstractmethod
    def exists_by_id(self, member_id: int) -> bool: ...

    @abstractmethod
    def find_all(self) -> List[Member]: ...


class LoanStore(ABC):
    @abstractmethod
    def save(self, loan: Loan) -> Loan: ...

    @abstractmethod
    def find_active_by_book(self, book_id: int) -> Optional[Loan]: ...

    @abstractmethod
    def find_active_by_member(self, member_id: int) -> List[Loan]: ...


class _Arena:
    """Id-keyed records behind a single lock."""

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.rows: Dict[int, object] = {}
        self._ids = itertools.count(1)

    def next_id(self) -> int:
        return next(self._ids)


class InMemoryCatalogStore(CatalogStore):
    def __init__(self) -> None:
        self._arena = _Arena()

    def save(self, book: Book) -> Book:
        with self._arena.lock:
            for other in self._arena.rows.values():
                if other.isbn == book.isbn and other.id != book.id:
                    raise LendingError.duplicate_key("Book", "ISBN", book.isbn)
            stored = copy.copy(book)
            if stored.id is None:
                stored.id = self._arena.next_id()
            self._arena.rows[stored.id] = stored
            return copy.copy(stored)

    def find_by_id(self, book_id: int) -> Optional[Book]:
        with self._arena.lock:
            book = self._arena.rows.get(book_id)
            return copy.copy(book) if book else None

    def exists_by_isbn(self, isbn: str) -> bool:
        with self._arena.lock:
            return any(b.isbn == isbn for b in self._arena.rows.values())

    def exists_by_id(self, book_id: int) -> bool:
        with self._arena.lock:
            return book_id in self._arena.rows

    def set_borrowed(self, book_id: int, borrowed: bool) -> bool:
        with self._arena.lock:
            book = self._arena.rows.get(book_id)
            if book is None or book.borrowed == borrowed:
                return False
            book.borrowed = borrowed
            return True

    def delete_by_id(self, book_id: int) -> None:
        with self._arena.lock:
            self._arena.rows.pop(book_id, None)

    def find_all(self) -> List[Book]:
        with self._arena.lock:
            return [copy.copy(b) for b in self._arena.rows.values()]


class InMemoryMemberStore(MemberStore):
    def __init__(self) -> None:
        self._arena = _Arena()

    def save(self, member: Member) -> Member:
        with self._arena.lock:
            for other in self._arena.rows.values():
                if other.email == member.email and other.id != member.id:
                    raise LendingError.duplicate_key("Member", "email", member.email)
            stored = copy.copy(member)
            if stored.id is None:
                stored.id = self._arena.next_id()
            self._arena.rows[stored.id] = stored
            return copy.copy(stored)

    def find_by_id(self, member_id: int) -> Optional[Member]:
        with self._arena.lock:
            member = self._arena.rows.get(member_id)
            return copy.copy(member) if member else None

    def exists_by_email(self, email: str) -> bool:
        with self._arena.lock:
            return any(m.email == email for m in self._arena.rows.values())

    def exists_by_id(self, member_id: int) -> bool:
        with self._arena.lock:
            return member_id in self._arena.rows

    def find_all(self) -> List[Member]:
        with self._arena.lock:
            return [copy.copy(m) for m in self._arena.rows.values()]


class InMemoryLoanStore(LoanStore):
    def __init__(self) -> None:
        self._arena = _Arena()

    def save(self, loan: Loan) -> Loan:
        with self._arena.lock:
            if loan.active:
                for other in self._arena.rows.values():
                    if other.book_id == loan.book_id and other.active and other.id != loan.id:
                        raise LendingError.already_borrowed(loan.book_id)
            stored = copy.copy(loan)
            if stored.id is None:
                stored.id = self._arena.next_id()
            self._arena.rows[stored.id] = stored
            return copy.copy(stored)

    def find_active_by_book(self, book_id: int) -> Optional[Loan]:
        with self._arena.lock:
            for loan in self._arena.rows.values():
                if loan.book_id == book_id and loan.active:
                    return copy.copy(loan)
            return None

    def find_active_by_member(self, member_id: int) -> List[Loan]:
        with self._arena.lock:
            return [
                copy.copy(l)
                for l in self._arena.rows.values()
                if l.member_id == member_id and l.active
            ]
