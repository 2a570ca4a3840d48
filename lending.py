"""Borrow/return state machine for catalog entries.

Each book is either AVAILABLE or BORROWED; it starts AVAILABLE and cycles
between the two. ``LendingDesk`` runs every transition under the book's
lock, so for one book the state check and the write form a single step.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional

from book import Book
from errors import LendingError
from guards import KeyedLock, book_key
from loan import Loan, utc_now
from stores import CatalogStore, LoanStore, MemberStore

logger = logging.getLogger(__name__)


class LendingState(Enum):
    AVAILABLE = "available"
    BORROWED = "borrowed"


def state_of(book: Book) -> LendingState:
    return LendingState.BORROWED if book.borrowed else LendingState.AVAILABLE


def check_out(book: Book) -> Book:
    """AVAILABLE -> BORROWED."""
    if state_of(book) is LendingState.BORROWED:
        raise LendingError.already_borrowed(book.id)
    book.borrowed = True
    return book


def check_in(book: Book) -> Book:
    """BORROWED -> AVAILABLE."""
    if state_of(book) is not LendingState.BORROWED:
        raise LendingError.not_borrowed(book.id)
    book.borrowed = False
    return book


class LendingDesk:
    def __init__(self, catalog: CatalogStore, members: MemberStore, loans: LoanStore,
                 locks: Optional[KeyedLock] = None) -> None:
        self.catalog = catalog
        self.members = members
        self.loans = loans
        self.locks = locks or KeyedLock()

    def borrow(self, book_id: int, member_id: int) -> Book:
        """Lend a book to a member and return the book's new state.

        Checks run book, then member, then state: a request naming a missing
        book reports the book even when the member is missing too. The flag
        flips first; if the loan cannot be recorded the flip is undone.
        """
        logger.debug("Processing borrow request for book ID: %s by member ID: %s", book_id, member_id)
        with self.locks.hold(book_key(book_id)):
            book = self.catalog.find_by_id(book_id)
            if book is None:
                raise LendingError.book_not_found(book_id)
            if not self.members.exists_by_id(member_id):
                raise LendingError.member_not_found(member_id)
            check_out(book)
            if not self.catalog.set_borrowed(book_id, True):
                # Another process took the book after our read
                raise LendingError.already_borrowed(book_id)
            try:
                # The flag is authoritative: an open loan on an available book is left over
                if self.close_loan(book_id) is not None:
                    logger.warning("Closed stale open loan for available book ID: %s", book_id)
                self.loans.save(Loan(book_id=book_id, member_id=member_id))
            except Exception:
                self._restore_flag(book_id, False)
                raise
        logger.info("Book with ID: %s successfully borrowed by member ID: %s", book_id, member_id)
        return book

    def give_back(self, book_id: int) -> Book:
        """Return a borrowed book and return the book's new state."""
        logger.debug("Processing return request for book ID: %s", book_id)
        with self.locks.hold(book_key(book_id)):
            book = self.catalog.find_by_id(book_id)
            if book is None:
                raise LendingError.book_not_found(book_id)
            check_in(book)
            loan = self.loans.find_active_by_book(book_id)
            if not self.catalog.set_borrowed(book_id, False):
                raise LendingError.not_borrowed(book_id)
            if loan is not None:
                loan.close(utc_now())
                try:
                    self.loans.save(loan)
                except Exception:
                    self._restore_flag(book_id, True)
                    raise
        logger.info("Book with ID: %s successfully returned", book_id)
        return book

    def _restore_flag(self, book_id: int, borrowed: bool) -> None:
        """Undo a flag flip after the matching loan write failed.

        A failure here is logged and the original error is left to propagate;
        the next borrow closes any loan left open on an available book.
        """
        try:
            self.catalog.set_borrowed(book_id, borrowed)
        except Exception:
            logger.exception("Could not restore borrowed=%s on book ID: %s", borrowed, book_id)

    def close_loan(self, book_id: int) -> Optional[Loan]:
        """Close the book's open loan, if any. Callers hold the book's lock."""
        loan = self.loans.find_active_by_book(book_id)
        if loan is None:
            return None
        loan.close(utc_now())
        return self.loans.save(loan)

    def active_loans(self, member_id: int) -> List[Loan]:
        if not self.members.exists_by_id(member_id):
            raise LendingError.member_not_found(member_id)
        return self.loans.find_active_by_member(member_id)
