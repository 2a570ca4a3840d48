import logging
from typing import List, Optional

import database
from book import Book
from config import settings
from database import initialize_database
from errors import LendingError
from guards import KeyedLock, book_key, email_key, ensure_unique, isbn_key, member_key
from lending import LendingDesk
from loan import Loan
from member import Member, normalize_email
from sqlite_stores import SqliteCatalogStore, SqliteLoanStore, SqliteMemberStore
from stores import (
    CatalogStore,
    InMemoryCatalogStore,
    InMemoryLoanStore,
    InMemoryMemberStore,
    LoanStore,
    MemberStore,
)

# Configure logging
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


class Library:
    """Catalog, membership and lending operations over a set of stores.

    Every write takes the locks of the records and unique keys it touches,
    so a check and the write that depends on it cannot interleave with
    another writer of the same record. Operations on unrelated records run
    in parallel.
    """

    def __init__(
        self,
        db_file: Optional[str] = None,
        *,
        catalog: Optional[CatalogStore] = None,
        members: Optional[MemberStore] = None,
        loans: Optional[LoanStore] = None,
    ) -> None:
        if catalog is None or members is None or loans is None:
            # Read at call time so tests can point database.DATABASE_FILE elsewhere
            db_file = db_file or database.DATABASE_FILE
            initialize_database(db_file)
            catalog = catalog if catalog is not None else SqliteCatalogStore(db_file)
            members = members if members is not None else SqliteMemberStore(db_file)
            loans = loans if loans is not None else SqliteLoanStore(db_file)
        self.db_file = db_file
        self.catalog = catalog
        self.members = members
        self.loans = loans
        self.locks = KeyedLock()
        self.desk = LendingDesk(catalog, members, loans, self.locks)

    @classmethod
    def in_memory(cls) -> "Library":
        return cls(
            catalog=InMemoryCatalogStore(),
            members=InMemoryMemberStore(),
            loans=InMemoryLoanStore(),
        )

    # ------------------------- Catalog ------------------------- #
    def create_book(self, title: str, author: str, isbn: str) -> Book:
        logger.debug("Creating book with ISBN: %s", isbn)
        with self.locks.hold(isbn_key(isbn)):
            ensure_unique(self.catalog.exists_by_isbn, isbn, "Book", "ISBN")
            book = self.catalog.save(Book(title=title, author=author, isbn=isbn))
        logger.info("Book created successfully with ID: %s", book.id)
        return book

    def list_books(self) -> List[Book]:
        return self.catalog.find_all()

    def get_book(self, book_id: int) -> Book:
        book = self.catalog.find_by_id(book_id)
        if book is None:
            raise LendingError.book_not_found(book_id)
        return book

    def update_book(self, book_id: int, title: str, author: str, isbn: str) -> Book:
        """Replace a book's title, author and ISBN. The borrowed flag is kept."""
        logger.debug("Updating book with ID: %s", book_id)
        with self.locks.hold(book_key(book_id), isbn_key(isbn)):
            book = self.get_book(book_id)
            ensure_unique(self.catalog.exists_by_isbn, isbn, "Book", "ISBN", current=book.isbn)
            book.title = title
            book.author = author
            book.isbn = isbn
            book = self.catalog.save(book)
        logger.info("Book updated successfully with ID: %s", book.id)
        return book

    def delete_book(self, book_id: int) -> None:
        """Remove a book. A borrowed book may be deleted; its open loan is closed."""
        logger.debug("Deleting book with ID: %s", book_id)
        with self.locks.hold(book_key(book_id)):
            if not self.catalog.exists_by_id(book_id):
                raise LendingError.book_not_found(book_id)
            if self.desk.close_loan(book_id) is not None:
                logger.warning("Deleted book with ID: %s while it was borrowed", book_id)
            self.catalog.delete_by_id(book_id)
        logger.info("Book deleted successfully with ID: %s", book_id)

    # ------------------------- Members ------------------------- #
    def register_member(self, name: str, email: str) -> Member:
        email = normalize_email(email)
        logger.debug("Registering member with email: %s", email)
        with self.locks.hold(email_key(email)):
            ensure_unique(self.members.exists_by_email, email, "Member", "email")
            member = self.members.save(Member(name=name, email=email))
        logger.info("Member registered successfully with ID: %s", member.id)
        return member

    def list_members(self) -> List[Member]:
        return self.members.find_all()

    def get_member(self, member_id: int) -> Member:
        member = self.members.find_by_id(member_id)
        if member is None:
            raise LendingError.member_not_found(member_id)
        return member

    def update_member(self, member_id: int, name: str, email: str) -> Member:
        email = normalize_email(email)
        logger.debug("Updating member with ID: %s", member_id)
        with self.locks.hold(member_key(member_id), email_key(email)):
            member = self.get_member(member_id)
            ensure_unique(self.members.exists_by_email, email, "Member", "email", current=member.email)
            member.name = name
            member.email = email
            member = self.members.save(member)
        logger.info("Member updated successfully with ID: %s", member.id)
        return member

    # ------------------------- Lending ------------------------- #
    def borrow(self, book_id: int, member_id: int) -> Book:
        return self.desk.borrow(book_id, member_id)

    def return_book(self, book_id: int) -> Book:
        return self.desk.give_back(book_id)

    def member_loans(self, member_id: int) -> List[Loan]:
        """Open loans held by a member."""
        return self.desk.active_loans(member_id)
