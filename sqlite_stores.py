import sqlite3
from typing import List, Optional

from book import Book
from database import db_session
from errors import LendingError
from loan import Loan
from member import Member
from stores import CatalogStore, LoanStore, MemberStore


class SqliteCatalogStore(CatalogStore):
    """Catalog rows in the ``books`` table."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    def save(self, book: Book) -> Book:
        try:
            with db_session(self.db_file) as conn:
                if book.id is None:
                    cursor = conn.execute(
                        "INSERT INTO books (title, author, isbn, borrowed) VALUES (?, ?, ?, ?)",
                        (book.title, book.author, book.isbn, int(book.borrowed)),
                    )
                    book_id = cursor.lastrowid
                else:
                    conn.execute(
                        "UPDATE books SET title = ?, author = ?, isbn = ?, borrowed = ? WHERE id = ?",
                        (book.title, book.author, book.isbn, int(book.borrowed), book.id),
                    )
                    book_id = book.id
                row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        except sqlite3.IntegrityError as e:
            raise LendingError.duplicate_key("Book", "ISBN", book.isbn) from e
        return Book.from_dict(dict(row))

    def find_by_id(self, book_id: int) -> Optional[Book]:
        with db_session(self.db_file) as conn:
            row = conn.execute("SELECT * FROM books WHERE id = ?", (book_id,)).fetchone()
        return Book.from_dict(dict(row)) if row else None

    def exists_by_isbn(self, isbn: str) -> bool:
        with db_session(self.db_file) as conn:
            row = conn.execute("SELECT 1 FROM books WHERE isbn = ?", (isbn,)).fetchone()
        return row is not None

    def exists_by_id(self, book_id: int) -> bool:
        with db_session(self.db_file) as conn:
            row = conn.execute("SELECT 1 FROM books WHERE id = ?", (book_id,)).fetchone()
        return row is not None

    def set_borrowed(self, book_id: int, borrowed: bool) -> bool:
        # Conditional update: a second process racing the same transition matches no row
        with db_session(self.db_file) as conn:
            cursor = conn.execute(
                "UPDATE books SET borrowed = ? WHERE id = ? AND borrowed = ?",
                (int(borrowed), book_id, int(not borrowed)),
            )
        return cursor.rowcount == 1

    def delete_by_id(self, book_id: int) -> None:
        with db_session(self.db_file) as conn:
            conn.execute("DELETE FROM books WHERE id = ?", (book_id,))

    def find_all(self) -> List[Book]:
        with db_session(self.db_file) as conn:
            rows = conn.execute("SELECT * FROM books ORDER BY id").fetchall()
        return [Book.from_dict(dict(row)) for row in rows]


class SqliteMemberStore(MemberStore):
    """Member rows in the ``members`` table."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    def save(self, member: Member) -> Member:
        try:
            with db_session(self.db_file) as conn:
                if member.id is None:
                    cursor = conn.execute(
                        "INSERT INTO members (name, email) VALUES (?, ?)",
                        (member.name, member.email),
                    )
                    member_id = cursor.lastrowid
                else:
                    conn.execute(
                        "UPDATE members SET name = ?, email = ? WHERE id = ?",
                        (member.name, member.email, member.id),
                    )
                    member_id = member.id
                row = conn.execute("SELECT * FROM members WHERE id = ?", (member_id,)).fetchone()
        except sqlite3.IntegrityError as e:
            raise LendingError.duplicate_key("Member", "email", member.email) from e
        return Member.from_dict(dict(row))

    def find_by_id(self, member_id: int) -> Optional[Member]:
        with db_session(self.db_file) as conn:
            row = conn.execute("SELECT * FROM members WHERE id = ?", (member_id,)).fetchone()
        return Member.from_dict(dict(row)) if row else None

    def exists_by_email(self, email: str) -> bool:
        with db_session(self.db_file) as conn:
            row = conn.execute("SELECT 1 FROM members WHERE email = ?", (email,)).fetchone()
        return row is not None

    def exists_by_id(self, member_id: int) -> bool:
        with db_session(self.db_file) as conn:
            row = conn.execute("SELECT 1 FROM members WHERE id = ?", (member_id,)).fetchone()
        return row is not None

    def find_all(self) -> List[Member]:
        with db_session(self.db_file) as conn:
            rows = conn.execute("SELECT * FROM members ORDER BY id").fetchall()
        return [Member.from_dict(dict(row)) for row in rows]


class SqliteLoanStore(LoanStore):
    """Loan history in the ``loans`` table."""

    def __init__(self, db_file: Optional[str] = None) -> None:
        self.db_file = db_file

    def save(self, loan: Loan) -> Loan:
        try:
            with db_session(self.db_file) as conn:
                if loan.id is None:
                    cursor = conn.execute(
                        "INSERT INTO loans (book_id, member_id, borrowed_at, returned_at) VALUES (?, ?, ?, ?)",
                        (loan.book_id, loan.member_id, loan.borrowed_at, loan.returned_at),
                    )
                    loan_id = cursor.lastrowid
                else:
                    conn.execute(
                        "UPDATE loans SET returned_at = ? WHERE id = ? AND returned_at IS NULL",
                        (loan.returned_at, loan.id),
                    )
                    loan_id = loan.id
                row = conn.execute("SELECT * FROM loans WHERE id = ?", (loan_id,)).fetchone()
        except sqlite3.IntegrityError as e:
            # idx_loans_open_book: another open loan already holds this book
            raise LendingError.already_borrowed(loan.book_id) from e
        return Loan.from_dict(dict(row))

    def find_active_by_book(self, book_id: int) -> Optional[Loan]:
        with db_session(self.db_file) as conn:
            row = conn.execute(
                "SELECT * FROM loans WHERE book_id = ? AND returned_at IS NULL", (book_id,)
            ).fetchone()
        return Loan.from_dict(dict(row)) if row else None

    def find_active_by_member(self, member_id: int) -> List[Loan]:
        with db_session(self.db_file) as conn:
            rows = conn.execute(
                "SELECT * FROM loans WHERE member_id = ? AND returned_at IS NULL ORDER BY id",
                (member_id,),
            ).fetchall()
        return [Loan.from_dict(dict(row)) for row in rows]
