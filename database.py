import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from config import settings
from errors import LendingError

logger = logging.getLogger(__name__)

# Default database file. Tests and callers may override this module attribute
# before building a Library so every store shares the same file.
DATABASE_FILE = settings.database_file


def get_db_connection(db_file: Optional[str] = None) -> sqlite3.Connection:
    """Open a connection to the SQLite database."""
    conn = sqlite3.connect(db_file or DATABASE_FILE, timeout=settings.database_timeout)
    conn.row_factory = sqlite3.Row
    # WAL lets readers proceed while a writer holds the lock
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


@contextmanager
def db_session(db_file: Optional[str] = None) -> Iterator[sqlite3.Connection]:
    """Yield a connection that commits on success and always closes.

    Integrity violations propagate so stores can report them as conflicts;
    any other SQLite failure is logged and reported as an internal error.
    """
    conn = None
    try:
        conn = get_db_connection(db_file)
        yield conn
        conn.commit()
    except sqlite3.IntegrityError:
        if conn is not None:
            conn.rollback()
        raise
    except sqlite3.Error as exc:
        if conn is not None:
            conn.rollback()
        logger.exception("SQLite operation failed on %s", db_file or DATABASE_FILE)
        raise LendingError.internal() from exc
    finally:
        if conn is not None:
            conn.close()


def create_tables(db_file: Optional[str] = None) -> None:
    """Create the catalog, member and loan tables if they don't exist."""
    with db_session(db_file) as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS books (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                author TEXT NOT NULL,
                isbn TEXT NOT NULL UNIQUE,
                borrowed INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS members (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                email TEXT NOT NULL UNIQUE,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        # Loans outlive their book: deleting a book closes its loan, it does not drop it
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS loans (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                book_id INTEGER NOT NULL,
                member_id INTEGER NOT NULL,
                borrowed_at TEXT NOT NULL,
                returned_at TEXT
            )
        """)

        cursor.execute("CREATE INDEX IF NOT EXISTS idx_books_title ON books(title)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_loans_member_id ON loans(member_id)")
        # One open loan per book
        cursor.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_loans_open_book "
            "ON loans(book_id) WHERE returned_at IS NULL"
        )


def initialize_database(db_file: Optional[str] = None) -> None:
    """Initialize the database, creating tables if needed."""
    create_tables(db_file)
    logger.debug("Database ready at %s", db_file or DATABASE_FILE)
