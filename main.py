import subprocess
import sys
from functools import wraps
from typing import Optional

import typer

from config import settings
from errors import LendingError
from library import Library
from utils.ui_helpers import (
    print_books,
    print_error,
    print_loans,
    print_members,
    print_result,
    set_output_mode,
)
from utils.validators import validate_book_input, validate_member_input

APP_NAME = "Library Lending CLI"

app = typer.Typer(help=APP_NAME)


def reports_errors(func):
    """Print domain failures and exit with status 1 instead of a traceback."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except LendingError as e:
            print_error(e.title, e.detail)
            raise typer.Exit(code=1)
    return wrapper


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    if output:
        set_output_mode(output)


# --- Catalog ---
@app.command("books")
@reports_errors
def cli_books():
    """List every book in the catalog."""
    print_books(Library().list_books())


@app.command("add-book")
@reports_errors
def cli_add_book(title: str, author: str, isbn: str):
    """Add a book to the catalog."""
    title, author, isbn = validate_book_input(title, author, isbn)
    book = Library().create_book(title, author, isbn)
    print_result(f"Book created with ID {book.id}", book)


@app.command("update-book")
@reports_errors
def cli_update_book(book_id: int, title: str, author: str, isbn: str):
    """Replace a book's title, author and ISBN."""
    title, author, isbn = validate_book_input(title, author, isbn)
    book = Library().update_book(book_id, title, author, isbn)
    print_result(f"Book {book.id} updated", book)


@app.command("delete-book")
@reports_errors
def cli_delete_book(book_id: int):
    """Remove a book from the catalog."""
    Library().delete_book(book_id)
    print_result(f"Book {book_id} deleted")


# --- Members ---
@app.command("members")
@reports_errors
def cli_members():
    """List registered members."""
    print_members(Library().list_members())


@app.command("register")
@reports_errors
def cli_register(name: str, email: str):
    """Register a new member."""
    name, email = validate_member_input(name, email)
    member = Library().register_member(name, email)
    print_result(f"Member registered with ID {member.id}", member)


@app.command("loans")
@reports_errors
def cli_loans(member_id: int):
    """Show a member's open loans."""
    print_loans(Library().member_loans(member_id))


# --- Lending ---
@app.command("borrow")
@reports_errors
def cli_borrow(book_id: int, member_id: int):
    """Lend a book to a member."""
    book = Library().borrow(book_id, member_id)
    print_result(f"Book {book.id} borrowed by member {member_id}", book)


@app.command("return")
@reports_errors
def cli_return(book_id: int):
    """Take a borrowed book back."""
    book = Library().return_book(book_id)
    print_result(f"Book {book.id} returned", book)


@app.command("serve")
def cli_serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address"),
    port: Optional[int] = typer.Option(None, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Restart on code changes"),
):
    """Start the HTTP API with uvicorn."""
    host = host or settings.api_host
    port = int(port or settings.api_port)
    print(f"Starting API on http://{host}:{port}/")
    args = [
        sys.executable,
        "-m", "uvicorn",
        "api:app",
        "--host", host,
        "--port", str(port),
        "--log-level", settings.log_level.lower(),
    ]
    if reload:
        args.append("--reload")
    try:
        subprocess.run(args, check=False)
    except FileNotFoundError:
        print("Error: could not launch uvicorn. Make sure it is installed.")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
