import json
from unittest.mock import patch

from typer.testing import CliRunner

from main import app

runner = CliRunner()


def test_books_empty(lib):
    result = runner.invoke(app, ["books"])
    assert result.exit_code == 0
    assert "No books in library." in result.output


def test_add_and_list_books(lib):
    result = runner.invoke(app, ["add-book", "Dune", "Herbert", "111"])
    assert result.exit_code == 0
    assert "Book created with ID 1" in result.output

    result = runner.invoke(app, ["books"])
    assert "1 - Dune by Herbert [ISBN 111] (available)" in result.output
    assert lib.get_book(1).title == "Dune"


def test_add_book_duplicate_isbn_exits_with_error(lib):
    runner.invoke(app, ["add-book", "Dune", "Herbert", "111"])

    result = runner.invoke(app, ["add-book", "Copy", "Someone", "111"])

    assert result.exit_code == 1
    assert "Error: Duplicate resource: Book with ISBN 111 already exists" in result.output


def test_add_book_blank_title(lib):
    result = runner.invoke(app, ["add-book", " ", "Herbert", "111"])
    assert result.exit_code == 1
    assert "Validation failed" in result.output
    assert lib.list_books() == []


def test_update_and_delete_book(lib):
    book = lib.create_book("Dune", "Herbert", "111")

    result = runner.invoke(app, ["update-book", str(book.id), "Dune Messiah", "Herbert", "111"])
    assert result.exit_code == 0
    assert f"Book {book.id} updated" in result.output
    assert lib.get_book(book.id).title == "Dune Messiah"

    result = runner.invoke(app, ["delete-book", str(book.id)])
    assert result.exit_code == 0
    assert f"Book {book.id} deleted" in result.output

    result = runner.invoke(app, ["delete-book", str(book.id)])
    assert result.exit_code == 1
    assert "Book not found" in result.output


def test_register_and_list_members(lib):
    result = runner.invoke(app, ["register", "Ada", "Ada@Example.com"])
    assert result.exit_code == 0
    assert "Member registered with ID 1" in result.output

    result = runner.invoke(app, ["members"])
    assert "1 - Ada <ada@example.com>" in result.output


def test_borrow_return_cycle(lib):
    book = lib.create_book("Dune", "Herbert", "111")
    member = lib.register_member("Ada", "ada@example.com")

    result = runner.invoke(app, ["borrow", str(book.id), str(member.id)])
    assert result.exit_code == 0
    assert f"Book {book.id} borrowed by member {member.id}" in result.output

    result = runner.invoke(app, ["loans", str(member.id)])
    assert f"book {book.id} since" in result.output

    result = runner.invoke(app, ["borrow", str(book.id), str(member.id)])
    assert result.exit_code == 1
    assert "Book already borrowed" in result.output

    result = runner.invoke(app, ["return", str(book.id)])
    assert result.exit_code == 0
    assert f"Book {book.id} returned" in result.output

    result = runner.invoke(app, ["return", str(book.id)])
    assert result.exit_code == 1
    assert "Book not borrowed" in result.output

    result = runner.invoke(app, ["loans", str(member.id)])
    assert "No open loans." in result.output


def test_json_output(lib):
    lib.create_book("Dune", "Herbert", "111")

    result = runner.invoke(app, ["--output", "json", "books"])

    assert result.exit_code == 0
    rows = json.loads(result.output)
    assert rows[0]["isbn"] == "111"
    assert rows[0]["borrowed"] is False


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run, lib):
    result = runner.invoke(app, ["serve", "--port", "9001"])
    assert result.exit_code == 0
    assert "Starting API on http://" in result.output
    mock_subprocess_run.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "api:app" in args
    assert args[args.index("--port") + 1] == "9001"
    assert "--reload" not in args
