import os
import json
from typing import Any, Dict, List, Sequence
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()


def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode


def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()


def _print_rows(title: str, empty: str, columns: Sequence[str], rows: List[Dict[str, Any]],
                plain_line) -> None:
    mode = get_output_mode()

    if mode == "json":
        print(json.dumps(rows, ensure_ascii=False))
        return

    if not rows:
        print(empty)
        return

    if mode == "rich":
        table = Table(title=title, show_lines=True, header_style="bold cyan")
        for column in columns:
            table.add_column(column.replace("_", " ").title(), no_wrap=column == "id")
        for row in rows:
            table.add_row(*["" if row.get(c) is None else str(row.get(c)) for c in columns])
        _console.print(table)
    else:
        for row in rows:
            print(plain_line(row))


def print_books(books: List[Any]) -> None:
    """Print books as '<id> - <title> by <author> [ISBN <isbn>] (status)' lines,
    a JSON array, or a rich table."""
    rows = [b.to_dict() for b in books]
    _print_rows(
        "📚 Books", "No books in library.", ["id", "title", "author", "isbn", "borrowed"], rows,
        lambda r: (f"{r['id']} - {r['title']} by {r['author']} [ISBN {r['isbn']}] "
                   f"({'borrowed' if r['borrowed'] else 'available'})"),
    )


def print_members(members: List[Any]) -> None:
    rows = [m.to_dict() for m in members]
    _print_rows(
        "👥 Members", "No members registered.", ["id", "name", "email"], rows,
        lambda r: f"{r['id']} - {r['name']} <{r['email']}>",
    )


def print_loans(loans: List[Any]) -> None:
    rows = [l.to_dict() for l in loans]
    _print_rows(
        "📖 Open loans", "No open loans.", ["id", "book_id", "member_id", "borrowed_at"], rows,
        lambda r: f"Loan {r['id']}: book {r['book_id']} since {r['borrowed_at']}",
    )


def print_result(message: str, item: Any = None) -> None:
    """Print the outcome of a single-record command."""
    mode = get_output_mode()
    data = item.to_dict() if item is not None else None

    if mode == "json":
        print(json.dumps({"message": message, "data": data}, ensure_ascii=False))
    elif mode == "rich":
        body = f"[green]{message}[/]"
        if data:
            body += "\n" + "\n".join(f"[bold]{k}:[/] {v}" for k, v in data.items())
        _console.print(Panel.fit(body, title="✅ Success", border_style="green"))
    else:
        print(message)
        if data:
            for key, value in data.items():
                print(f"  {key}: {value}")


def print_error(title: str, detail: str) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps({"error": title, "detail": detail}, ensure_ascii=False))
    elif mode == "rich":
        _console.print(f"[bold red]Error:[/] {title}: {detail}")
    else:
        print(f"Error: {title}: {detail}")
