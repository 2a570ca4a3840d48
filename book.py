from __future__ import annotations


class Book:
    """Represents a single catalog entry in the library."""

    def __init__(self, title: str, author: str, isbn: str, id: int | None = None,
                 borrowed: bool = False, created_at: str | None = None) -> None:
        self.id = id
        self.title = title.strip()
        self.author = author.strip()
        self.isbn = isbn.strip()
        # Only the lending desk flips this flag
        self.borrowed = bool(borrowed)
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (ISBN: {self.isbn})"

    def __repr__(self) -> str:
        return f"Book(id={self.id!r}, isbn={self.isbn!r}, borrowed={self.borrowed!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "isbn": self.isbn,
            "borrowed": self.borrowed,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # SQLite hands the flag back as 0/1
        return Book(
            id=data.get("id"),
            title=data["title"],
            author=data["author"],
            isbn=data["isbn"],
            borrowed=bool(data.get("borrowed", False)),
            created_at=data.get("created_at"),
        )
