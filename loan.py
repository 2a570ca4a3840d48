from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class Loan:
    """Links a borrowed book to the member holding it.

    A loan is open while ``returned_at`` is None. At most one open loan
    exists per book.
    """

    def __init__(self, book_id: int, member_id: int, borrowed_at: str | None = None,
                 returned_at: str | None = None, id: int | None = None) -> None:
        self.id = id
        self.book_id = book_id
        self.member_id = member_id
        self.borrowed_at = borrowed_at or utc_now()
        self.returned_at = returned_at

    @property
    def active(self) -> bool:
        return self.returned_at is None

    def close(self, when: str | None = None) -> None:
        self.returned_at = when or utc_now()

    def __repr__(self) -> str:
        return (f"Loan(id={self.id!r}, book_id={self.book_id!r}, "
                f"member_id={self.member_id!r}, active={self.active!r})")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "book_id": self.book_id,
            "member_id": self.member_id,
            "borrowed_at": self.borrowed_at,
            "returned_at": self.returned_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Loan":
        return Loan(
            id=data.get("id"),
            book_id=data["book_id"],
            member_id=data["member_id"],
            borrowed_at=data.get("borrowed_at"),
            returned_at=data.get("returned_at"),
        )
