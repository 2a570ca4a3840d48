from __future__ import annotations


def normalize_email(email: str) -> str:
    """Emails compare case-insensitively, so they are stored lower-cased."""
    return email.strip().lower()


class Member:
    """A registered borrower, identified by a unique email."""

    def __init__(self, name: str, email: str, id: int | None = None,
                 created_at: str | None = None) -> None:
        self.id = id
        self.name = name.strip()
        self.email = normalize_email(email)
        self.created_at = created_at

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.name} <{self.email}>"

    def __repr__(self) -> str:
        return f"Member(id={self.id!r}, email={self.email!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Member):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    @staticmethod
    def from_dict(data: dict) -> "Member":
        return Member(
            id=data.get("id"),
            name=data["name"],
            email=data["email"],
            created_at=data.get("created_at"),
        )
