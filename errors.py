"""Domain failures reported by the lending core.

Every failure the core can report is a ``LendingError`` tagged with one
``ErrorKind`` and, for the kinds that need it, one ``Reason``. The set of
(kind, reason) pairs is closed; request layers map them to responses
without inspecting messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID_STATE = "invalid_state"
    VALIDATION_FAILED = "validation_failed"
    UNAUTHORIZED = "unauthorized"
    INTERNAL = "internal"


class Reason(str, Enum):
    BOOK = "book"
    MEMBER = "member"
    DUPLICATE_KEY = "duplicate_key"
    ALREADY_BORROWED = "already_borrowed"
    NOT_BORROWED = "not_borrowed"


_ALLOWED_REASONS = {
    ErrorKind.NOT_FOUND: {Reason.BOOK, Reason.MEMBER},
    ErrorKind.CONFLICT: {Reason.DUPLICATE_KEY, Reason.ALREADY_BORROWED},
    ErrorKind.INVALID_STATE: {Reason.NOT_BORROWED},
    ErrorKind.VALIDATION_FAILED: {None},
    ErrorKind.UNAUTHORIZED: {None},
    ErrorKind.INTERNAL: {None},
}

_TITLES = {
    (ErrorKind.NOT_FOUND, Reason.BOOK): "Book not found",
    (ErrorKind.NOT_FOUND, Reason.MEMBER): "Member not found",
    (ErrorKind.CONFLICT, Reason.DUPLICATE_KEY): "Duplicate resource",
    (ErrorKind.CONFLICT, Reason.ALREADY_BORROWED): "Book already borrowed",
    (ErrorKind.INVALID_STATE, Reason.NOT_BORROWED): "Book not borrowed",
    (ErrorKind.VALIDATION_FAILED, None): "Validation failed",
    (ErrorKind.UNAUTHORIZED, None): "Unauthorized",
    (ErrorKind.INTERNAL, None): "Internal server error",
}

INTERNAL_DETAIL = "An unexpected error occurred"


class LendingError(Exception):
    """A reported failure of a catalog, membership or lending operation."""

    def __init__(
        self,
        kind: ErrorKind,
        detail: str,
        reason: Optional[Reason] = None,
        fields: Optional[Dict[str, str]] = None,
    ) -> None:
        if reason not in _ALLOWED_REASONS[kind]:
            raise ValueError(f"{reason!r} is not a valid reason for {kind.value}")
        super().__init__(detail)
        self.kind = kind
        self.reason = reason
        self.detail = detail
        self.fields: Dict[str, str] = dict(fields or {})

    @property
    def title(self) -> str:
        return _TITLES[(self.kind, self.reason)]

    def __repr__(self) -> str:
        reason = f", reason={self.reason.value}" if self.reason else ""
        return f"LendingError(kind={self.kind.value}{reason}, detail={self.detail!r})"

    # ------------------------- Constructors ------------------------- #
    @classmethod
    def book_not_found(cls, book_id) -> "LendingError":
        return cls(ErrorKind.NOT_FOUND, f"Book not found with ID: {book_id}", Reason.BOOK)

    @classmethod
    def member_not_found(cls, member_id) -> "LendingError":
        return cls(ErrorKind.NOT_FOUND, f"Member not found with ID: {member_id}", Reason.MEMBER)

    @classmethod
    def duplicate_key(cls, entity: str, field: str, value: str) -> "LendingError":
        return cls(
            ErrorKind.CONFLICT,
            f"{entity} with {field} {value} already exists",
            Reason.DUPLICATE_KEY,
        )

    @classmethod
    def already_borrowed(cls, book_id) -> "LendingError":
        return cls(
            ErrorKind.CONFLICT,
            f"Book with ID {book_id} is already borrowed",
            Reason.ALREADY_BORROWED,
        )

    @classmethod
    def not_borrowed(cls, book_id) -> "LendingError":
        return cls(
            ErrorKind.INVALID_STATE,
            f"Book with ID {book_id} is not currently borrowed",
            Reason.NOT_BORROWED,
        )

    @classmethod
    def validation_failed(cls, fields: Dict[str, str]) -> "LendingError":
        summary = ", ".join(f"{name}: {why}" for name, why in sorted(fields.items()))
        return cls(ErrorKind.VALIDATION_FAILED, summary, fields=fields)

    @classmethod
    def unauthorized(cls, detail: str = "Authentication required") -> "LendingError":
        return cls(ErrorKind.UNAUTHORIZED, detail)

    @classmethod
    def internal(cls) -> "LendingError":
        return cls(ErrorKind.INTERNAL, INTERNAL_DETAIL)
