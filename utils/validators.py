import re
from typing import Dict, Optional, Tuple

from errors import LendingError
from member import normalize_email

BLANK = "must not be blank"
BAD_EMAIL = "must be a well-formed email address"

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class TextValidator:
    """Basic text checks shared by the request layers."""

    @staticmethod
    def clean(text: Optional[str]) -> str:
        if text is None:
            return ""
        return str(text).strip()

    @staticmethod
    def is_blank(text: Optional[str]) -> bool:
        return not TextValidator.clean(text)

    @staticmethod
    def is_email(text: Optional[str]) -> bool:
        return bool(_EMAIL_RE.match(TextValidator.clean(text)))


def _require(fields: Dict[str, Optional[str]]) -> Tuple[Dict[str, str], Dict[str, str]]:
    cleaned = {name: TextValidator.clean(value) for name, value in fields.items()}
    errors = {name: BLANK for name, value in cleaned.items() if not value}
    return cleaned, errors


def validate_book_input(title: Optional[str], author: Optional[str],
                        isbn: Optional[str]) -> Tuple[str, str, str]:
    """Return stripped (title, author, isbn) or fail with every bad field."""
    cleaned, errors = _require({"title": title, "author": author, "isbn": isbn})
    if errors:
        raise LendingError.validation_failed(errors)
    return cleaned["title"], cleaned["author"], cleaned["isbn"]


def validate_member_input(name: Optional[str], email: Optional[str]) -> Tuple[str, str]:
    """Return stripped name and lower-cased email or fail with every bad field."""
    cleaned, errors = _require({"name": name, "email": email})
    if "email" not in errors and not TextValidator.is_email(cleaned["email"]):
        errors["email"] = BAD_EMAIL
    if errors:
        raise LendingError.validation_failed(errors)
    return cleaned["name"], normalize_email(cleaned["email"])
