"""Email and name validation helpers."""

import re

_EMAIL_PATTERN = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


def normalize_email(email: str) -> str:
    """Lower-case and trim an email address for storage and lookup."""
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    """Check email format."""
    return bool(_EMAIL_PATTERN.match(normalize_email(email)))


def is_valid_name(name: str) -> bool:
    """Check that a name has between 2 and 100 characters after trimming."""
    trimmed = (name or "").strip()
    return 2 <= len(trimmed) <= 100
