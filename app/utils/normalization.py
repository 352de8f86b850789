"""Input normalization helpers."""

from typing import Optional


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    return email.strip().lower() or None


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Strip whitespace and collapse multiple spaces. None if empty."""
    if not name:
        return None
    return " ".join(name.split()) or None


def blank_to_none(values: dict) -> dict:
    """Empty strings in an update payload clear the field."""
    return {key: (None if value == "" else value) for key, value in values.items()}
