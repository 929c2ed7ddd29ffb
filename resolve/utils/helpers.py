"""
Common utility functions and helpers.
"""
from datetime import datetime, timezone
from typing import List, Optional
import enum
import random
import re
import string
import time

from sqlalchemy import inspect as sa_inspect

from resolve.errors import ValidationFailed


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


def as_aware(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes.

    Some drivers (SQLite) hand back naive values even for timezone-aware
    columns.
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def epoch_millis() -> int:
    return int(time.time() * 1000)


def random_token(length: int = 9, alphabet: str = string.ascii_uppercase + string.digits) -> str:
    return "".join(random.choices(alphabet, k=length))


def generate_reference_number(prefix: str) -> str:
    """
    Build a human-readable unique reference such as ``CASE-1718000000000-AB12CD34E``.

    Args:
        prefix: ``CASE`` or ``CONTRACT``

    Returns:
        Reference string
    """
    return f"{prefix}-{epoch_millis()}-{random_token()}"


def safe_path_segment(value: str) -> str:
    """
    Reduce *value* to characters that are safe inside an object-storage key.

    Args:
        value: Raw path segment (user id, category, ...)

    Returns:
        Sanitised segment, never empty
    """
    cleaned = re.sub(r"[^A-Za-z0-9_\-]", "_", value.strip())
    return cleaned or "_"


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to maximum length.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated text
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def apply_partial_update(record, update) -> List[str]:
    """
    Copy the fields explicitly set on a pydantic *update* onto an ORM *record*.

    An explicit ``null`` is only accepted for nullable columns; for the rest it
    raises ``ValidationFailed`` before anything is written.

    Returns:
        Names of the fields whose value actually changed
    """
    values = update.model_dump(exclude_unset=True)
    columns = sa_inspect(record).mapper.columns
    cleared = sorted(
        field for field, value in values.items()
        if value is None and field in columns and not columns[field].nullable
    )
    if cleared:
        raise ValidationFailed(f"Field(s) cannot be null: {', '.join(cleared)}")

    changed = []
    for field, value in values.items():
        if isinstance(value, enum.Enum):
            value = value.value
        if getattr(record, field) != value:
            setattr(record, field, value)
            changed.append(field)
    return changed
