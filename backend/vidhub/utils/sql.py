"""
SQL utilities shared by services.

COUNT results may come back as int or as a 1-tuple/Row depending on how the
statement was built; scalar_int() coerces either to int.
"""
from typing import Any

from sqlalchemy.exc import IntegrityError


def scalar_int(x: Any) -> int:
    """Convert COUNT/aggregate result to int. Handles int or 1-tuple/Row."""
    try:
        return int(x[0])
    except TypeError:
        return int(x)


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the IntegrityError came from a UNIQUE constraint (SQLite or Postgres)."""
    message = str(getattr(exc, "orig", exc))
    return "UNIQUE constraint failed" in message or "duplicate key value" in message
