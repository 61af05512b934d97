"""Declarative base shared by every ORM model."""

from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp with microseconds, as stored by every table."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
