"""
SQLAlchemy declarative base for the universal schema.

Production runs on PostgreSQL; tests run the same models on SQLite.
"""

from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


def _utc_now() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Base class for all HERA SQLAlchemy models.

    Every tenant-owned table carries an organization_id foreign key so
    queries can be isolated per organization.
    """

    pass
