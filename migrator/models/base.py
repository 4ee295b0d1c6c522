"""Base model definitions and common mixins."""

import json
from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import DateTime, String, Text, TypeDecorator, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column


def new_id() -> str:
    """Generate a Core-style text primary key."""
    return str(uuid4())


class JSONType(TypeDecorator):
    """A JSON type that works with both PostgreSQL (JSONB) and SQLite (TEXT).

    Uses JSONB on PostgreSQL and falls back to TEXT with JSON serialization
    on SQLite, which backs the local store and the tests.
    """

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect):
        """Load the appropriate implementation for the database dialect."""
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        """Process value before sending to database."""
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value
        return json.dumps(value, default=str)

    def process_result_value(self, value: Any, dialect: Dialect) -> Any:
        """Process value from database."""
        if value is None:
            return value
        if dialect.name == "postgresql":
            return value
        if isinstance(value, str):
            return json.loads(value)
        return value


class TextIdMixin:
    """Mixin for text UUID primary keys, the Core id convention."""

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=new_id,
    )


class TimestampMixin:
    """Mixin for createdAt and updatedAt columns.

    Migrated rows carry the source document's timestamps, so both are set
    explicitly on insert; the server defaults only cover rows created elsewhere.
    """

    created_at: Mapped[datetime] = mapped_column(
        "createdAt",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        "updatedAt",
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
