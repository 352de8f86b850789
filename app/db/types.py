"""Custom SQLAlchemy column types."""

from __future__ import annotations

import json

from sqlalchemy import JSON, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator

from app.core.visibility import parse_visible_to

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests/dev)
JsonType = JSON().with_variant(JSONB(), "postgresql")


class VisibleToList(TypeDecorator):
    """
    Explicit read grants stored as a JSON array of user id strings.

    Only well-formed arrays are written, whatever the caller passes. Values
    read back are always a list of UUIDs; legacy or malformed text decodes to
    an empty list (no grants).
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        ids = sorted(str(user_id) for user_id in parse_visible_to(value).user_ids)
        return json.dumps(ids)

    def process_result_value(self, value, dialect):
        return sorted(parse_visible_to(value).user_ids, key=str)
