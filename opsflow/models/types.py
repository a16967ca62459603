# -*- coding: utf-8 -*-
from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.types import TypeDecorator

from opsflow.database import db


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def as_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------
# JSON helpers that store Python lists/dicts in TEXT columns
# ---------------------------------------------------------
class JSONList(TypeDecorator):
    """
    Store a Python list in a TEXT column as JSON.
    Always returns a Python list (empty list if null/invalid).

    Values are not mutation-tracked: assign a new list to persist a change.
    """
    impl = db.Text
    cache_ok = True

    def process_bind_param(self, value: Optional[List[Any]], dialect):
        if value is None:
            return None
        return json.dumps(value, default=str)

    def process_result_value(self, value: Optional[str], dialect):
        if not value:
            return []
        try:
            v = json.loads(value)
        except ValueError:
            return []
        return v if isinstance(v, list) else []


class JSONDict(TypeDecorator):
    """
    Store a Python dict in a TEXT column as JSON.
    Always returns a Python dict (empty dict if null/invalid).
    """
    impl = db.Text
    cache_ok = True

    def process_bind_param(self, value: Optional[Dict[str, Any]], dialect):
        if value is None:
            return None
        return json.dumps(value, default=str)

    def process_result_value(self, value: Optional[str], dialect):
        if not value:
            return {}
        try:
            v = json.loads(value)
        except ValueError:
            return {}
        return v if isinstance(v, dict) else {}
