from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from bson.errors import InvalidId


def now_utc() -> datetime:
    # Mongo stores milliseconds; truncate so both backends round-trip equally
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def parse_object_id(task_id: str) -> Optional[ObjectId]:
    """Return the ObjectId for ``task_id``, or None if it is not a valid id."""
    try:
        return ObjectId(task_id)
    except (InvalidId, TypeError):
        return None


def to_task(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Shape a stored document like TaskResponse: ``_id`` becomes ``id``."""
    if doc is None:
        return None
    d = {k: v for k, v in doc.items() if k != "_id"}
    d["id"] = str(doc["_id"])
    return d
