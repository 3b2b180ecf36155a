from __future__ import annotations
from typing import Any, Dict, Iterable
from goldtouch.utils.validation import iso


def row_json(obj, exclude: Iterable[str] = ()) -> Dict[str, Any]:
    """Column-by-column JSON view of a model instance; datetimes become ISO strings."""
    skip = set(exclude)
    return {
        col.key: iso(getattr(obj, col.key))
        for col in obj.__table__.columns
        if col.key not in skip
    }
