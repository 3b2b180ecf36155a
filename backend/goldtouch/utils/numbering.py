from __future__ import annotations
from datetime import datetime
import secrets


def next_number(prefix: str) -> str:
    """Human-facing document number such as ``INV-20240131-4F2A9C``."""
    return f"{prefix}-{datetime.now():%Y%m%d}-{secrets.token_hex(3).upper()}"
