"""
Utility helpers
"""

from __future__ import annotations

import itertools
from datetime import datetime, timezone

_MESSAGE_SEQ = itertools.count(1)


def now() -> datetime:
    return datetime.now(timezone.utc)


def next_message_id() -> str:
    """Process-wide increasing id; keeps counting across session refreshes."""
    return f"m{next(_MESSAGE_SEQ):08d}"


def truncate(s: str, max_len: int) -> str:
    if max_len <= 0 or len(s) <= max_len:
        return s
    return f"{s[:max_len]}... (truncated {len(s) - max_len} chars)"


def as_text(value: object, default: str = "") -> str:
    if value is None:
        return default
    return str(value).strip()
