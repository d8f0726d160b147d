# search_agent_client/utils/__init__.py
"""
Expose helpers at package-level for convenience:

    from search_agent_client.utils import truncate
"""

from .helpers import (  # noqa: F401
    as_text,
    next_message_id,
    now,
    truncate,
)

__all__ = [
    "as_text",
    "next_message_id",
    "now",
    "truncate",
]
