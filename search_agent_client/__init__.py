"""
Search Agent Client
===================

Conversational client for the search agent backend:
- dispatcher.py (POST + sync/stream routing over aiohttp)
- streaming/ (newline framing, record classification)
- reducer.py (conversation state machine)
- conversation.py (ChatSession: identity, state, notifications)
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import BaseConfig, get_config
from .conversation import ChatSession
from .dispatcher import DispatchOutcome, RequestDispatcher
from .models import ChatMessage, ConversationState, Notification, Product, StreamEvent
from .notifier import LoggingNotifier, Notifier

log = logging.getLogger(__name__)

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ConversationState",
    "DispatchOutcome",
    "Notification",
    "Product",
    "RequestDispatcher",
    "StreamEvent",
    "create_session",
]


def create_session(
    cfg: Optional[BaseConfig] = None,
    *,
    url: Optional[str] = None,
    notifier: Optional[Notifier] = None,
) -> ChatSession:
    """
    Build a ChatSession wired to the configured agent endpoint.

    Args:
        cfg: configuration; defaults to get_config() (APP_ENV driven)
        url: overrides AGENT_CHAT_URL
        notifier: where toasts go; defaults to the log
    """
    cfg = cfg or get_config()
    dispatcher = RequestDispatcher(cfg, url=url)
    log.info(f"INIT_CHAT_SESSION | url={dispatcher.url}")
    return ChatSession(dispatcher=dispatcher, notifier=notifier or LoggingNotifier(), cfg=cfg)
