"""
Conversation data models.
Every model is a frozen dataclass: transitions build new values and never
mutate the ones a renderer may still be holding.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from .enums import MessageKind, Sender, Severity, StreamEventType
from .utils.helpers import next_message_id, now


@dataclass(frozen=True)
class Product:
    name: str = ""
    description: str = ""
    detail_url: str = ""
    price: str = ""         # decimal kept as text, never re-formatted
    image_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "detail_url": self.detail_url,
            "price": self.price,
            "image_url": self.image_url,
        }


@dataclass(frozen=True)
class ChatMessage:
    content: str
    sender: Sender
    kind: MessageKind = MessageKind.TEXT
    buttons: Tuple[str, ...] = ()
    products: Tuple[Product, ...] = ()
    total_products: int = 0
    id: str = field(default_factory=next_message_id)
    timestamp: datetime = field(default_factory=now)

    @property
    def requires_selection(self) -> bool:
        return self.sender == Sender.AGENT and self.kind == MessageKind.INTERACTIVE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "sender": self.sender.value,
            "kind": self.kind.value,
            "buttons": list(self.buttons),
            "products": [p.to_dict() for p in self.products],
            "total_products": self.total_products,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class ProductListing:
    """One `N. name ($price)` line pulled out of a product_info summary."""
    name: str
    price: str


@dataclass(frozen=True)
class ProductInfoSummary:
    count: Optional[int] = None
    listings: Tuple[ProductListing, ...] = ()


@dataclass(frozen=True)
class StreamEvent:
    kind: str
    payload: Any = None
    timestamp: datetime = field(default_factory=now)
    # Derived at ingestion; only set for product_info / recommended_products
    summary: Optional[ProductInfoSummary] = None
    products: Tuple[Product, ...] = ()

    @property
    def is_query(self) -> bool:
        return self.kind == StreamEventType.QUERY.value

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.kind,
            "data": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.summary is not None:
            out["summary"] = {
                "count": self.summary.count,
                "listings": [{"name": l.name, "price": l.price} for l in self.summary.listings],
            }
        if self.products:
            out["products"] = [p.to_dict() for p in self.products]
        return out


@dataclass(frozen=True)
class PendingReply:
    """What one in-flight stream has gathered towards its closing message."""
    final_text: Optional[str] = None
    products: Tuple[Product, ...] = ()


@dataclass(frozen=True)
class ConversationState:
    session_id: str
    messages: Tuple[ChatMessage, ...] = ()
    stream_events: Tuple[StreamEvent, ...] = ()
    loading: bool = False
    streaming: bool = False
    input_locked: bool = False
    # request_id -> PendingReply; replaced wholesale on every change
    pending: Dict[str, PendingReply] = field(default_factory=dict)

    @property
    def accepts_free_text(self) -> bool:
        return not (self.loading or self.input_locked)

    @property
    def step_count(self) -> int:
        return sum(1 for e in self.stream_events if not e.is_query)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "messages": [m.to_dict() for m in self.messages],
            "stream_events": [e.to_dict() for e in self.stream_events],
            "loading": self.loading,
            "streaming": self.streaming,
            "input_locked": self.input_locked,
        }


@dataclass(frozen=True)
class Notification:
    title: str
    description: str = ""
    severity: Severity = Severity.DEFAULT
