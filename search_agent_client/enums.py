# search_agent_client/enums.py
from enum import Enum


class Sender(str, Enum):
    USER = "user"
    AGENT = "agent"


class MessageKind(str, Enum):
    TEXT = "text"
    INTERACTIVE = "interactive"                     # pick one of the buttons/options
    INTERACTIVE_PRODUCTS = "interactive_products"   # product cards


# Backend "type" values on a synchronous reply
WIRE_MESSAGE_KINDS = {
    "text": MessageKind.TEXT,
    "interactive": MessageKind.INTERACTIVE,
    "interactive_prod": MessageKind.INTERACTIVE_PRODUCTS,
}


class StreamEventType(str, Enum):
    """Tags carried by streamed records, plus the local `query` pseudo-event."""
    QUERY = "query"
    INTENT = "intent"
    CATEGORY = "category"
    SUBCATEGORY = "subcategory"
    PRODUCT_INFO = "product_info"
    RECOMMENDED_PRODUCTS = "recommended_products"
    FOLLOW_UP = "follow_up"
    FINAL_RESPONSE = "final_response"
    ERROR = "error"
    UNKNOWN = "unknown"


class Severity(str, Enum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


class DispatchMode(str, Enum):
    SYNCHRONOUS = "synchronous"
    STREAMING = "streaming"
    FAILED = "failed"
