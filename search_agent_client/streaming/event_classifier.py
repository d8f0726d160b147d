"""
Record decoding and classification for streamed agent responses.

Each framed record is expected to be a JSON object `{"type": ..., "data": ...}`.
decode_record() turns text into a JSON value (or reports a local decode error),
classify() turns that value into a StreamEvent.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Any, Optional, Tuple

from ..enums import StreamEventType
from ..models import ProductInfoSummary, ProductListing, StreamEvent
from ..payloads import normalize_products
from ..utils.helpers import now, truncate

log = logging.getLogger(__name__)

RECOGNIZED_TYPES = frozenset(t.value for t in StreamEventType if t is not StreamEventType.QUERY)

_FOUND_RGX = re.compile(r"Found (\d+)")
# "3. Silver jhumka earrings ($1499)" or "($1499.50)"
_LISTING_RGX = re.compile(r"^\d+\.\s*(.*?)\s*\(\$(\d+(?:\.\d+)?)\)")


class RecordDecodeError(ValueError):
    """A framed record that is not valid JSON. Local to that record."""

    def __init__(self, record: str, reason: str) -> None:
        super().__init__(f"undecodable stream record: {reason}")
        self.record = record
        self.reason = reason


_BLANK = object()


def decode_record(record: str) -> Any:
    """
    Parse one framed record. Blank lines return the module sentinel `_BLANK`
    (see is_blank); anything else that fails to parse raises RecordDecodeError.
    """
    if not record.strip():
        return _BLANK
    try:
        return json.loads(record)
    except json.JSONDecodeError as e:
        raise RecordDecodeError(record, str(e)) from e


def is_blank(value: Any) -> bool:
    return value is _BLANK


def parse_product_info(text: Any) -> Optional[ProductInfoSummary]:
    """
    Best-effort read of a product_info sentence such as
    "Found 12 products:\\n1. Gold hoops ($899)\\n2. ...".
    Returns None when nothing matches; never raises.
    """
    if not isinstance(text, str):
        return None
    count: Optional[int] = None
    if "Found" in text and "products" in text:
        m = _FOUND_RGX.search(text)
        if m:
            count = int(m.group(1))

    listings = []
    for line in text.split("\n"):
        m = _LISTING_RGX.match(line.strip())
        if m:
            name, price = m.groups()
            listings.append(ProductListing(name=name.strip(), price=price))

    if count is None and not listings:
        return None
    return ProductInfoSummary(count=count, listings=tuple(listings))


def _split_record(value: Any) -> Tuple[str, Any]:
    if isinstance(value, dict):
        tag = value.get("type")
        if isinstance(tag, str) and tag.strip():
            return tag.strip(), value.get("data")
    return StreamEventType.UNKNOWN.value, value


def classify(value: Any, timestamp: Optional[datetime] = None) -> StreamEvent:
    """Map one decoded record to a StreamEvent. Never raises on odd shapes."""
    kind, payload = _split_record(value)
    ts = timestamp or now()

    if kind == StreamEventType.PRODUCT_INFO.value:
        return StreamEvent(kind=kind, payload=payload, timestamp=ts, summary=parse_product_info(payload))

    if kind == StreamEventType.RECOMMENDED_PRODUCTS.value:
        return StreamEvent(kind=kind, payload=payload, timestamp=ts, products=normalize_products(payload))

    if kind not in RECOGNIZED_TYPES:
        log.info(f"STREAM_UNRECOGNIZED_TYPE | type={truncate(kind, 60)}")
    return StreamEvent(kind=kind, payload=payload, timestamp=ts)
