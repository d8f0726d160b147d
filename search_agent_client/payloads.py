"""
Ingestion-boundary normalization for backend payloads.

The backend has sent products in more than one shape. Each shape gets one
mapping table below; everything past this module only sees `Product`.
Add a new table (and bump its suffix) rather than patching call sites.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .enums import WIRE_MESSAGE_KINDS, MessageKind, Sender
from .models import ChatMessage, Product
from .utils.helpers import as_text

log = logging.getLogger(__name__)

# Product field -> candidate source keys, first non-empty wins
PRODUCT_FIELD_MAPS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    # synchronous /chat replies
    "chat_v1": {
        "name": ("product name",),
        "description": ("description",),
        "detail_url": ("Link to product",),
        "price": ("price",),
        "image_url": ("Image URL",),
    },
    # recommended_products stream records (catalog export columns)
    "catalog_v1": {
        "name": ("Title",),
        "description": ("Description", "description"),
        "detail_url": ("URL",),
        "price": ("Variant_Price",),
        "image_url": ("Image_URL",),
    },
    # already-normalized dicts (e.g. Product.to_dict round trips)
    "canonical": {
        "name": ("name", "product_name"),
        "description": ("description",),
        "detail_url": ("detail_url", "link_to_product"),
        "price": ("price",),
        "image_url": ("image_url",),
    },
}

DEFAULT_PRODUCT_SHAPE = "chat_v1"


def price_text(value: Any) -> str:
    """Render a price as decimal text without float noise; text passes through."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        try:
            return format(Decimal(str(value)).normalize(), "f")
        except InvalidOperation:
            return str(value)
    return as_text(value)


def detect_product_shape(raw: Mapping[str, Any]) -> str:
    """Pick the mapping table whose source keys best match `raw`."""
    best, best_hits = DEFAULT_PRODUCT_SHAPE, 0
    for shape, table in PRODUCT_FIELD_MAPS.items():
        hits = sum(1 for keys in table.values() if any(k in raw for k in keys))
        if hits > best_hits:
            best, best_hits = shape, hits
    return best


def normalize_product(raw: Any, shape: Optional[str] = None) -> Optional[Product]:
    if not isinstance(raw, Mapping):
        log.debug(f"PRODUCT_SKIPPED | reason=not_a_mapping | type={type(raw).__name__}")
        return None
    shape = shape or detect_product_shape(raw)
    table = PRODUCT_FIELD_MAPS.get(shape)
    if table is None:
        raise ValueError(f"Unknown product shape: {shape}")

    values: Dict[str, str] = {}
    for field_name, keys in table.items():
        found = ""
        for key in keys:
            v = raw.get(key)
            found = price_text(v) if field_name == "price" else as_text(v)
            if found:
                break
        values[field_name] = found
    return Product(**values)


def normalize_products(raw_list: Any, shape: Optional[str] = None) -> Tuple[Product, ...]:
    if not isinstance(raw_list, list):
        return ()
    out: List[Product] = []
    for raw in raw_list:
        p = normalize_product(raw, shape)
        if p is not None:
            out.append(p)
    return tuple(out)


def _labels(values: Any) -> Tuple[str, ...]:
    if not isinstance(values, list):
        return ()
    out = []
    for v in values:
        label = as_text(v)
        if label:
            out.append(label)
    return tuple(out)


def _total_products(metadata: Any) -> int:
    if not isinstance(metadata, Mapping):
        return 0
    try:
        return max(int(metadata.get("total_products") or 0), 0)
    except (TypeError, ValueError, OverflowError):
        return 0


def build_agent_message(payload: Mapping[str, Any], fallback_text: str) -> ChatMessage:
    """
    Build the agent message for a synchronous reply.

    Missing pieces are defaulted, never fatal:
      content -> fallback_text, kind -> text, buttons/products -> empty,
      total_products -> 0. `buttons` wins over `options` when both are sent.
    """
    wire_type = as_text(payload.get("type")) or MessageKind.TEXT.value
    kind = WIRE_MESSAGE_KINDS.get(wire_type)
    if kind is None:
        log.warning(f"REPLY_UNKNOWN_TYPE | type={wire_type} | treated_as=text")
        kind = MessageKind.TEXT

    raw_content = payload.get("response")
    content = raw_content if isinstance(raw_content, str) else (as_text(raw_content) if raw_content else "")
    if not content:
        content = fallback_text

    buttons = _labels(payload.get("buttons")) or _labels(payload.get("options"))
    return ChatMessage(
        content=content,
        sender=Sender.AGENT,
        kind=kind,
        buttons=buttons,
        products=normalize_products(payload.get("products")),
        total_products=_total_products(payload.get("metadata")),
    )
