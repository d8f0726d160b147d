"""Streaming utilities: newline framing and record classification."""

from .event_classifier import RecordDecodeError, classify, decode_record, is_blank, parse_product_info
from .line_framer import ByteLineFramer, LineFramer, iter_records

__all__ = [
    "ByteLineFramer",
    "LineFramer",
    "RecordDecodeError",
    "classify",
    "decode_record",
    "is_blank",
    "iter_records",
    "parse_product_info",
]
