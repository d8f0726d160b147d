"""
Plain-text rendering of conversation state for terminals and logs.
Presentation only: nothing here feeds back into the state machine.
"""
from __future__ import annotations

import json
from typing import Any, List

from .enums import MessageKind, Sender, StreamEventType
from .models import ChatMessage, ConversationState, StreamEvent

STEP_LABELS = {
    StreamEventType.INTENT.value: "What the customer wants",
    StreamEventType.CATEGORY.value: "Product category identified",
    StreamEventType.SUBCATEGORY.value: "Specific preferences detected",
    StreamEventType.PRODUCT_INFO.value: "Product search results",
    StreamEventType.RECOMMENDED_PRODUCTS.value: "Curated recommendations",
    StreamEventType.ERROR.value: "Issue occurred",
}


def format_data(data: Any) -> str:
    if isinstance(data, str):
        return data
    if data is None:
        return "null"
    if isinstance(data, (dict, list)):
        try:
            return json.dumps(data, indent=2, ensure_ascii=False)
        except (TypeError, ValueError):
            return str(data)
    return str(data)


def step_label(kind: str) -> str:
    return STEP_LABELS.get(kind) or kind[:1].upper() + kind[1:]


def _clean_tag(tag: Any) -> str:
    tag = str(tag)
    return tag.split(":", 1)[1] if ":" in tag else tag


def friendly_text(event: StreamEvent) -> str:
    kind, data = event.kind, event.payload
    if kind == StreamEventType.INTENT.value:
        return f"Customer is looking for: {data}"
    if kind == StreamEventType.CATEGORY.value:
        return f"Product category: {data}"
    if kind == StreamEventType.SUBCATEGORY.value and isinstance(data, dict) and isinstance(data.get("tags"), list):
        return "Customer preferences: " + ", ".join(_clean_tag(t) for t in data["tags"])
    if kind == StreamEventType.PRODUCT_INFO.value and event.summary and event.summary.count is not None:
        return f"{event.summary.count} matching products found in our catalog"
    if kind == StreamEventType.RECOMMENDED_PRODUCTS.value and event.products:
        return f"Found {len(event.products)} perfect matches for the customer"
    return format_data(data)


def render_event(event: StreamEvent, index: int) -> List[str]:
    if event.is_query:
        return [f'Customer says: "{event.payload}"']
    lines = [f"[Step {index}] {step_label(event.kind)} ({event.timestamp.strftime('%H:%M:%S')})"]
    if event.kind == StreamEventType.ERROR.value:
        lines.append(f"  Something went wrong: {format_data(event.payload)}")
        return lines
    lines.append(f"  {friendly_text(event)}")
    if event.summary:
        lines.extend(f"    - {l.name}  Rs {l.price}" for l in event.summary.listings)
    for p in event.products:
        lines.append(f"    - {p.name or 'Product Name'}  Rs {p.price or 'N/A'}  {p.detail_url}".rstrip())
    return lines


def render_message(message: ChatMessage) -> List[str]:
    who = "You" if message.sender == Sender.USER else "Agent"
    lines = [f"{who}: {message.content}"]
    if message.kind == MessageKind.INTERACTIVE and message.buttons:
        lines.extend(f"  ({i}) {label}" for i, label in enumerate(message.buttons, 1))
    if message.kind == MessageKind.INTERACTIVE_PRODUCTS:
        for p in message.products:
            lines.append(f"  * {p.name} - Price: Rs.{p.price}")
            if p.description:
                lines.append(f"    {p.description}")
            if p.detail_url:
                lines.append(f"    {p.detail_url}")
    return lines


def render_state(state: ConversationState) -> str:
    lines: List[str] = []
    for m in state.messages:
        lines.extend(render_message(m))
    if state.stream_events:
        lines.append("-- Customer Journey Insights --")
        for index, e in enumerate(state.stream_events):
            lines.extend(render_event(e, index))
        status = "Processing..." if state.streaming else "Complete"
        lines.append(f"Analysis steps: {state.step_count} | {status}")
    return "\n".join(lines)
