"""
Conversation state machine.

Request lifecycle:
    idle -> dispatched -> (synchronous-resolved | streaming-active -> streaming-resolved) -> idle

Every transition is `reduce(state, action) -> new state`. The input state is
never modified; a renderer may keep holding it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Mapping, Type

from .enums import MessageKind, Sender, StreamEventType
from .models import ChatMessage, ConversationState, PendingReply, StreamEvent
from .payloads import build_agent_message

log = logging.getLogger(__name__)

DEFAULT_FALLBACK_REPLY = "I'm not sure how to respond to that."


# ─────────────────────────────────────────────────────────────
# Actions
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class MessageSubmitted:
    text: str


@dataclass(frozen=True)
class OptionSelected:
    """A button/option click: a submit that also unlocks input immediately."""
    label: str


@dataclass(frozen=True)
class SyncReplyReceived:
    request_id: str
    payload: Mapping[str, Any]
    fallback_text: str = DEFAULT_FALLBACK_REPLY


@dataclass(frozen=True)
class StreamStarted:
    request_id: str
    query: str


@dataclass(frozen=True)
class StreamEventReceived:
    request_id: str
    event: StreamEvent


@dataclass(frozen=True)
class StreamEnded:
    request_id: str


@dataclass(frozen=True)
class RequestFailed:
    request_id: str
    error: str


@dataclass(frozen=True)
class SessionRefreshed:
    session_id: str


# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

def is_submittable(text: str) -> bool:
    return bool(text and text.strip())


def _append_agent_message(state: ConversationState, message: ChatMessage, **changes: Any) -> ConversationState:
    # input_locked is derived from the newest agent message, never toggled
    return replace(
        state,
        messages=state.messages + (message,),
        input_locked=message.requires_selection,
        **changes,
    )


def _without_pending(state: ConversationState, request_id: str) -> Dict[str, PendingReply]:
    return {k: v for k, v in state.pending.items() if k != request_id}


def initial_state(session_id: str) -> ConversationState:
    return ConversationState(session_id=session_id)


# ─────────────────────────────────────────────────────────────
# Transitions
# ─────────────────────────────────────────────────────────────

def _on_submit(state: ConversationState, action: MessageSubmitted) -> ConversationState:
    if not is_submittable(action.text):
        return state
    user_message = ChatMessage(content=action.text, sender=Sender.USER)
    return replace(
        state,
        messages=state.messages + (user_message,),
        loading=True,
        input_locked=False,
    )


def _on_option(state: ConversationState, action: OptionSelected) -> ConversationState:
    unlocked = replace(state, input_locked=False)
    return _on_submit(unlocked, MessageSubmitted(text=action.label))


def _on_sync_reply(state: ConversationState, action: SyncReplyReceived) -> ConversationState:
    message = build_agent_message(action.payload, action.fallback_text)
    log.info(
        f"REDUCE_SYNC_REPLY | request={action.request_id} | kind={message.kind.value}"
        f" | buttons={len(message.buttons)} | products={len(message.products)}"
    )
    return _append_agent_message(state, message, loading=False)


def _on_stream_started(state: ConversationState, action: StreamStarted) -> ConversationState:
    query_event = StreamEvent(kind=StreamEventType.QUERY.value, payload=action.query)
    pending = dict(state.pending)
    pending[action.request_id] = PendingReply()
    return replace(
        state,
        stream_events=state.stream_events + (query_event,),
        streaming=True,
        pending=pending,
    )


def _on_stream_event(state: ConversationState, action: StreamEventReceived) -> ConversationState:
    event = action.event
    slot = state.pending.get(action.request_id, PendingReply())

    if event.kind == StreamEventType.FOLLOW_UP.value:
        text = event.payload if isinstance(event.payload, str) else ("" if event.payload is None else str(event.payload))
        pending = dict(state.pending)
        pending[action.request_id] = replace(slot, final_text=text)
        return replace(state, pending=pending)

    if event.kind == StreamEventType.FINAL_RESPONSE.value:
        # Recognized terminal marker; its payload is not used as the answer
        log.info(f"STREAM_FINAL_RESPONSE_IGNORED | request={action.request_id} | has_data={event.payload is not None}")
        return state

    changes: Dict[str, Any] = {"stream_events": state.stream_events + (event,)}
    if event.kind == StreamEventType.RECOMMENDED_PRODUCTS.value and event.products:
        pending = dict(state.pending)
        pending[action.request_id] = replace(slot, products=event.products)
        changes["pending"] = pending
    return replace(state, **changes)


def _on_stream_ended(state: ConversationState, action: StreamEnded) -> ConversationState:
    slot = state.pending.get(action.request_id, PendingReply())
    remaining = _without_pending(state, action.request_id)

    if slot.final_text is None:
        log.info(f"REDUCE_STREAM_END | request={action.request_id} | final_text=False")
        return replace(state, loading=False, streaming=False, pending=remaining)

    if slot.products:
        message = ChatMessage(
            content=slot.final_text,
            sender=Sender.AGENT,
            kind=MessageKind.INTERACTIVE_PRODUCTS,
            products=slot.products,
            total_products=len(slot.products),
        )
    else:
        message = ChatMessage(content=slot.final_text, sender=Sender.AGENT, kind=MessageKind.TEXT)
    log.info(f"REDUCE_STREAM_END | request={action.request_id} | final_text=True | kind={message.kind.value}")
    return _append_agent_message(state, message, loading=False, streaming=False, pending=remaining)


def _on_failure(state: ConversationState, action: RequestFailed) -> ConversationState:
    log.warning(f"REDUCE_REQUEST_FAILED | request={action.request_id} | error={action.error}")
    return replace(
        state,
        loading=False,
        streaming=False,
        pending=_without_pending(state, action.request_id),
    )


def _on_refresh(state: ConversationState, action: SessionRefreshed) -> ConversationState:
    return initial_state(action.session_id)


_TRANSITIONS: Dict[Type[Any], Callable[[ConversationState, Any], ConversationState]] = {
    MessageSubmitted: _on_submit,
    OptionSelected: _on_option,
    SyncReplyReceived: _on_sync_reply,
    StreamStarted: _on_stream_started,
    StreamEventReceived: _on_stream_event,
    StreamEnded: _on_stream_ended,
    RequestFailed: _on_failure,
    SessionRefreshed: _on_refresh,
}


def reduce(state: ConversationState, action: Any) -> ConversationState:
    handler = _TRANSITIONS.get(type(action))
    if handler is None:
        raise TypeError(f"Unsupported action: {type(action).__name__}")
    return handler(state, action)
