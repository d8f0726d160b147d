"""
ChatSession - the top-level conversational component.

Owns the session identity, the current ConversationState, the dispatcher and
the notifier. Renderers subscribe for state changes and call submit(),
select_option() and refresh().
"""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from .config import BaseConfig, get_config
from .dispatcher import DispatchOutcome, RequestDispatcher
from .models import ConversationState
from .notifier import REQUEST_FAILED_NOTICE, LoggingNotifier, Notifier, session_refreshed_notice
from .reducer import (
    MessageSubmitted,
    OptionSelected,
    RequestFailed,
    SessionRefreshed,
    initial_state,
    is_submittable,
    reduce,
)
from .session import SessionIdentity

log = logging.getLogger(__name__)

StateListener = Callable[[ConversationState], None]


class ChatSession:
    """
    Single-threaded and cooperative: overlapping submits are allowed (nothing
    blocks a second dispatch) and their actions fold into the shared state in
    arrival order.
    """

    def __init__(
        self,
        dispatcher: Optional[RequestDispatcher] = None,
        notifier: Optional[Notifier] = None,
        identity: Optional[SessionIdentity] = None,
        cfg: Optional[BaseConfig] = None,
    ) -> None:
        self.cfg = cfg or get_config()
        self.dispatcher = dispatcher or RequestDispatcher(self.cfg)
        self.notifier = notifier or LoggingNotifier()
        self.identity = identity or SessionIdentity()
        self.discard_stale = bool(getattr(self.cfg, "DISCARD_STALE_RESPONSES", False))
        self._listeners: List[StateListener] = []
        self._state = initial_state(self.identity.current)
        log.info(f"CHAT_SESSION_START | session={self.identity.current} | discard_stale={self.discard_stale}")

    @property
    def state(self) -> ConversationState:
        return self._state

    @property
    def session_id(self) -> str:
        return self.identity.current

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a renderer; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _dispatch(self, action: Any) -> None:
        new_state = reduce(self._state, action)
        if new_state is self._state:
            return
        self._state = new_state
        for listener in list(self._listeners):
            listener(new_state)

    def _sink_for(self, session_id: str) -> Callable[[Any], None]:
        def apply(action: Any) -> None:
            if self.discard_stale and not self.identity.is_current(session_id):
                log.info(f"STALE_RESPONSE_DISCARDED | session={session_id} | action={type(action).__name__}")
                return
            self._dispatch(action)
            if isinstance(action, RequestFailed):
                self.notifier.notify(REQUEST_FAILED_NOTICE)

        return apply

    async def _send(self, text: str) -> DispatchOutcome:
        session_id = self.identity.current
        return await self.dispatcher.send(session_id, text, self._sink_for(session_id))

    async def submit(self, text: str) -> Optional[DispatchOutcome]:
        """Send free text. Whitespace-only input is ignored (returns None)."""
        if not is_submittable(text):
            return None
        self._dispatch(MessageSubmitted(text=text))
        return await self._send(text)

    async def select_option(self, label: str) -> Optional[DispatchOutcome]:
        """Send a button/option label; input unlocks before the reply lands."""
        self._dispatch(OptionSelected(label=label))
        if not is_submittable(label):
            return None
        return await self._send(label)

    def refresh(self) -> str:
        """Start over right away; in-flight requests are left running."""
        new_id = self.identity.reset()
        self._dispatch(SessionRefreshed(session_id=new_id))
        self.notifier.notify(session_refreshed_notice(new_id))
        return new_id
