"""
Request dispatcher
==================
POSTs one user message to the agent endpoint and routes the reply:

- declared JSON content  -> one SyncReplyReceived action
- anything else          -> StreamStarted, one StreamEventReceived per record, StreamEnded

Failures (non-2xx, connection errors, timeouts, broken bodies) become a single
RequestFailed action. Nothing is retried; the user resubmits by hand.
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

import aiohttp

from .config import BaseConfig, get_config
from .enums import DispatchMode
from .reducer import (
    RequestFailed,
    StreamEnded,
    StreamEventReceived,
    StreamStarted,
    SyncReplyReceived,
)
from .streaming import ByteLineFramer, RecordDecodeError, classify, decode_record, is_blank
from .utils.helpers import truncate

log = logging.getLogger(__name__)

ActionSink = Callable[[Any], None]

JSON_CONTENT_TYPES = {"application/json", "text/json"}


class AgentRequestError(RuntimeError):
    """The agent endpoint could not produce a usable response."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class DispatchOutcome:
    request_id: str
    session_id: str
    mode: DispatchMode
    status: Optional[int] = None
    records: int = 0            # stream records folded into state
    dropped_records: int = 0    # undecodable stream records skipped
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.mode != DispatchMode.FAILED


def is_json_content(content_type: str) -> bool:
    ct = (content_type or "").split(";")[0].strip().lower()
    return ct in JSON_CONTENT_TYPES or ct.endswith("+json")


class RequestDispatcher:
    """Stateless apart from configuration; safe to share between overlapping sends."""

    def __init__(
        self,
        cfg: Optional[BaseConfig] = None,
        *,
        url: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        fallback_text: Optional[str] = None,
    ) -> None:
        self.cfg = cfg or get_config()
        self.url = url or self.cfg.AGENT_CHAT_URL
        self.fallback_text = fallback_text or self.cfg.FALLBACK_REPLY
        self._session = session
        self.timeout = aiohttp.ClientTimeout(
            total=None,
            connect=self.cfg.REQUEST_TIMEOUT_SECONDS,
            sock_read=self.cfg.STREAM_READ_TIMEOUT_SECONDS or None,
        )

    def _truncate(self, s: str) -> str:
        return truncate(s, self.cfg.MAX_LOG_BYTES)

    async def send(self, session_id: str, text: str, apply: ActionSink) -> DispatchOutcome:
        """
        Send `text` for `session_id` and feed resulting actions to `apply`.

        `apply` is called synchronously for each action as it becomes
        available, so a streamed reply updates state record by record.
        """
        request_id = uuid.uuid4().hex[:12]
        payload = {"session_id": session_id, "message": text}
        started = time.perf_counter()
        log.info(f"DISPATCH_START | request={request_id} | session={session_id} | url={self.url}")
        if self.cfg.LOG_PAYLOADS:
            log.info(f"DISPATCH_PAYLOAD | request={request_id} | payload={self._truncate(json.dumps(payload, ensure_ascii=False))}")

        try:
            if self._session is not None:
                return await self._post(self._session, request_id, session_id, payload, apply, started)
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                return await self._post(session, request_id, session_id, payload, apply, started)
        except AgentRequestError as e:
            return self._fail(request_id, session_id, apply, str(e), e.status)
        except asyncio.TimeoutError:
            return self._fail(request_id, session_id, apply, "request timed out")
        except aiohttp.ClientError as e:
            return self._fail(request_id, session_id, apply, f"{type(e).__name__}: {e}")
        except Exception as e:
            log.error(
                "DISPATCH_UNEXPECTED_ERROR | request=%s | error=%s | type=%s",
                request_id,
                e,
                type(e).__name__,
                exc_info=True,
            )
            return self._fail(request_id, session_id, apply, f"{type(e).__name__}: {e}")

    async def _post(
        self,
        session: aiohttp.ClientSession,
        request_id: str,
        session_id: str,
        payload: dict,
        apply: ActionSink,
        started: float,
    ) -> DispatchOutcome:
        async with session.post(
            self.url,
            json=payload,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
            timeout=self.timeout,
        ) as resp:
            log.info(
                "DISPATCH_RESPONSE | request=%s | status=%s | content_type=%s | elapsed_ms=%.1f",
                request_id,
                resp.status,
                resp.content_type,
                (time.perf_counter() - started) * 1000,
            )
            if not 200 <= resp.status < 300:
                body = await resp.text(errors="replace")
                log.warning(f"DISPATCH_BAD_STATUS | request={request_id} | status={resp.status} | body={self._truncate(body)}")
                raise AgentRequestError(f"API error: {resp.status}", status=resp.status)

            if is_json_content(resp.content_type):
                return await self._read_json(resp, request_id, session_id, payload, apply)
            return await self._read_stream(resp, request_id, session_id, payload, apply, started)

    async def _read_json(self, resp, request_id: str, session_id: str, payload: dict, apply: ActionSink) -> DispatchOutcome:
        raw = await resp.read()
        try:
            data = json.loads(raw.decode("utf-8", errors="replace"))
        except ValueError as e:
            raise AgentRequestError(f"invalid JSON reply: {e}", status=resp.status) from e
        if not isinstance(data, dict):
            raise AgentRequestError(f"JSON reply is a {type(data).__name__}, expected an object", status=resp.status)
        if self.cfg.LOG_PAYLOADS:
            log.info(f"DISPATCH_REPLY | request={request_id} | body={self._truncate(raw.decode('utf-8', errors='replace'))}")

        apply(SyncReplyReceived(request_id=request_id, payload=data, fallback_text=self.fallback_text))
        return DispatchOutcome(request_id=request_id, session_id=session_id, mode=DispatchMode.SYNCHRONOUS, status=resp.status)

    async def _read_stream(
        self, resp, request_id: str, session_id: str, payload: dict, apply: ActionSink, started: float
    ) -> DispatchOutcome:
        apply(StreamStarted(request_id=request_id, query=payload["message"]))
        framer = ByteLineFramer(encoding=resp.charset or "utf-8")
        counts = {"records": 0, "dropped": 0}

        def fold(records) -> None:
            for record in records:
                try:
                    value = decode_record(record)
                except RecordDecodeError as e:
                    counts["dropped"] += 1
                    log.warning(f"STREAM_RECORD_DECODE_ERROR | request={request_id} | reason={e.reason} | record={self._truncate(record)}")
                    continue
                if is_blank(value):
                    continue
                event = classify(value)
                counts["records"] += 1
                log.debug(f"STREAM_EVENT | request={request_id} | type={event.kind}")
                apply(StreamEventReceived(request_id=request_id, event=event))

        try:
            async for chunk in resp.content.iter_any():
                fold(framer.feed(chunk))
            fold(framer.close())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.error(
                f"STREAM_ABORTED | request={request_id} | records={counts['records']} | error={e} | type={type(e).__name__}"
            )
            raise AgentRequestError(f"stream aborted: {type(e).__name__}", status=resp.status) from e

        apply(StreamEnded(request_id=request_id))
        log.info(
            "STREAM_COMPLETE | request=%s | records=%s | dropped=%s | elapsed_ms=%.1f",
            request_id,
            counts["records"],
            counts["dropped"],
            (time.perf_counter() - started) * 1000,
        )
        return DispatchOutcome(
            request_id=request_id,
            session_id=session_id,
            mode=DispatchMode.STREAMING,
            status=resp.status,
            records=counts["records"],
            dropped_records=counts["dropped"],
        )

    def _fail(
        self, request_id: str, session_id: str, apply: ActionSink, error: str, status: Optional[int] = None
    ) -> DispatchOutcome:
        log.error(f"DISPATCH_FAILED | request={request_id} | session={session_id} | status={status} | error={error}")
        apply(RequestFailed(request_id=request_id, error=error))
        return DispatchOutcome(
            request_id=request_id,
            session_id=session_id,
            mode=DispatchMode.FAILED,
            status=status,
            error=error,
        )
