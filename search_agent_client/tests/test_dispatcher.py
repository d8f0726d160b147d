"""
Dispatcher tests against a local aiohttp server standing in for the agent.
"""
from __future__ import annotations

import aiohttp
import pytest
from aiohttp import web
from aiohttp.test_utils import unused_port

from search_agent_client.dispatcher import RequestDispatcher, is_json_content
from search_agent_client.enums import DispatchMode
from search_agent_client.reducer import (
    MessageSubmitted,
    RequestFailed,
    StreamEnded,
    StreamEventReceived,
    StreamStarted,
    SyncReplyReceived,
    initial_state,
    reduce,
)

pytestmark = pytest.mark.integration


class Collector:
    def __init__(self):
        self.actions = []

    def __call__(self, action):
        self.actions.append(action)

    def types(self):
        return [type(a) for a in self.actions]

    def fold(self, session_id="123"):
        state = initial_state(session_id)
        for action in self.actions:
            state = reduce(state, action)
        return state


@pytest.mark.parametrize(
    "content_type,expected",
    [
        ("application/json", True),
        ("application/json; charset=utf-8", True),
        ("application/problem+json", True),
        ("text/JSON", True),
        ("application/x-ndjson", False),
        ("text/event-stream", False),
        ("", False),
    ],
)
def test_json_content_detection(content_type, expected):
    assert is_json_content(content_type) is expected


@pytest.mark.asyncio
async def test_json_reply_yields_one_sync_action(cfg, agent_server, json_reply, received):
    server = agent_server(json_reply({"response": "Here are some options", "type": "interactive", "buttons": ["Gold", "Silver"]}))
    async with server:
        sink = Collector()
        dispatcher = RequestDispatcher(cfg, url=str(server.make_url("/chat")))
        outcome = await dispatcher.send("555", "show me earrings", sink)

    assert outcome.ok and outcome.mode == DispatchMode.SYNCHRONOUS and outcome.status == 200
    assert sink.types() == [SyncReplyReceived]
    assert sink.actions[0].payload["buttons"] == ["Gold", "Silver"]
    assert received[0]["body"] == {"session_id": "555", "message": "show me earrings"}
    assert received[0]["headers"]["Accept"] == "application/json"
    assert received[0]["headers"]["Content-Type"].startswith("application/json")


@pytest.mark.asyncio
async def test_json_reply_uses_configured_fallback(cfg, agent_server, json_reply):
    cfg.FALLBACK_REPLY = "Sorry, say that again?"
    server = agent_server(json_reply({"type": "text"}))
    async with server:
        sink = Collector()
        await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "hm", sink)
    assert sink.fold().messages[-1].content == "Sorry, say that again?"


@pytest.mark.asyncio
async def test_stream_records_split_across_chunks(cfg, agent_server, stream_reply, to_ndjson):
    body = to_ndjson(
        {"type": "intent", "data": "greeting"},
        {"type": "follow_up", "data": "Hello! How can I help?"},
    )
    cut = body.index("greeting") + 3
    chunks = [body[:cut], body[cut:]]
    server = agent_server(stream_reply(chunks))
    async with server:
        sink = Collector()
        outcome = await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "hi", sink)

    assert outcome.mode == DispatchMode.STREAMING
    assert outcome.records == 2 and outcome.dropped_records == 0
    assert sink.types() == [StreamStarted, StreamEventReceived, StreamEventReceived, StreamEnded]
    assert sink.actions[0].query == "hi"
    assert sink.actions[1].event.kind == "intent"
    assert sink.actions[1].event.payload == "greeting"

    state = sink.fold()
    assert [e.kind for e in state.stream_events] == ["query", "intent"]
    assert state.messages[-1].content == "Hello! How can I help?"


@pytest.mark.asyncio
async def test_stream_skips_malformed_and_blank_records(cfg, agent_server, stream_reply, to_ndjson):
    chunks = [
        to_ndjson({"type": "intent", "data": "shopping"}),
        "{not json\n\n   \n",
        to_ndjson({"type": "category", "data": "jewellery"}),
        '{"type": "follow_up", "data": "Done"}',  # no trailing newline
    ]
    server = agent_server(stream_reply(chunks))
    async with server:
        sink = Collector()
        outcome = await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "rings", sink)

    assert outcome.ok
    assert outcome.dropped_records == 1
    assert outcome.records == 3
    state = sink.fold()
    assert [e.kind for e in state.stream_events] == ["query", "intent", "category"]
    assert state.messages[-1].content == "Done"

    # bad and blank lines produce no action, so flags only move at the stream edges
    assert sink.types() == [StreamStarted, StreamEventReceived, StreamEventReceived, StreamEventReceived, StreamEnded]
    state = reduce(initial_state("1"), MessageSubmitted(text="rings"))
    for action in sink.actions[:-1]:
        state = reduce(state, action)
        assert state.loading and state.streaming
    state = reduce(state, sink.actions[-1])
    assert not state.loading and not state.streaming


@pytest.mark.asyncio
async def test_stream_with_unknown_records(cfg, agent_server, stream_reply, to_ndjson):
    chunks = [to_ndjson({"type": "thinking", "data": 1}, [1, 2], {"data": "no tag"})]
    server = agent_server(stream_reply(chunks, content_type="text/plain"))
    async with server:
        sink = Collector()
        await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "x", sink)

    kinds = [a.event.kind for a in sink.actions if isinstance(a, StreamEventReceived)]
    assert kinds == ["thinking", "unknown", "unknown"]
    assert sink.actions[2].event.payload == [1, 2]


@pytest.mark.asyncio
async def test_multibyte_text_split_inside_a_character(cfg, agent_server):
    body = '{"type": "follow_up", "data": "₹1,499 – जी"}\n'.encode("utf-8")
    cut = body.index("₹".encode("utf-8")) + 1

    async def handler(request):
        resp = web.StreamResponse()
        resp.content_type = "application/x-ndjson"
        await resp.prepare(request)
        await resp.write(body[:cut])
        await resp.write(body[cut:])
        await resp.write_eof()
        return resp

    server = agent_server(handler)
    async with server:
        sink = Collector()
        await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "price?", sink)
    assert sink.fold().messages[-1].content == "₹1,499 – जी"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 404, 500, 503])
async def test_error_status_fails_once(cfg, agent_server, json_reply, status):
    server = agent_server(json_reply({"response": "should be ignored"}, status=status))
    async with server:
        sink = Collector()
        outcome = await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "hi", sink)

    assert not outcome.ok
    assert outcome.status == status
    assert outcome.error == f"API error: {status}"
    assert sink.types() == [RequestFailed]


@pytest.mark.asyncio
async def test_connection_refused_fails_once(cfg):
    url = f"http://127.0.0.1:{unused_port()}/chat"
    sink = Collector()
    outcome = await RequestDispatcher(cfg, url=url).send("1", "hi", sink)
    assert outcome.mode == DispatchMode.FAILED
    assert outcome.status is None
    assert sink.types() == [RequestFailed]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", ["{broken", "[1, 2, 3]", '"just a string"'])
async def test_unusable_json_body_fails(cfg, agent_server, body):
    async def handler(request):
        return web.Response(text=body, content_type="application/json")

    server = agent_server(handler)
    async with server:
        sink = Collector()
        outcome = await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "hi", sink)
    assert not outcome.ok
    assert sink.types() == [RequestFailed]


@pytest.mark.asyncio
async def test_aborted_stream_keeps_events_and_fails(cfg, agent_server, stream_reply, to_ndjson):
    chunks = [
        to_ndjson({"type": "intent", "data": "shopping"}),
        to_ndjson({"type": "follow_up", "data": "never delivered"}),
    ]
    server = agent_server(stream_reply(chunks, abort_after=1))
    async with server:
        sink = Collector()
        outcome = await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "hi", sink)

    assert not outcome.ok
    assert sink.types()[0] is StreamStarted
    assert sink.types()[-1] is RequestFailed
    assert StreamEnded not in sink.types()

    state = sink.fold()
    assert not state.loading and not state.streaming
    assert all(m.content != "never delivered" for m in state.messages)


@pytest.mark.asyncio
async def test_injected_client_session_is_reused(cfg, agent_server, json_reply):
    server = agent_server(json_reply({"response": "ok"}))
    async with server:
        async with aiohttp.ClientSession() as session:
            dispatcher = RequestDispatcher(cfg, url=str(server.make_url("/chat")), session=session)
            first = await dispatcher.send("1", "a", Collector())
            second = await dispatcher.send("1", "b", Collector())
            assert not session.closed
    assert first.ok and second.ok
    assert first.request_id != second.request_id


@pytest.mark.asyncio
async def test_error_raised_while_applying_becomes_a_failure(cfg, agent_server, json_reply):
    server = agent_server(json_reply({"response": "ok"}))
    seen = []

    def apply(action):
        seen.append(action)
        if isinstance(action, SyncReplyReceived):
            raise OverflowError("cannot convert float infinity to integer")

    async with server:
        outcome = await RequestDispatcher(cfg, url=str(server.make_url("/chat"))).send("1", "hi", apply)

    assert outcome.mode == DispatchMode.FAILED
    assert outcome.error == "OverflowError: cannot convert float infinity to integer"
    assert [type(a) for a in seen] == [SyncReplyReceived, RequestFailed]
