#!/usr/bin/env python3
"""
Search Agent Client - Console Entry Point
- Loads .env before the package reads its configuration.
- Plain terminal renderer: prints new messages and stream steps as they land.
- Commands: /refresh starts a new session, /quit exits, a bare number picks
  that button of the last interactive reply.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

# Load env before any other imports that might read it
load_dotenv()

from search_agent_client import create_session  # noqa: E402
from search_agent_client.console import render_event, render_message  # noqa: E402
from search_agent_client.enums import MessageKind, Sender  # noqa: E402
from search_agent_client.logging_setup import setup_logging  # noqa: E402
from search_agent_client.models import ConversationState  # noqa: E402
from search_agent_client.notifier import Notifier  # noqa: E402


class ConsoleNotifier(Notifier):
    def notify(self, notification) -> None:
        print(f"[{notification.title}] {notification.description}")


class ConsoleRenderer:
    """Prints only what is new since the last state it saw."""

    def __init__(self) -> None:
        self._seen_messages = 0
        self._seen_events = 0

    def __call__(self, state: ConversationState) -> None:
        if len(state.messages) < self._seen_messages or len(state.stream_events) < self._seen_events:
            # refreshed
            self._seen_messages = self._seen_events = 0
        for index in range(self._seen_events, len(state.stream_events)):
            for line in render_event(state.stream_events[index], index):
                print(line)
        for message in state.messages[self._seen_messages:]:
            if message.sender == Sender.AGENT:
                for line in render_message(message):
                    print(line)
        self._seen_messages = len(state.messages)
        self._seen_events = len(state.stream_events)


def _print_startup_info(session_id: str, url: str) -> None:
    print("Search Agent Client")
    print("=" * 60)
    print(f"Endpoint:     {url}")
    print(f"Session:      {session_id}")
    print(f"Environment:  {os.getenv('APP_ENV', 'development')}")
    print("Commands:     /refresh  /quit  <number> = pick option")
    print("=" * 60)


def _resolve_input(text: str, state: ConversationState) -> tuple[bool, str]:
    """Return (is_option, text) for a typed line."""
    last_agent = next((m for m in reversed(state.messages) if m.sender == Sender.AGENT), None)
    if last_agent and last_agent.kind == MessageKind.INTERACTIVE and text.isdigit():
        idx = int(text) - 1
        if 0 <= idx < len(last_agent.buttons):
            return True, last_agent.buttons[idx]
    return False, text


async def main_async() -> None:
    session = create_session(notifier=ConsoleNotifier())
    session.subscribe(ConsoleRenderer())
    _print_startup_info(session.session_id, session.dispatcher.url)

    while True:
        try:
            line = await asyncio.to_thread(input, "> ")
        except EOFError:
            break
        text = line.strip()
        if text == "/quit":
            break
        if text == "/refresh":
            session.refresh()
            continue

        is_option, text = _resolve_input(text, session.state)
        if is_option:
            await session.select_option(text)
        elif session.state.input_locked:
            print("Please pick one of the options above.")
        else:
            await session.submit(line)


def main() -> None:
    setup_logging(os.getenv("LOG_LEVEL", "WARNING"))
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    except Exception as e:
        logging.getLogger(__name__).exception("client crashed")
        print(f"Client error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
