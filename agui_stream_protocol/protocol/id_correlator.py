"""
Agent Loop <-> AG-UI ID Correlator

This module maps the agent loop's ephemeral identifiers to the identifiers
the client sees:
- Text and reasoning fragments are keyed by the loop's fragment id and get a
  freshly generated, stable AG-UI message id (msg-<uuid>)
- Tool calls keep the loop's tool-call id, but are tracked so that argument,
  completion and result hooks can be checked against a prior start

Design:
- One table per fragment kind; fragment ids of different kinds never collide
- Tables live exactly as long as one run (owned by RunOrchestrator)
- Referencing an id that was never opened raises CorrelationError, an
  AssertionError: it signals a broken agent loop, not bad client input

Usage:
    correlator = IDCorrelator()

    message_id = correlator.open(FragmentKind.TEXT, "txt-0")
    assert correlator.lookup(FragmentKind.TEXT, "txt-0") == message_id
    correlator.close(FragmentKind.TEXT, "txt-0")

    correlator.open_tool_call("call-1", "get_weather")
    correlator.require_tool_call("call-1")
"""

import uuid
from enum import Enum

from loguru import logger

from ..errors import CorrelationError


class FragmentKind(str, Enum):
    TEXT = "text"
    REASONING = "reasoning"


def new_message_id() -> str:
    return f"msg-{uuid.uuid4()}"


def new_thread_id() -> str:
    return f"thread-{uuid.uuid4()}"


def new_run_id() -> str:
    return f"run-{uuid.uuid4()}"


class IDCorrelator:
    """
    Run-scoped correlation tables.

    Not thread-safe; hooks are awaited sequentially within one event loop.
    """

    def __init__(self) -> None:
        self._fragments: dict[FragmentKind, dict[str, str]] = {
            FragmentKind.TEXT: {},
            FragmentKind.REASONING: {},
        }
        # tool_call_id → tool_name
        self._tool_calls: dict[str, str] = {}
        self._issued: set[str] = set()

    def open(self, kind: FragmentKind, fragment_id: str) -> str:
        """
        Allocate a stable message id for a newly started fragment.

        Raises:
            CorrelationError: If the fragment is already open
        """
        table = self._fragments[kind]
        if fragment_id in table:
            raise CorrelationError(f"{kind.value} fragment {fragment_id!r} started twice")

        message_id = new_message_id()
        while message_id in self._issued:
            message_id = new_message_id()
        self._issued.add(message_id)
        table[fragment_id] = message_id

        logger.debug(f"[IDCorrelator] Opened {kind.value}: {fragment_id} → {message_id}")
        return message_id

    def lookup(self, kind: FragmentKind, fragment_id: str) -> str:
        """
        Return the stable id of an open fragment.

        Raises:
            CorrelationError: If the fragment was never started (or already ended)
        """
        message_id = self._fragments[kind].get(fragment_id)
        if message_id is None:
            raise CorrelationError(f"{kind.value} fragment {fragment_id!r} has no start")
        return message_id

    def close(self, kind: FragmentKind, fragment_id: str) -> str:
        """Remove an open fragment, returning its stable id."""
        message_id = self.lookup(kind, fragment_id)
        del self._fragments[kind][fragment_id]
        logger.debug(f"[IDCorrelator] Closed {kind.value}: {fragment_id} → {message_id}")
        return message_id

    def open_fragments(self, kind: FragmentKind) -> list[str]:
        return list(self._fragments[kind])

    def open_tool_call(self, tool_call_id: str, tool_name: str) -> None:
        if tool_call_id in self._tool_calls:
            raise CorrelationError(f"tool call {tool_call_id!r} started twice")
        self._tool_calls[tool_call_id] = tool_name
        logger.debug(f"[IDCorrelator] Opened tool call: {tool_call_id} ({tool_name})")

    def require_tool_call(self, tool_call_id: str) -> str:
        """
        Return the tool name of a started tool call.

        Raises:
            CorrelationError: If no tool-input-start was seen for this id
        """
        tool_name = self._tool_calls.get(tool_call_id)
        if tool_name is None:
            raise CorrelationError(f"tool call {tool_call_id!r} has no start")
        return tool_name

    def finish_tool_call(self, tool_call_id: str) -> str | None:
        """Forget a tool call once its result is delivered. Unknown ids return None."""
        return self._tool_calls.pop(tool_call_id, None)
