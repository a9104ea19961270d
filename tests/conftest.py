"""Pytest configuration and shared fixtures for tests.

This module provides common pytest fixtures that are shared across
unit and integration tests.
"""

from __future__ import annotations

from typing import Any

import pytest

from agui_stream_protocol import AGUIHandlerOptions, EventRecorder, RunContext
from agui_stream_protocol.protocol import RunAgentInput


# ============================================================
# Run Fixtures
# ============================================================


@pytest.fixture
def run_context() -> RunContext:
    return RunContext(thread_id="thread-1", run_id="run-1", state={"count": 0})


@pytest.fixture
def disabled_recorder() -> EventRecorder:
    """Recorder that never touches the filesystem."""
    return EventRecorder(enabled=False)


@pytest.fixture
def handler_options() -> AGUIHandlerOptions:
    return AGUIHandlerOptions()


@pytest.fixture
def weather_history() -> list[dict[str, Any]]:
    """History with a completed server-side tool round trip."""
    return [
        {"id": "m1", "role": "user", "content": "What's the weather in Tokyo?"},
        {
            "id": "m2",
            "role": "assistant",
            "toolCalls": [
                {
                    "id": "call-1",
                    "type": "function",
                    "function": {"name": "get_weather", "arguments": '{"location": "Tokyo"}'},
                }
            ],
        },
        {"id": "m3", "role": "tool", "toolCallId": "call-1", "content": "Sunny, 22°C"},
    ]


@pytest.fixture
def basic_run_input() -> RunAgentInput:
    return RunAgentInput(
        thread_id="thread-1",
        run_id="run-1",
        messages=[{"id": "m1", "role": "user", "content": "Hi"}],
    )
