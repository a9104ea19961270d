"""Pytest configuration for integration tests.

Builds the FastAPI app around a scripted agent loop so the full HTTP path
(request parsing, ASGI push transport, SSE encoding) runs without a model.
"""

from __future__ import annotations

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from agui_stream_protocol import AGUIHandler, EventRecorder, RunContext
from agui_stream_protocol.agent import AgentLoop
from agui_stream_protocol.config import Settings


def _prompt(context: RunContext) -> str:
    return "You are a test assistant."


@pytest.fixture
def make_client() -> Callable[[AgentLoop], TestClient]:
    """Factory: TestClient for an app whose handler drives the given loop."""
    import server

    def factory(agent_loop: AgentLoop) -> TestClient:
        handler = AGUIHandler(
            agent_loop=agent_loop,
            system_prompt=_prompt,
            recorder=EventRecorder(enabled=False),
        )
        return TestClient(server.create_app(handler=handler, settings=Settings()))

    return factory
