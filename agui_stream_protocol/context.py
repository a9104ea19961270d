"""Run-scoped context shared with system-prompt generators, tool fetchers and tools."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class RunContext:
    """
    Identity and shared state of one streaming run.

    `state` is replaced in place whenever a tool result instructs a state
    update, so anything holding this object observes the latest value.
    """

    thread_id: str
    run_id: str
    state: Any = None
    context: list[Any] = field(default_factory=list)
    forwarded_props: Any = None
