"""
Event Recorder for the AG-UI bridge

Records inbound run requests and delivered AG-UI events for debugging and
for capturing test fixtures. Outputs JSONL (1 line = 1 record).

Usage:
    from agui_stream_protocol.event_recorder import event_recorder

    event_recorder.record("agui-event-out", run_id=run_id, payload=event_dict)

Environment Variables:
    EVENT_RECORDER_ENABLED: Enable/disable recording (default: false)
    EVENT_RECORDER_OUTPUT_DIR: Output directory (default: ./event_logs)
    EVENT_RECORDER_SESSION_ID: Session identifier (default: auto-generated)

Output Structure:
    event_logs/
      └─ {session_id}/
          ├─ agui-request-in.jsonl
          └─ agui-event-out.jsonl
"""

import json
import os
import time
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal


RecordLocation = Literal[
    "agui-request-in",  # Decoded run input
    "agui-event-out",  # AG-UI event delivered to the client
]


@dataclass
class EventRecord:
    timestamp: int  # Unix timestamp (ms)
    session_id: str
    location: RecordLocation
    run_id: str
    sequence_number: int  # Order within location
    payload: Any


class EventRecorder:
    """Writes records to JSONL files organized by session and location."""

    def __init__(
        self,
        enabled: bool | None = None,
        output_dir: str | None = None,
        session_id: str | None = None,
    ):
        self._enabled = (
            enabled
            if enabled is not None
            else os.getenv("EVENT_RECORDER_ENABLED", "false").lower() == "true"
        )
        self._output_dir = Path(
            output_dir
            if output_dir is not None
            else os.getenv("EVENT_RECORDER_OUTPUT_DIR", "./event_logs")
        )
        self._session_id = (
            session_id or os.getenv("EVENT_RECORDER_SESSION_ID") or self._generate_session_id()
        )
        self._sequence_counters: dict[RecordLocation, int] = {}
        self._file_handles: dict[RecordLocation, Any] = {}

        if self._enabled:
            (self._output_dir / self._session_id).mkdir(parents=True, exist_ok=True)

    def _generate_session_id(self) -> str:
        timestamp = datetime.now(UTC).strftime("%Y-%m-%d-%H%M%S")
        return f"session-{timestamp}"

    def _get_file_handle(self, location: RecordLocation) -> Any:
        if location not in self._file_handles:
            file_path = self._output_dir / self._session_id / f"{location}.jsonl"
            self._file_handles[location] = file_path.open("a", encoding="utf-8", buffering=1)
        return self._file_handles[location]

    def is_enabled(self) -> bool:
        return self._enabled

    def record(self, location: RecordLocation, run_id: str, payload: Any) -> None:
        if not self._enabled:
            return

        self._sequence_counters[location] = self._sequence_counters.get(location, 0) + 1
        entry = EventRecord(
            timestamp=int(time.time() * 1000),
            session_id=self._session_id,
            location=location,
            run_id=run_id,
            sequence_number=self._sequence_counters[location],
            payload=payload,
        )
        self._get_file_handle(location).write(
            json.dumps(asdict(entry), ensure_ascii=False, default=str) + "\n"
        )

    def get_output_path(self) -> Path:
        return self._output_dir / self._session_id

    def get_info(self) -> dict[str, Any]:
        return {
            "enabled": self._enabled,
            "output_dir": str(self._output_dir),
            "session_id": self._session_id,
            "output_path": str(self.get_output_path()),
        }

    def close(self) -> None:
        for handle in self._file_handles.values():
            handle.close()
        self._file_handles.clear()

    def __enter__(self) -> "EventRecorder":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


# Global singleton instance
event_recorder = EventRecorder()
