"""
Protocol Layer

Pieces that sit between the agent loop and the AG-UI wire format:
- IDCorrelator: fragment id → stable message id tables
- ToolResultClassifier: suppression / state update / rendering of tool results
- normalize_history: loosely-typed history → agent-loop messages
- RunAgentInput: request body model
"""

from .history import decode_message, normalize_history
from .id_correlator import FragmentKind, IDCorrelator, new_message_id, new_run_id, new_thread_id
from .run_input import RunAgentInput, ToolDescriptor, ToolParameters, parse_run_input
from .tool_result_classifier import (
    AGUI_TOOL_METADATA_KEY,
    STATE_UPDATE_METADATA_KEY,
    ToolResultClassification,
    ToolResultClassifier,
)


__all__ = [
    "AGUI_TOOL_METADATA_KEY",
    "STATE_UPDATE_METADATA_KEY",
    "FragmentKind",
    "IDCorrelator",
    "RunAgentInput",
    "ToolDescriptor",
    "ToolParameters",
    "ToolResultClassification",
    "ToolResultClassifier",
    "decode_message",
    "new_message_id",
    "new_run_id",
    "new_thread_id",
    "normalize_history",
    "parse_run_input",
]
