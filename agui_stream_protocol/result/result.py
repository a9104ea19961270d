"""Module containing definitions for the result type.

It works like Rust's Result type. Decoders that must never fail a whole
batch (history normalization, tool-result classification) return one of
these instead of raising.

Usage:
    match decode_message(raw):
        case Ok(message):
            messages.append(message)
        case Error(reason):
            logger.warning(reason)
"""

from dataclasses import dataclass
from typing import Generic, TypeVar


_T = TypeVar("_T")
_E = TypeVar("_E")


@dataclass(frozen=True)
class Ok(Generic[_T]):  # noqa: UP046
    value: _T

    def __repr__(self):
        return f"Ok({self.value!r})"


@dataclass(frozen=True)
class Error(Generic[_E]):  # noqa: UP046
    """Failure variant."""

    value: _E

    def __repr__(self):
        return f"Error({self.value!r})"


# Equivalent of the F# definition:
#   type Result<'Success,'Failure> =
#     | Ok of 'Success
#     | Error of 'Failure
Result = Ok[_T] | Error[_E]
