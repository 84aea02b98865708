"""Errors and shared context used by the encoders and decoders."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

#: Signature of a sink receiving encoded output, chunk by chunk.
ConsumeBytes = Callable[[bytes], Any]

#: Nesting limit applied when a decoder is called without a context.
DEFAULT_MAX_DEPTH = 256


class CodecError(Exception):
    """Base class of every encoding and decoding failure."""


class EncodeError(CodecError):
    """A value could not be encoded.

    ``failed_type`` names the type descriptor that failed and ``value``
    is the structure that could not be encoded, for post-mortem analysis.
    """

    def __init__(
        self,
        message: str = "encoding failed",
        failed_type: Any = None,
        value: Any = None,
    ) -> None:
        super().__init__(message)
        self.failed_type = failed_type
        self.value = value


class DecodeError(CodecError):
    """The input could not be decoded.

    ``consumed`` counts the units successfully decoded before the failure.
    """

    def __init__(self, message: str = "decoding failed", consumed: int = 0) -> None:
        super().__init__(message)
        self.consumed = consumed


class NeedMoreData(CodecError):
    """The input ended early; call again with more data."""

    def __init__(self, message: str = "more data expected", consumed: int = 0) -> None:
        super().__init__(message)
        self.consumed = consumed


@dataclass
class CodecContext:
    """Decoder context limiting how deeply decoders may nest.

    A ``max_depth`` of zero disables the check.
    """

    max_depth: int = 0
    depth: int = field(default=0, init=False)

    def enter(self) -> "CodecContext":
        """Descend one level, raising DecodeError when the limit is reached."""
        if self.max_depth and self.depth >= self.max_depth:
            raise DecodeError(f"nesting limit {self.max_depth} reached")
        self.depth += 1
        return self

    def leave(self) -> None:
        """Return one level up."""
        if self.depth > 0:
            self.depth -= 1

    def __enter__(self) -> "CodecContext":
        return self.enter()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.leave()