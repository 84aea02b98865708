"""A small, non-validating, resumable XML chunk tokenizer."""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Callable


class ChunkType(Enum):
    """Kind of chunk handed to the callback."""

    TEXT = 0
    TAG = 1
    COMMENT = 2
    TAG_END = 3
    COMMENT_END = 4


class ParserState(IntEnum):
    """Tokenizer state, carried between calls to :func:`parse`."""

    TEXT = 0
    TAG_START = 1
    TAG_BODY = 2
    TAG_QUOTE_WAIT = 3
    TAG_QUOTED_STRING = 4
    TAG_UNQUOTED_STRING = 5
    COMMENT_WAIT_DASH1 = 6
    COMMENT_WAIT_DASH2 = 7
    COMMENT = 8
    COMMENT_CLO_DASH2 = 9
    COMMENT_CLO_RT = 10


Callback = Callable[[ChunkType, bytes], bool]

_EXCLAM = ord("!")
_CQUOTE = ord('"')
_CDASH = ord("-")
_CSLASH = ord("/")
_LANGLE = ord("<")
_CEQUAL = ord("=")
_RANGLE = ord(">")

_WHITESPACE = frozenset(b"\t\n\x0c\r ")


def _is_alpha(c: int) -> bool:
    return 0x41 <= c <= 0x5A or 0x61 <= c <= 0x7A


class _Run:
    """Mutable parsing position shared by the token emitter."""

    def __init__(self, state: ParserState, data: bytes, callback: Callback) -> None:
        self.state = state
        self.data = data
        self.callback = callback
        self.chunk_start = 0

    def emit(self, kind: ChunkType, next_state: ParserState, pos: int, current_too: int) -> bool:
        """Hand a chunk to the callback; return True when parsing must stop."""
        size = pos - self.chunk_start + current_too
        if not size:
            self.state = next_state
            return False
        chunk = self.data[self.chunk_start:self.chunk_start + size]
        if not self.callback(kind, chunk):
            if current_too:
                self.state = next_state
            return True
        self.chunk_start = pos + current_too
        self.state = next_state
        return False


def parse(state: ParserState, data: bytes, callback: Callback) -> tuple[int, ParserState]:
    """Split ``data`` into text, tag and comment chunks.

    ``callback(kind, chunk)`` receives each chunk and returns a true value
    to go on or a false one to stop. Returns the number of bytes consumed
    and the state to resume from; the caller feeds the unconsumed rest
    again, together with more data, on the next call.
    """
    data = bytes(data)
    run = _Run(ParserState(state), data, callback)
    S = ParserState
    stopped = False

    for pos, c in enumerate(data):
        st = run.state
        if st is S.TEXT:
            if c == _LANGLE:
                stopped = run.emit(ChunkType.TEXT, S.TAG_START, pos, 0)
        elif st is S.TAG_START:
            if _is_alpha(c) or c == _CSLASH:
                run.state = S.TAG_BODY
            elif c == _EXCLAM:
                run.state = S.COMMENT_WAIT_DASH1
            else:
                # Something like "3 < 4": flush as plain text.
                stopped = run.emit(ChunkType.TEXT, S.TEXT, pos, 1)
        elif st is S.TAG_BODY:
            if c == _RANGLE:
                stopped = run.emit(ChunkType.TAG_END, S.TEXT, pos, 1)
            elif c == _LANGLE:
                # Unfinished tag is still taken as one.
                stopped = run.emit(ChunkType.TAG_END, S.TAG_START, pos, 0)
            elif c == _CEQUAL:
                run.state = S.TAG_QUOTE_WAIT
        elif st is S.TAG_QUOTE_WAIT:
            if c == _CQUOTE:
                run.state = S.TAG_QUOTED_STRING
            elif c == _RANGLE:
                stopped = run.emit(ChunkType.TAG_END, S.TEXT, pos, 1)
            elif c not in _WHITESPACE:
                run.state = S.TAG_UNQUOTED_STRING
        elif st is S.TAG_QUOTED_STRING:
            if c == _CQUOTE:
                run.state = S.TAG_BODY
        elif st is S.TAG_UNQUOTED_STRING:
            if c == _RANGLE:
                stopped = run.emit(ChunkType.TAG_END, S.TEXT, pos, 1)
            elif c in _WHITESPACE:
                run.state = S.TAG_BODY
        elif st is S.COMMENT_WAIT_DASH1:
            run.state = S.COMMENT_WAIT_DASH2 if c == _CDASH else S.TAG_BODY
        elif st is S.COMMENT_WAIT_DASH2:
            run.state = S.COMMENT if c == _CDASH else S.TAG_BODY
        elif st is S.COMMENT:
            if c == _CDASH:
                run.state = S.COMMENT_CLO_DASH2
        elif st is S.COMMENT_CLO_DASH2:
            run.state = S.COMMENT_CLO_RT if c == _CDASH else S.COMMENT
        elif st is S.COMMENT_CLO_RT:
            if c == _RANGLE:
                stopped = run.emit(ChunkType.COMMENT_END, S.TEXT, pos, 1)
            elif c != _CDASH:
                run.state = S.COMMENT
        if stopped:
            break

    if not stopped and len(data) - run.chunk_start:
        if run.state is S.COMMENT:
            run.emit(ChunkType.COMMENT, run.state, len(data), 0)
        elif run.state is S.TEXT:
            run.emit(ChunkType.TEXT, run.state, len(data), 0)

    return run.chunk_start, run.state