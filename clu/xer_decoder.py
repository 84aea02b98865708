"""Decoding support for the XML Encoding Rules (XER)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Callable, Optional

from .codecs import DEFAULT_MAX_DEPTH, CodecContext, CodecError, DecodeError, NeedMoreData
from .xml_tokenizer import ChunkType, ParserState, parse

#: ``body_receiver(chunk, have_more)`` returns how many bytes of the chunk it took.
BodyReceiver = Callable[[bytes, bool], int]
#: ``unexpected_tag_decoder(tag)`` returns True when it handled the tag.
TagDecoder = Callable[[bytes], bool]

_CSLASH = ord("/")
_LANGLE = ord("<")
_RANGLE = ord(">")

_TAG_NAME_END = frozenset(b"\t\n\x0c\r ")
_XER_WHITESPACE = frozenset(b"\t\n\r ")


class XerChunk(Enum):
    """Kind of token taken from an XER stream."""

    WMORE = 0
    TAG = 1
    TEXT = 2
    COMMENT = 3


class TagCheck(IntEnum):
    """Result of comparing a tag with the expected name."""

    BROKEN = 0
    OPENING = 1
    CLOSING = 2
    BOTH = 3
    UNKNOWN_MASK = 4
    UNKNOWN_OP = 5
    UNKNOWN_CL = 6
    UNKNOWN_BO = 7


@dataclass
class DecoderContext:
    """Resumable state of one primitive decoder.

    ``phase`` is 0 before the opening tag, 1 inside the body and 2 once
    the element is complete; ``context`` is the tokenizer state.
    """

    phase: int = 0
    context: ParserState = ParserState.TEXT


_CHUNK_KINDS = {
    ChunkType.TEXT: XerChunk.TEXT,
    ChunkType.TAG_END: XerChunk.TAG,
    ChunkType.COMMENT: XerChunk.COMMENT,
    ChunkType.COMMENT_END: XerChunk.COMMENT,
}


def next_token(state: ParserState, data: bytes) -> tuple[int, XerChunk, ParserState]:
    """Take the next token from ``data``.

    Returns ``(size, kind, state)``: the token's length in bytes, its kind
    and the tokenizer state to carry on with. When no complete token is
    available the kind is ``XerChunk.WMORE``, the size is 0 and the state
    is returned unchanged.
    """
    state = ParserState(state)
    data = bytes(data)
    captured: list[tuple[ChunkType, bytes]] = []

    def grab(kind: ChunkType, chunk: bytes) -> bool:
        captured.append((kind, chunk))
        return False

    _, new_state = parse(state, data, grab)
    if not captured:
        return 0, XerChunk.WMORE, state
    kind, chunk = captured[0]
    if kind is ChunkType.TAG:
        return 0, XerChunk.WMORE, state
    return len(chunk), _CHUNK_KINDS[kind], new_state


def check_tag(data: bytes, need_tag: Optional[str]) -> TagCheck:
    """Classify the tag in ``data`` and compare its name with ``need_tag``."""
    buf = bytes(data)
    size = len(buf)
    if size < 2 or buf[0] != _LANGLE or buf[-1] != _RANGLE:
        return TagCheck.BROKEN

    if buf[1] == _CSLASH:
        body = buf[2:size - 1]
        ct = TagCheck.CLOSING
        if body and body[-1] == _CSLASH:
            return TagCheck.BROKEN
    else:
        body = buf[1:size - 1]
        ct = TagCheck.OPENING
        if body and body[-1] == _CSLASH:
            ct = TagCheck.BOTH
            body = body[:-1]

    unknown = TagCheck(TagCheck.UNKNOWN_MASK | ct)
    if not need_tag:
        return unknown

    need = need_tag.encode("utf-8")
    for i, b in enumerate(body):
        n = need[i] if i < len(need) else 0
        if b != n:
            if n == 0 and b in _TAG_NAME_END:
                return ct
            return unknown
        if b == 0:
            return TagCheck.BROKEN
    if len(body) < len(need):
        return unknown
    return ct


def whitespace_span(data: bytes) -> int:
    """Count the leading bytes of ``data`` that are XER whitespace."""
    count = 0
    for c in bytes(data):
        if c not in _XER_WHITESPACE:
            break
        count += 1
    return count


def skip_unknown(tcv: TagCheck, depth: int) -> tuple[int, int]:
    """Track nesting while skipping unknown elements.

    Returns ``(result, depth)``: result is 0 to go on, 2 when the skipped
    tree closed with an expected closing tag and 1 when it closed with an
    unknown one. Raises DecodeError on a broken tag.
    """
    if depth <= 0:
        raise ValueError(f"skip depth must be positive, got {depth}")
    tcv = TagCheck(tcv)
    if tcv in (TagCheck.BOTH, TagCheck.UNKNOWN_BO):
        return 0, depth
    if tcv in (TagCheck.OPENING, TagCheck.UNKNOWN_OP):
        return 0, depth + 1
    if tcv in (TagCheck.CLOSING, TagCheck.UNKNOWN_CL):
        depth -= 1
        if depth == 0:
            return (2 if tcv is TagCheck.CLOSING else 1), depth
        return 0, depth
    raise DecodeError("broken tag while skipping unknown elements")


def decode_general(
    ctx: DecoderContext,
    xml_tag: str,
    data: bytes,
    body_receiver: BodyReceiver,
    unexpected_tag_decoder: Optional[TagDecoder] = None,
) -> int:
    """Decode one primitive element ``<xml_tag>...</xml_tag>``.

    Body text goes to ``body_receiver``; tags inside the body that do not
    match are offered to ``unexpected_tag_decoder``. Returns the number of
    bytes consumed. NeedMoreData carries the bytes consumed so far; call
    again with the rest of the data and more after it.
    """
    data = bytes(data)
    pos = 0

    def receive(chunk: bytes, have_more: bool) -> int:
        try:
            return body_receiver(chunk, have_more)
        except CodecError as exc:
            raise DecodeError(f"cannot take the body of <{xml_tag}>", consumed=pos) from exc

    if ctx.phase > 1:
        raise DecodeError(f"<{xml_tag}> is already decoded")

    while True:
        rest = data[pos:]
        size, kind, ctx.context = next_token(ctx.context, rest)
        if kind is XerChunk.WMORE:
            raise NeedMoreData(f"<{xml_tag}> is incomplete", consumed=pos)
        if kind is XerChunk.COMMENT:
            pos += size
            continue
        if kind is XerChunk.TEXT:
            if ctx.phase:
                converted = receive(rest[:size], size < len(rest))
                if converted == 0 and size == len(rest):
                    raise NeedMoreData(f"<{xml_tag}> body is incomplete", consumed=pos)
                size = converted
            pos += size
            continue

        chunk = rest[:size]
        tcv = check_tag(chunk, xml_tag)
        if tcv is TagCheck.BOTH and not ctx.phase:
            receive(b"", len(rest) > 0)
            pos += size
            ctx.phase = 2
            return pos
        if tcv is TagCheck.OPENING and not ctx.phase:
            pos += size
            ctx.phase = 1
            continue
        if tcv is TagCheck.CLOSING and ctx.phase:
            pos += size
            ctx.phase = 2
            return pos
        if (
            tcv is TagCheck.UNKNOWN_BO
            and unexpected_tag_decoder is not None
            and unexpected_tag_decoder(chunk)
        ):
            pos += size
            if not ctx.phase:
                ctx.phase = 2
                return pos
            continue
        raise DecodeError(f"unexpected XML tag, expected <{xml_tag}>", consumed=pos)


def xer_decode(td: Any, data: bytes, ctx: Optional[CodecContext] = None) -> tuple[Any, int]:
    """Decode a value of type ``td`` from XER ``data``.

    ``td.decoder(ctx, data, member_name)`` does the type-specific work and
    returns ``(value, consumed)``. Without a context, nesting is limited
    to a safe default depth.
    """
    decoder = getattr(td, "decoder", None)
    if decoder is None:
        raise DecodeError(f"XER decoding of {getattr(td, 'name', td)!r} is not supported")
    if ctx is None:
        ctx = CodecContext(max_depth=DEFAULT_MAX_DEPTH)
    return decoder(ctx, bytes(data), None)