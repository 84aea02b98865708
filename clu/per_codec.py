"""Unaligned PER encoding and decoding entry points."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .codecs import (
    DEFAULT_MAX_DEPTH,
    CodecContext,
    CodecError,
    ConsumeBytes,
    DecodeError,
    EncodeError,
    NeedMoreData,
)
from .per_support import BitReader, BitWriter, PerConstraints

Encoder = Callable[[Optional[PerConstraints], Any, BitWriter], None]
Decoder = Callable[[Optional[CodecContext], Optional[PerConstraints], BitReader], Any]


@dataclass
class PerType:
    """Descriptor of a type that knows how to write and read itself in PER.

    ``encoder(constraints, value, writer)`` writes a value and
    ``decoder(ctx, constraints, reader)`` reads one back. Either may be
    left out, in which case the matching operation fails. Subclasses may
    override :meth:`uper_encode` and :meth:`uper_decode` instead.
    """

    name: str
    encoder: Optional[Encoder] = None
    decoder: Optional[Decoder] = None

    def uper_encode(
        self,
        constraints: Optional[PerConstraints],
        value: Any,
        writer: BitWriter,
    ) -> None:
        """Write ``value`` into ``writer``."""
        if self.encoder is None:
            raise EncodeError(
                f"PER encoding of {self.name} is not supported",
                failed_type=self,
                value=value,
            )
        self.encoder(constraints, value, writer)

    def uper_decode(
        self,
        ctx: Optional[CodecContext],
        constraints: Optional[PerConstraints],
        reader: BitReader,
    ) -> Any:
        """Read a value from ``reader``."""
        if self.decoder is None:
            raise DecodeError(f"PER decoding of {self.name} is not supported")
        return self.decoder(ctx, constraints, reader)


def _encode_internal(
    td: Optional[PerType],
    constraints: Optional[PerConstraints],
    value: Any,
    sink: ConsumeBytes,
) -> int:
    if td is None:
        raise EncodeError("no type to encode with", value=value)
    writer = BitWriter(sink)
    td.uper_encode(constraints, value, writer)
    bits = writer.bits_written
    writer.flush()
    return bits


def uper_encode(td: Optional[PerType], value: Any, sink: ConsumeBytes) -> int:
    """Encode ``value`` into ``sink`` and return the number of bits encoded.

    The last byte handed to ``sink`` is padded with zero bits.
    """
    return _encode_internal(td, None, value, sink)


def uper_encode_to_buffer(
    td: Optional[PerType], value: Any, buffer_size: int
) -> tuple[bytes, int]:
    """Encode ``value`` into at most ``buffer_size`` bytes.

    Returns the encoded bytes and the number of bits encoded; raises
    EncodeError when the encoding does not fit.
    """
    out = bytearray()

    def sink(chunk: bytes) -> None:
        if len(out) + len(chunk) > buffer_size:
            raise EncodeError(
                f"encoding exceeds the buffer of {buffer_size} bytes",
                failed_type=td,
                value=value,
            )
        out.extend(chunk)

    bits = _encode_internal(td, None, value, sink)
    return bytes(out), bits


def uper_encode_to_new_buffer(
    td: Optional[PerType],
    constraints: Optional[PerConstraints],
    value: Any,
) -> bytes:
    """Produce a complete encoding of ``value``: always at least one byte."""
    chunks: list[bytes] = []
    bits = _encode_internal(td, constraints, value, chunks.append)
    if bits == 0:
        return b"\x00"
    return b"".join(chunks)


def uper_decode(
    td: PerType,
    buffer: bytes,
    skip_bits: int = 0,
    unused_bits: int = 0,
    ctx: Optional[CodecContext] = None,
) -> tuple[Any, int]:
    """Decode a value from ``buffer``.

    ``skip_bits`` leading and ``unused_bits`` trailing bits (0..7 each) are
    ignored. Returns the value and the number of *bits* consumed.
    """
    buffer = bytes(buffer)
    if (
        not 0 <= skip_bits <= 7
        or not 0 <= unused_bits <= 7
        or (unused_bits > 0 and not buffer)
    ):
        raise DecodeError("invalid skip or unused bit count")

    if ctx is None:
        ctx = CodecContext(max_depth=DEFAULT_MAX_DEPTH)

    nbits = 8 * len(buffer) - unused_bits
    if skip_bits > nbits:
        raise DecodeError("nothing left to decode after skipping")
    reader = BitReader(buffer, nboff=skip_bits, nbits=nbits)

    try:
        value = td.uper_decode(ctx, None, reader)
    except CodecError as exc:
        # Decoding cannot be resumed, so nothing counts as consumed.
        if isinstance(exc, (DecodeError, NeedMoreData)):
            exc.consumed = 0
        raise
    return value, reader.moved


def uper_decode_complete(
    td: PerType,
    buffer: bytes,
    ctx: Optional[CodecContext] = None,
) -> tuple[Any, int]:
    """Decode a complete encoding; return the value and the bytes consumed."""
    buffer = bytes(buffer)
    value, consumed = uper_decode(td, buffer, 0, 0, ctx)
    if consumed:
        return value, (consumed + 7) >> 3
    if not buffer:
        raise NeedMoreData("a complete encoding holds at least one byte")
    if buffer[0] != 0:
        raise DecodeError("expected a single zero byte")
    return value, 1