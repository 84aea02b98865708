"""Open type fields in unaligned PER: values wrapped in a length prefix."""

from __future__ import annotations

from typing import Any, Optional

from .codecs import CodecContext, CodecError, DecodeError, EncodeError, NeedMoreData
from .per_codec import PerType, uper_encode_to_new_buffer
from .per_support import BitReader, BitWriter, PerConstraints


def open_type_put(
    td: PerType,
    constraints: Optional[PerConstraints],
    value: Any,
    writer: BitWriter,
) -> None:
    """Write ``value`` as an open type: its complete encoding, length first."""
    payload = uper_encode_to_new_buffer(td, constraints, value)
    pos = 0
    to_go = len(payload)
    while to_go:
        may_save = writer.put_length(to_go)
        writer.put_many_bits(payload[pos:pos + may_save], 8 * may_save)
        pos += may_save
        to_go -= may_save
    if to_go:
        raise EncodeError(f"open type {td.name} was not written whole", td, value)


def _get(
    ctx: Optional[CodecContext],
    td: PerType,
    constraints: Optional[PerConstraints],
    reader: BitReader,
) -> Any:
    payload = bytearray()
    repeat = True
    while repeat:
        try:
            length, repeat = reader.get_length(-1)
            payload += reader.get_many_bits(8 * length)
        except CodecError as exc:
            raise NeedMoreData(f"open type {td.name} is incomplete") from exc

    sub = BitReader(bytes(payload))
    try:
        value = td.uper_decode(ctx, constraints, sub)
    except DecodeError:
        raise
    except CodecError as exc:
        # Nobody can supply more data to a closed open type.
        raise DecodeError(f"open type {td.name} is truncated") from exc

    padding = sub.nbits - sub.nboff
    if padding < 8 or (sub.nboff == 0 and sub.nbits == 8):
        try:
            tail = sub.get_few_bits(padding)
        except CodecError:
            tail = -1
        if tail == 0:
            return value
    if padding >= 8:
        raise DecodeError(f"too large padding {padding} in open type {td.name}")
    raise DecodeError(f"non-zero padding in open type {td.name}")


def open_type_get(
    ctx: Optional[CodecContext],
    td: PerType,
    constraints: Optional[PerConstraints],
    reader: BitReader,
) -> Any:
    """Read an open type field and decode its contents with ``td``."""
    if ctx is None:
        return _get(ctx, td, constraints, reader)
    with ctx:
        return _get(ctx, td, constraints, reader)


def _swallow(
    ctx: Optional[CodecContext],
    constraints: Optional[PerConstraints],
    reader: BitReader,
) -> None:
    while True:
        try:
            reader.get_few_bits(24)
        except CodecError:
            return None


_UNKNOWN_EXTENSION = PerType("<unknown extension>", decoder=_swallow)


def open_type_skip(ctx: Optional[CodecContext], reader: BitReader) -> None:
    """Step over an open type field without decoding it."""
    try:
        open_type_get(ctx, _UNKNOWN_EXTENSION, None, reader)
    except CodecError as exc:
        raise DecodeError("cannot skip open type") from exc