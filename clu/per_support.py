"""Bit-level reading and writing for the unaligned Packed Encoding Rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntFlag
from typing import Callable, Optional

from .codecs import ConsumeBytes, DecodeError, EncodeError, NeedMoreData

#: Size of the writer's staging area, in bytes, before whole bytes are emitted.
_STAGING_BYTES = 32
_STAGING_BITS = 8 * _STAGING_BYTES

#: Width of the widest whole number the decoder accepts.
_MAX_WHOLE_NUMBER_BITS = 64

_FRAGMENT = 16384


class ConstraintFlags(IntFlag):
    """What kind of PER-visible constraint applies."""

    UNCONSTRAINED = 0x0
    SEMI_CONSTRAINED = 0x1
    CONSTRAINED = 0x2
    EXTENSIBLE = 0x4


@dataclass(frozen=True)
class PerConstraint:
    """A pre-computed value or size constraint."""

    flags: ConstraintFlags = ConstraintFlags.UNCONSTRAINED
    range_bits: int = 0
    effective_bits: int = 0
    lower_bound: int = 0
    upper_bound: int = 0


@dataclass(frozen=True)
class PerConstraints:
    """Value and size constraints of a type, with optional code mappings."""

    value: PerConstraint = field(default_factory=PerConstraint)
    size: PerConstraint = field(default_factory=PerConstraint)
    value2code: Optional[Callable[[int], int]] = None
    code2value: Optional[Callable[[int], int]] = None


class BitReader:
    """A position inside an incoming PER bit stream.

    ``nboff`` and ``nbits`` are bit positions counted from the start of
    ``data``: the next bit to read and the end of the readable window.
    ``moved`` counts the bits read through this reader. When the window
    runs dry, ``refill(reader)`` is called, if set, to replace the window;
    it raises a CodecError when it has nothing more to give.
    """

    def __init__(
        self,
        data: bytes,
        nboff: int = 0,
        nbits: Optional[int] = None,
        moved: int = 0,
        refill: Optional[Callable[["BitReader"], object]] = None,
    ) -> None:
        self.data = bytes(data)
        self.nboff = nboff
        self.nbits = 8 * len(self.data) if nbits is None else nbits
        self.moved = moved
        self.refill = refill

    def __repr__(self) -> str:
        return f"BitReader{self.describe()}"

    def describe(self) -> str:
        """Return a short description of the reader's position, for debugging."""
        return (
            f"{{m={self.moved} span {self.nboff // 8:+d}"
            f"[{self.nboff}..{self.nbits}] ({self.nbits - self.nboff})}}"
        )

    def get_few_bits(self, nbits: int) -> int:
        """Read up to 31 bits and return them as a non-negative integer."""
        if nbits < 0 or nbits > 31:
            raise DecodeError(f"cannot read {nbits} bits at once")

        nleft = self.nbits - self.nboff
        if nbits > nleft:
            if self.refill is None:
                raise NeedMoreData(f"wanted {nbits} bits, {nleft} left")
            tail = self.get_few_bits(nleft)
            self.refill(self)
            nbits -= nleft
            head = self.get_few_bits(nbits)
            return (tail << nbits) | head

        start = self.nboff
        end = start + nbits
        last_byte = (end + 7) // 8
        if last_byte > len(self.data):
            raise NeedMoreData("bit window extends past the data")
        first_byte = start // 8
        chunk = int.from_bytes(self.data[first_byte:last_byte], "big")
        value = (chunk >> (8 * last_byte - end)) & ((1 << nbits) - 1)

        self.nboff = end
        self.moved += nbits
        return value

    def undo(self, nbits: int) -> None:
        """Step back over the bits just read."""
        if self.nboff < nbits:
            raise ValueError(f"cannot step back {nbits} bits from {self.nboff}")
        self.nboff -= nbits
        self.moved -= nbits

    def get_many_bits(self, nbits: int, right_align: bool = False) -> bytes:
        """Read ``nbits`` bits into bytes.

        The bits are left-aligned in the result; with ``right_align`` an
        incomplete leading group is placed in the low bits of the first byte.
        """
        out = bytearray()
        if right_align and nbits & 7:
            out.append(self.get_few_bits(nbits & 7))
            nbits &= ~7

        while nbits:
            if nbits >= 24:
                out += self.get_few_bits(24).to_bytes(3, "big")
                nbits -= 24
                continue
            value = self.get_few_bits(nbits)
            if nbits & 7:
                pad = 8 - (nbits & 7)
                value <<= pad
                nbits += pad
            out += value.to_bytes(nbits // 8, "big")
            break
        return bytes(out)

    def get_length(self, ebits: int = -1) -> tuple[int, bool]:
        """Read a length determinant.

        Returns ``(length, repeat)``; ``repeat`` is true when the length is
        a fragment and another length follows.
        """
        if ebits >= 0:
            return self.get_few_bits(ebits), False

        value = self.get_few_bits(8)
        if not value & 0x80:
            return value & 0x7F, False
        if not value & 0x40:
            value = ((value & 0x3F) << 8) | self.get_few_bits(8)
            return value, False
        multiplier = value & 0x3F
        if multiplier < 1 or multiplier > 4:
            raise DecodeError(f"invalid fragment multiplier {multiplier}")
        return _FRAGMENT * multiplier, True

    def get_nslength(self) -> int:
        """Read a normally small length."""
        if self.get_few_bits(1) == 0:
            return self.get_few_bits(6) + 1
        length, repeat = self.get_length(-1)
        if repeat:
            raise DecodeError("fragmented normally small length is not supported")
        return length

    def get_nsnnwn(self) -> int:
        """Read a normally small non-negative whole number."""
        value = self.get_few_bits(7)
        if not value & 0x40:
            return value
        value &= 0x3F
        value <<= 2
        value |= self.get_few_bits(2)
        if value & 0x80:
            raise DecodeError("invalid normally small number")
        if value == 0:
            return 0
        if value >= 3:
            raise DecodeError(f"normally small number of {value} bytes")
        return self.get_few_bits(8 * value)

    def get_constrained_whole_number(self, nbits: int) -> int:
        """Read a constrained whole number of ``nbits`` bits (at most 64)."""
        if nbits <= 31:
            return self.get_few_bits(nbits)
        if nbits > _MAX_WHOLE_NUMBER_BITS:
            raise DecodeError(f"whole number of {nbits} bits is out of range")
        high = self.get_few_bits(31)
        low = self.get_constrained_whole_number(nbits - 31)
        return (high << (nbits - 31)) | low


class BitWriter:
    """Collects PER output bit by bit and hands whole bytes to ``sink``.

    Bytes are staged and passed to ``sink`` in chunks; ``flush`` emits the
    rest, padding the last partial byte with zero bits. ``sink`` signals a
    failure by raising.
    """

    def __init__(self, sink: ConsumeBytes) -> None:
        self.sink = sink
        self.flushed_bytes = 0
        self._staged = bytearray()
        self._acc = 0
        self._acc_bits = 0

    @property
    def pending_bits(self) -> int:
        """Bits written but not yet handed to the sink."""
        return 8 * len(self._staged) + self._acc_bits

    @property
    def bits_written(self) -> int:
        """Total number of bits written so far."""
        return 8 * self.flushed_bytes + self.pending_bits

    def _emit_complete(self) -> None:
        if self._staged:
            chunk = bytes(self._staged)
            self._staged.clear()
            self.sink(chunk)
            self.flushed_bytes += len(chunk)

    def put_few_bits(self, bits: int, obits: int) -> None:
        """Write the low ``obits`` bits of ``bits`` (at most 31)."""
        if obits == 0:
            return
        if obits < 0 or obits >= 32:
            raise EncodeError(f"cannot write {obits} bits at once")

        if self.pending_bits + obits > _STAGING_BITS:
            self._emit_complete()

        bits &= (1 << obits) - 1
        self._acc = (self._acc << obits) | bits
        self._acc_bits += obits
        while self._acc_bits >= 8:
            self._acc_bits -= 8
            self._staged.append((self._acc >> self._acc_bits) & 0xFF)
        self._acc &= (1 << self._acc_bits) - 1

    def put_many_bits(self, src: bytes, nbits: Optional[int] = None) -> None:
        """Write the first ``nbits`` bits of ``src`` (all of it by default)."""
        src = bytes(src)
        if nbits is None:
            nbits = 8 * len(src)
        if nbits < 0 or nbits > 8 * len(src):
            raise EncodeError(f"cannot take {nbits} bits from {len(src)} bytes")

        pos = 0
        while nbits:
            if nbits >= 24:
                self.put_few_bits(int.from_bytes(src[pos:pos + 3], "big"), 24)
                pos += 3
                nbits -= 24
                continue
            value = int.from_bytes(src[pos:pos + (nbits + 7) // 8], "big")
            if nbits & 7:
                value >>= 8 - (nbits & 7)
            self.put_few_bits(value, nbits)
            break

    def put_constrained_whole_number(self, value: int, nbits: int) -> None:
        """Write a constrained whole number in ``nbits`` bits, high part first."""
        if value < 0:
            value &= (1 << _MAX_WHOLE_NUMBER_BITS) - 1
        if nbits <= 31:
            self.put_few_bits(value, nbits)
            return
        self.put_constrained_whole_number(value >> 31, nbits - 31)
        self.put_few_bits(value, 31)

    def put_length(self, length: int) -> int:
        """Write a length determinant.

        Returns how many units may follow it; for lengths of 16K and more
        this is a fragment size and another length must come after them.
        """
        if length <= 127:
            self.put_few_bits(length, 8)
            return length
        if length < _FRAGMENT:
            self.put_few_bits(length | 0x8000, 16)
            return length
        multiplier = min(length >> 14, 4)
        self.put_few_bits(0xC0 | multiplier, 8)
        return multiplier << 14

    def put_nslength(self, length: int) -> None:
        """Write a normally small length."""
        if length <= 64:
            if length == 0:
                raise EncodeError("normally small length must be positive")
            self.put_few_bits(length - 1, 7)
            return
        if self.put_length(length) != length:
            raise EncodeError(f"normally small length {length} is too large")

    def put_nsnnwn(self, n: int) -> None:
        """Write a normally small non-negative whole number."""
        if n <= 63:
            if n < 0:
                raise EncodeError(f"negative number {n}")
            self.put_few_bits(n, 7)
            return
        if n < 256:
            nbytes = 1
        elif n < 65536:
            nbytes = 2
        elif n < 256 * 65536:
            nbytes = 3
        else:
            raise EncodeError(f"{n} is not a normally small number")
        self.put_few_bits(nbytes, 8)
        self.put_few_bits(n, 8 * nbytes)

    def flush(self) -> None:
        """Hand everything written to the sink, zero-padding the last byte."""
        if self._acc_bits:
            pad = 8 - self._acc_bits
            self._staged.append((self._acc << pad) & 0xFF)
            self._acc = 0
            self._acc_bits = 0
        self._emit_complete()