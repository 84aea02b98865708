import pytest

from clu.codecs import DecodeError, EncodeError, NeedMoreData
from clu.per_support import (
    BitReader,
    BitWriter,
    ConstraintFlags,
    PerConstraint,
    PerConstraints,
)


def _writer():
    chunks = []
    return BitWriter(chunks.append), chunks


def _output(writer, chunks):
    writer.flush()
    return b"".join(chunks)


@pytest.mark.parametrize(
    "fields",
    [
        [(1, 1), (0, 1), (5, 3)],
        [(0x7FFFFFFF, 31), (3, 2), (0x1234, 16)],
        [(0xABCDE, 20), (1, 1), (0x55, 7), (0x3FF, 10)],
    ],
)
def test_few_bits_round_trip(fields):
    writer, chunks = _writer()
    for value, width in fields:
        writer.put_few_bits(value, width)
    reader = BitReader(_output(writer, chunks))
    assert [reader.get_few_bits(width) for _, width in fields] == [v for v, _ in fields]


def test_flush_pads_last_byte_with_zeros():
    writer, chunks = _writer()
    writer.put_few_bits(1, 1)
    assert _output(writer, chunks) == b"\x80"


def test_bits_written_counts_before_flush():
    writer, _ = _writer()
    writer.put_few_bits(0x3FF, 10)
    assert writer.bits_written == 10
    assert writer.pending_bits == 10


def test_put_zero_bits_writes_nothing():
    writer, chunks = _writer()
    writer.put_few_bits(0xFF, 0)
    assert _output(writer, chunks) == b""


@pytest.mark.parametrize("obits", [-1, 32])
def test_put_too_many_bits_fails(obits):
    writer, _ = _writer()
    with pytest.raises(EncodeError):
        writer.put_few_bits(1, obits)


def test_large_output_is_emitted_in_chunks():
    data = bytes(range(100))
    writer, chunks = _writer()
    writer.put_many_bits(data)
    out = _output(writer, chunks)
    assert out == data
    assert len(chunks) > 1
    assert all(len(chunk) <= 32 for chunk in chunks)
    assert writer.flushed_bytes == len(data)


def test_second_flush_emits_nothing():
    writer, chunks = _writer()
    writer.put_few_bits(0xA, 4)
    writer.flush()
    count = len(chunks)
    writer.flush()
    assert len(chunks) == count


def test_reader_starves_without_refill():
    reader = BitReader(b"\x00")
    with pytest.raises(NeedMoreData):
        reader.get_few_bits(9)


@pytest.mark.parametrize("nbits", [-1, 32])
def test_reader_rejects_bad_width(nbits):
    with pytest.raises(DecodeError):
        BitReader(b"\x00" * 8).get_few_bits(nbits)


def test_undo_restores_position():
    reader = BitReader(b"\xa5\x3c")
    first = reader.get_few_bits(11)
    reader.undo(11)
    assert reader.nboff == 0
    assert reader.moved == 0
    assert reader.get_few_bits(11) == first


def test_undo_past_start_fails():
    reader = BitReader(b"\xa5")
    reader.get_few_bits(3)
    with pytest.raises(ValueError):
        reader.undo(4)


def test_moved_counts_bits():
    reader = BitReader(b"\xff\xff\xff")
    reader.get_few_bits(5)
    reader.get_few_bits(7)
    assert reader.moved == 12
    assert reader.nboff == 12


def test_skip_bits_shift_start():
    writer, chunks = _writer()
    writer.put_few_bits(0, 3)
    writer.put_few_bits(0x1F, 5)
    reader = BitReader(_output(writer, chunks), nboff=3)
    assert reader.get_few_bits(5) == 0x1F


def test_many_bits_round_trip():
    data = b"hello world"
    writer, chunks = _writer()
    writer.put_few_bits(1, 3)
    writer.put_many_bits(data)
    reader = BitReader(_output(writer, chunks))
    reader.get_few_bits(3)
    assert reader.get_many_bits(8 * len(data)) == data


def test_many_bits_partial_is_left_aligned():
    reader = BitReader(b"\xab\xcd")
    assert reader.get_many_bits(12) == b"\xab\xc0"


def test_many_bits_right_aligned():
    reader = BitReader(b"\xab\xcd")
    assert reader.get_many_bits(12, right_align=True) == b"\x0a\xbc"


def test_put_many_bits_partial_matches_get():
    writer, chunks = _writer()
    writer.put_many_bits(b"\xab\xc0", 12)
    assert writer.bits_written == 12
    reader = BitReader(_output(writer, chunks))
    assert reader.get_many_bits(12) == b"\xab\xc0"


def test_put_many_bits_beyond_source_fails():
    writer, _ = _writer()
    with pytest.raises(EncodeError):
        writer.put_many_bits(b"\x01", 9)


@pytest.mark.parametrize("length", [0, 1, 127, 128, 16383])
def test_length_round_trip(length):
    writer, chunks = _writer()
    assert writer.put_length(length) == length
    reader = BitReader(_output(writer, chunks))
    assert reader.get_length() == (length, False)


def test_short_length_is_one_byte():
    writer, chunks = _writer()
    writer.put_length(5)
    assert _output(writer, chunks) == b"\x05"


def test_fragmented_length_round_trip():
    writer, chunks = _writer()
    allowed = writer.put_length(40000)
    assert allowed < 40000
    reader = BitReader(_output(writer, chunks))
    assert reader.get_length() == (allowed, True)


def test_fragment_size_is_capped():
    writer, _ = _writer()
    assert writer.put_length(100000) == 65536


@pytest.mark.parametrize("byte", [b"\xc0", b"\xc5"])
def test_bad_fragment_multiplier(byte):
    with pytest.raises(DecodeError):
        BitReader(byte).get_length()


def test_length_with_effective_bits():
    writer, chunks = _writer()
    writer.put_few_bits(9, 4)
    reader = BitReader(_output(writer, chunks))
    assert reader.get_length(4) == (9, False)


def test_zero_nslength_fails():
    writer, _ = _writer()
    with pytest.raises(EncodeError):
        writer.put_nslength(0)


def test_huge_nslength_fails():
    writer, _ = _writer()
    with pytest.raises(EncodeError):
        writer.put_nslength(20000)


@pytest.mark.parametrize("n", [0, 1, 63])
def test_nsnnwn_round_trip(n):
    writer, chunks = _writer()
    writer.put_nsnnwn(n)
    reader = BitReader(_output(writer, chunks))
    assert reader.get_nsnnwn() == n


@pytest.mark.parametrize("n", [-1, 256 * 65536])
def test_nsnnwn_out_of_range(n):
    writer, _ = _writer()
    with pytest.raises(EncodeError):
        writer.put_nsnnwn(n)


@pytest.mark.parametrize(
    "value, nbits",
    [(1, 1), (0x7FFFFFFF, 31), (0xABCDEF1234, 40), ((1 << 64) - 1, 64)],
)
def test_constrained_whole_number_round_trip(value, nbits):
    writer, chunks = _writer()
    writer.put_constrained_whole_number(value, nbits)
    assert writer.bits_written == nbits
    reader = BitReader(_output(writer, chunks))
    assert reader.get_constrained_whole_number(nbits) == value


def test_negative_whole_number_wraps():
    writer, chunks = _writer()
    writer.put_constrained_whole_number(-1, 64)
    reader = BitReader(_output(writer, chunks))
    assert reader.get_constrained_whole_number(64) == (1 << 64) - 1


def test_whole_number_too_wide():
    with pytest.raises(DecodeError):
        BitReader(b"\x00" * 16).get_constrained_whole_number(65)


def test_refill_continues_across_windows():
    def refill(reader):
        reader.data = b"\x0f"
        reader.nboff = 0
        reader.nbits = 8
        reader.refill = None

    reader = BitReader(b"\xf0", refill=refill)
    assert reader.get_few_bits(12) == BitReader(b"\xf0\x0f").get_few_bits(12)
    assert reader.moved == 12


def test_refill_failure_propagates():
    def refill(reader):
        raise NeedMoreData("no more")

    reader = BitReader(b"\xf0", refill=refill)
    with pytest.raises(NeedMoreData):
        reader.get_few_bits(12)


def test_describe_reports_position():
    reader = BitReader(b"\x00\x00")
    reader.get_few_bits(3)
    text = reader.describe()
    assert "m=3" in text
    assert "[3..16]" in text


def test_constraints_defaults_are_unconstrained():
    constraints = PerConstraints()
    assert constraints.value.flags == ConstraintFlags.UNCONSTRAINED
    assert constraints.size == PerConstraint()
    assert constraints.value2code is None


def test_constraint_flags_combine():
    flags = ConstraintFlags.CONSTRAINED | ConstraintFlags.EXTENSIBLE
    constraint = PerConstraint(flags, 4, 3, 0, 15)
    assert constraint.flags == flags
    assert constraint.flags & ConstraintFlags.EXTENSIBLE == ConstraintFlags.EXTENSIBLE
    assert constraint.flags & ConstraintFlags.SEMI_CONSTRAINED == ConstraintFlags.UNCONSTRAINED
    assert constraint.range_bits == 4
    assert constraint.effective_bits == 3
    assert constraint.lower_bound == 0
    assert constraint.upper_bound == 15