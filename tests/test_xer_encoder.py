import io

import pytest

from clu.codecs import EncodeError
from clu.xer_decoder import DecoderContext, decode_general
from clu.xer_encoder import XerFlags, XerType, xer_encode, xer_print


def text_encoder(value, ilevel, flags, sink):
    body = value.encode("utf-8")
    sink(body)
    return len(body)


def muc_type():
    return XerType("MUC", "MUC", encoder=text_encoder)


def test_basic_encoding_pins_layout():
    out = bytearray()
    n = xer_encode(muc_type(), "hello", XerFlags.BASIC, out.extend)
    assert bytes(out) == b"<MUC>hello</MUC>\n"
    assert n == len(out)


def test_canonical_encoding_has_no_newline():
    out = bytearray()
    n = xer_encode(muc_type(), "hello", XerFlags.CANONICAL, out.extend)
    assert bytes(out) == b"<MUC>hello</MUC>"
    assert n == len(out)


def test_encoder_receives_level_and_flags():
    calls = []

    def encoder(value, ilevel, flags, sink):
        calls.append((ilevel, flags))
        return 0

    td = XerType("T", "T", encoder=encoder)
    out = bytearray()
    xer_encode(td, object(), XerFlags.CANONICAL, out.extend)
    assert calls == [(1, XerFlags.CANONICAL)]
    assert bytes(out) == b"<T></T>"


def test_missing_arguments_fail():
    with pytest.raises(EncodeError):
        xer_encode(None, "x", XerFlags.BASIC, lambda chunk: None)
    with pytest.raises(EncodeError):
        xer_encode(muc_type(), None, XerFlags.BASIC, lambda chunk: None)


def test_type_without_encoder_fails():
    td = XerType("Bare", "Bare")
    with pytest.raises(EncodeError) as info:
        xer_encode(td, "x", XerFlags.BASIC, lambda chunk: None)
    assert info.value.failed_type is td


def test_sink_failure_propagates():
    def sink(chunk):
        raise EncodeError("full")

    with pytest.raises(EncodeError):
        xer_encode(muc_type(), "hello", XerFlags.BASIC, sink)


def test_print_to_text_stream():
    stream = io.StringIO()
    n = xer_print(muc_type(), "héllo", stream)
    assert stream.getvalue() == "<MUC>héllo</MUC>\n"
    assert n == len("<MUC>héllo</MUC>\n".encode("utf-8"))


def test_print_to_binary_stream():
    stream = io.BytesIO()
    xer_print(muc_type(), "hello", stream)
    assert stream.getvalue() == b"<MUC>hello</MUC>\n"


def test_print_missing_value_fails():
    with pytest.raises(EncodeError):
        xer_print(muc_type(), None, io.StringIO())


@pytest.mark.parametrize("text", ["hello", "", "a b c", "ünïcode"])
def test_round_trip_through_decoder(text):
    out = bytearray()
    xer_encode(muc_type(), text, XerFlags.BASIC, out.extend)
    parts = []

    def receive(chunk, have_more):
        parts.append(chunk)
        return len(chunk)

    consumed = decode_general(DecoderContext(), "MUC", bytes(out), receive)
    assert b"".join(parts).decode("utf-8") == text
    assert bytes(out)[consumed:] == b"\n"