"""Encoding in the XML Encoding Rules (XER)."""

from __future__ import annotations

import codecs as std_codecs
import io
import sys
from dataclasses import dataclass
from enum import IntFlag
from typing import Any, Callable, Optional, TextIO, Union

from .codecs import ConsumeBytes, EncodeError

#: ``encoder(value, ilevel, flags, sink)`` writes the body and returns its size.
BodyEncoder = Callable[[Any, int, "XerFlags", ConsumeBytes], int]


class XerFlags(IntFlag):
    """Mode of XER encoding."""

    BASIC = 0x01
    CANONICAL = 0x02


@dataclass
class XerType:
    """Descriptor of a type that can be written as XER.

    ``xml_tag`` names the enclosing element; ``encoder`` writes the body.
    ``decoder(ctx, data, member_name)``, when given, reads a value back
    and returns ``(value, consumed)``.
    """

    name: str
    xml_tag: str
    encoder: Optional[BodyEncoder] = None
    decoder: Optional[Callable[..., tuple[Any, int]]] = None

    def xer_encode(self, value: Any, ilevel: int, flags: XerFlags, sink: ConsumeBytes) -> int:
        """Write the body of ``value`` at indentation ``ilevel``; return its size."""
        if self.encoder is None:
            raise EncodeError(
                f"XER encoding of {self.name} is not supported",
                failed_type=self,
                value=value,
            )
        return self.encoder(value, ilevel, XerFlags(flags), sink)


def xer_encode(td: Optional[XerType], value: Any, flags: XerFlags, sink: ConsumeBytes) -> int:
    """Write ``value`` wrapped in its element into ``sink``; return bytes written.

    Basic XER ends the element with a newline, canonical XER does not.
    """
    if td is None or value is None:
        raise EncodeError("nothing to encode", failed_type=td, value=value)
    flags = XerFlags(flags)
    xcan = 1 if flags & XerFlags.CANONICAL else 2
    tag = td.xml_tag.encode("utf-8")

    sink(b"<")
    sink(tag)
    sink(b">")
    encoded = td.xer_encode(value, 1, flags, sink)
    sink(b"</")
    sink(tag)
    sink(b">\n"[:xcan])

    return 4 + xcan + 2 * len(tag) + encoded


def xer_print(
    td: Optional[XerType],
    value: Any,
    stream: Optional[Union[TextIO, io.BufferedIOBase, io.RawIOBase]] = None,
) -> int:
    """Print ``value`` as basic XER to ``stream`` (standard output by default).

    Text streams receive UTF-8-decoded text, binary streams the raw bytes.
    Returns the number of bytes encoded.
    """
    if stream is None:
        stream = sys.stdout
    if td is None or value is None:
        raise EncodeError("nothing to print", failed_type=td, value=value)

    if isinstance(stream, io.TextIOBase):
        decoder = std_codecs.getincrementaldecoder("utf-8")()

        def sink(chunk: bytes) -> None:
            stream.write(decoder.decode(chunk))

        encoded = xer_encode(td, value, XerFlags.BASIC, sink)
        stream.write(decoder.decode(b"", final=True))
    else:
        encoded = xer_encode(td, value, XerFlags.BASIC, stream.write)
    stream.flush()
    return encoded