"""Unaligned PER and XER codec support for ASN.1 types, and a command console model."""

__version__ = "0.1.0"

__all__ = [
    "codecs",
    "console",
    "per_codec",
    "per_opentype",
    "per_support",
    "xer_decoder",
    "xer_encoder",
    "xml_tokenizer",
]