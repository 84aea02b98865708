# clu

Building blocks for ASN.1 codecs in pure Python. The package provides an
Unaligned PER bit-stream reader and writer, PER encode and decode drivers,
and open-type handling. It also has a small incremental XML tokenizer with
XER encode and decode helpers, and the state model of an interactive command
console.

The package has no runtime dependencies.

## Modules

- `clu.codecs`: the error hierarchy that every codec shares
  (`CodecError`, `EncodeError`, `DecodeError`, `NeedMoreData`), and
  `CodecContext`. A `CodecContext` limits how deeply decoders may nest. Use
  `enter()` and `leave()`, or use it as a context manager. A `max_depth` of
  0 disables the check.
- `clu.xml_tokenizer`: `parse(state, data, callback)` splits bytes into text,
  tag and comment chunks (`ChunkType`). It returns the number of bytes
  consumed and the `ParserState` to resume from, so input may arrive in
  pieces. The callback returns a false value to stop parsing.
- `clu.per_support`: `BitReader` and `BitWriter` for Unaligned PER. They read
  and write:
  - a few bits or many bits;
  - length determinants, including 16K fragments;
  - normally small lengths;
  - normally small non-negative whole numbers;
  - constrained whole numbers.

  `PerConstraint`, `PerConstraints` and `ConstraintFlags` describe
  constraints.
- `clu.per_codec`: `PerType`, a descriptor holding an `encoder` and a
  `decoder` callable, and these drivers:

  | Driver | Returns |
  | --- | --- |
  | `uper_encode(td, value, sink)` | bits encoded |
  | `uper_encode_to_buffer(td, value, buffer_size)` | `(bytes, bits)` |
  | `uper_encode_to_new_buffer(td, constraints, value)` | a complete encoding of at least one byte |
  | `uper_decode(td, buffer, skip_bits, unused_bits, ctx)` | `(value, bits consumed)` |
  | `uper_decode_complete(td, buffer, ctx)` | `(value, bytes consumed)` |

- `clu.per_opentype`: `open_type_put`, `open_type_get` and `open_type_skip`
  for length-prefixed open type fields.
- `clu.xer_decoder`: `next_token`, `check_tag` (returns a `TagCheck`),
  `whitespace_span`, `skip_unknown`, `decode_general` and `xer_decode`, with
  `XerChunk` and `DecoderContext`. `decode_general` decodes one primitive
  element and returns the bytes consumed. `xer_decode` calls
  `td.decoder(ctx, data, None)`.
- `clu.xer_encoder`: `XerType`, `XerFlags`, `xer_encode` and `xer_print`.
  These write a value wrapped in its XML element. Basic XER ends the element
  with a newline and canonical XER does not. `xer_print` writes to a text or
  binary stream, which defaults to standard output.
- `clu.console`: `Console`, which keeps the log, history and tab completion
  of a command console without any drawing. `item_style` says how a log line
  should be shown (`ItemStyle`).

## Errors

Failures are raised, not returned:

- Encoders raise `EncodeError`.
- Decoders raise `DecodeError`.
- A decoder that runs out of input raises `NeedMoreData`, so the caller can
  retry with more bytes. `DecodeError` and `NeedMoreData` carry a `consumed`
  count.

## PER example

```python
from clu.per_codec import PerType, uper_encode_to_new_buffer, uper_decode_complete

small = PerType(
    "Small",
    encoder=lambda constraints, value, writer: writer.put_few_bits(value, 7),
    decoder=lambda ctx, constraints, reader: reader.get_few_bits(7),
)
data = uper_encode_to_new_buffer(small, None, 42)   # b"\x54"
uper_decode_complete(small, data)                   # (42, 1)
```

## XER example

```python
from clu.xer_encoder import XerFlags, XerType, xer_encode

def body(value, ilevel, flags, sink):
    raw = value.encode()
    sink(raw)
    return len(raw)

text = XerType("Text", "text", encoder=body)
chunks = []
xer_encode(text, "hi", XerFlags.BASIC, chunks.append)   # 16
b"".join(chunks)                                          # b"<text>hi</text>\n"
```

## The console

```python
from clu.console import Console, item_style

console = Console()
console.submit("help")        # logs "# help" and the list of commands
console.exec_command("history")
console.history_up()          # returns the previous command line

for line in console.visible_items("error"):
    print(item_style(line), line)
```

The known commands are `HELP`, `HISTORY` and `CLEAR`, matched without regard
to case. `CLASSIFY` is also in the command list, so it takes part in
completion and in the `HELP` listing. Running it, however, logs
"Unknown command".

`complete(text, cursor)` completes the word under the cursor against the
command list:

- One match is completed in full, followed by a space.
- Several matches are completed to their common prefix and listed in the log.

`visible_items` takes a filter such as `"incl,-excl"`.

## What it does not do

- The package defines no ASN.1 types of its own. Every `PerType` and
  `XerType` is supplied by the caller.
- There is no BER/DER codec.
- It opens no network connections.
- It draws no window: the console is a model only.
- It installs no command-line program.