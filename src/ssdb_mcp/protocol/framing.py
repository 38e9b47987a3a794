"""Block framing: request encoder and resumable response decoder.

Block-group layout (requests and responses share it)::

    +-----------+----+-----------+----+-----+-----------+----+-----------+----+----+
    | len(b0)   | \\n | b0 bytes  | \\n | ... | len(bN)   | \\n | bN bytes  | \\n | \\n |
    | decimal   |    | raw       |    |     | decimal   |    | raw       |    |    |
    +-----------+----+-----------+----+-----+-----------+----+-----------+----+----+

- Lengths count raw bytes, not characters. Nothing is escaped.
- A blank line closes the block-group.
- In a request ``b0`` is the command name; in a response it is the status code.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from ..exceptions import ProtocolError

TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"


class Step(IntEnum):
    """Decoder states."""

    SIZE = 0
    DATA = 1


@dataclass
class ParseState:
    """Decoder state carried between :func:`decode_blocks` calls.

    One instance belongs to exactly one connection.
    """

    step: Step = Step.SIZE
    pending_block_length: int = 0
    receive_buffer: bytearray = field(default_factory=bytearray)
    blocks: list[bytes] = field(default_factory=list)

    def feed(self, data: bytes) -> None:
        """Append freshly read bytes to the receive buffer."""
        self.receive_buffer += data

    def reset(self) -> None:
        self.step = Step.SIZE
        self.pending_block_length = 0
        self.receive_buffer.clear()
        self.blocks = []


def encode_param(value: Any) -> bytes:
    """Convert one request argument to the raw bytes sent on the wire."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode(TEXT_ENCODING, TEXT_ERRORS)
    if value is None:
        return b""
    # bool is an int subclass, check it first
    if isinstance(value, bool):
        return b"1" if value else b"0"
    if isinstance(value, (int, float)):
        return str(value).encode("ascii")
    raise TypeError(f"Cannot encode argument of type {type(value).__name__}")


def flatten_params(params: Iterable[Any]) -> list[Any]:
    """Splice list/tuple arguments one level deep into the argument sequence."""
    flat: list[Any] = []
    for param in params:
        if isinstance(param, (list, tuple)):
            flat.extend(param)
        else:
            flat.append(param)
    return flat


def encode_blocks(elements: Iterable[Any]) -> bytes:
    """Frame an ordered sequence of elements as one block-group."""
    out = bytearray()
    for element in elements:
        raw = encode_param(element)
        out += str(len(raw)).encode("ascii")
        out += b"\n"
        out += raw
        out += b"\n"
    out += b"\n"
    return bytes(out)


def encode_request(command: str, params: Iterable[Any] = ()) -> bytes:
    """Encode a command invocation.

    Args:
        command: Command name, already canonicalized.
        params: Arguments. Lists and tuples are spliced flat.

    Returns:
        The complete request, blank-line terminated.

    Example::

        >>> encode_request("set", ["foo", "bar"])
        b'3\\nset\\n3\\nfoo\\n3\\nbar\\n\\n'
    """
    return encode_blocks([command, *flatten_params(params)])


def _parse_length(line: bytes) -> int:
    if not line.isdigit():
        raise ProtocolError(f"Invalid block length line: {bytes(line)!r}")
    return int(line)


def decode_blocks(state: ParseState) -> list[bytes] | None:
    """Consume buffered bytes and return the next complete block-group.

    The decoder is resumable: when the buffer runs out mid-group it returns
    ``None`` and keeps ``step``, ``pending_block_length`` and the blocks
    collected so far, so feeding the rest of the bytes later yields the same
    result as feeding everything at once.

    Args:
        state: Decoder state owned by the caller.

    Returns:
        The list of blocks of a finished group, or ``None`` if more bytes
        are needed.

    Raises:
        ProtocolError: A length line is not a non-negative decimal integer,
            or a block is not followed by a line terminator.
    """
    buf = state.receive_buffer
    pos = 0
    while True:
        if state.step == Step.SIZE:
            end = buf.find(b"\n", pos)
            if end < 0:
                break
            line = bytes(buf[pos:end]).strip()
            pos = end + 1
            if not line:
                # blank line closes the group
                del buf[:pos]
                group = state.blocks
                state.blocks = []
                return group
            state.pending_block_length = _parse_length(line)
            state.step = Step.DATA

        if state.step == Step.DATA:
            end = pos + state.pending_block_length
            if end >= len(buf):
                break
            if buf[end:end + 1] == b"\n":
                terminator = 1
            elif buf[end:end + 2] == b"\r\n":
                terminator = 2
            elif buf[end:end + 1] == b"\r" and end + 1 == len(buf):
                break
            else:
                raise ProtocolError(
                    f"Block of {state.pending_block_length} bytes is not followed by a line terminator"
                )
            state.blocks.append(bytes(buf[pos:end]))
            pos = end + terminator
            state.step = Step.SIZE

    if pos:
        del buf[:pos]
    return None
