"""
Pack and unpack fixed-width binary records described by a list of tokens.

One format descriptor drives both directions, so a layout declared once (the
index header, an index entry) is encoded and decoded symmetrically.

Tokens:
    ?           bool, 1 byte
    h, H        int, 2 bytes (signed / unsigned on decode)
    i, I, l, L  int, 4 bytes (signed / unsigned on decode)
    q, Q        int, 8 bytes (signed / unsigned on decode)
    f           float, 4 bytes
    d           float, 8 bytes
    Ns          bytes, N bytes, right padded with NUL; trailing NULs are
                stripped on decode, so values ending in NUL come back shorter
"""

import re
import struct
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Any, Iterable, Sequence

from vcs_plane.errors import FormatError

_STRING_TOKEN = re.compile(r"(\d+)s")

_INT_WIDTHS = {
    "h": 2,
    "H": 2,
    "i": 4,
    "I": 4,
    "l": 4,
    "L": 4,
    "q": 8,
    "Q": 8,
}
_SIGNED_CODES = {2: "h", 4: "i", 8: "q"}
_UNSIGNED_CODES = {2: "H", 4: "I", 8: "Q"}


class ByteOrder(str, Enum):
    BIG = ">"
    LITTLE = "<"


@dataclass(frozen=True)
class Field:
    token: str
    kind: str  # "bool", "int", "float" or "bytes"
    width: int
    signed: bool = False


def parse_token(token: str) -> Field:
    if token == "?":
        return Field(token, "bool", 1)
    if token in _INT_WIDTHS:
        return Field(token, "int", _INT_WIDTHS[token], signed=token.islower())
    if token == "f":
        return Field(token, "float", 4)
    if token == "d":
        return Field(token, "float", 8)
    match = _STRING_TOKEN.fullmatch(token)
    if match:
        return Field(token, "bytes", int(match.group(1)))
    raise FormatError(f"Unexpected format token: {token!r}")


class RecordFormat:
    """
    Parsed, reusable format descriptor.
    """

    def __init__(self, tokens: Iterable[str]) -> None:
        self.tokens = tuple(tokens)
        self.fields = tuple(parse_token(t) for t in self.tokens)
        self.size = sum(f.width for f in self.fields)

    def __repr__(self) -> str:
        return f"RecordFormat({list(self.tokens)!r}, size={self.size})"

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("RecordFormat(...)")
        else:
            with p.group(4, "RecordFormat(", ")"):
                p.breakable()
                p.text(f"tokens={list(self.tokens)!r},")
                p.breakable()
                p.text(f"size={self.size},")
                p.breakable()

    def pack(
        self, values: Sequence[Any], order: ByteOrder = ByteOrder.BIG
    ) -> bytes:
        if len(values) < len(self.fields):
            raise FormatError(
                f"format has {len(self.fields)} fields but only "
                f"{len(values)} values were given"
            )

        chunks = [
            _pack_field(field, value, order)
            for field, value in zip(self.fields, values)
        ]
        return b"".join(chunks)

    def unpack(self, data: bytes, order: ByteOrder = ByteOrder.BIG) -> list[Any]:
        if len(data) < self.size:
            raise FormatError(
                f"format needs {self.size} bytes but only {len(data)} were given"
            )

        result: list[Any] = []
        offset = 0
        for field in self.fields:
            chunk = data[offset : offset + field.width]
            result.append(_unpack_field(field, chunk, order))
            offset += field.width
        return result


@lru_cache(maxsize=64)
def _cached_format(tokens: tuple[str, ...]) -> RecordFormat:
    return RecordFormat(tokens)


def _as_format(format: Sequence[str] | RecordFormat) -> RecordFormat:
    if isinstance(format, RecordFormat):
        return format
    return _cached_format(tuple(format))


def _pack_field(field: Field, value: Any, order: ByteOrder) -> bytes:
    if field.kind == "bool":
        if not isinstance(value, bool):
            raise _mismatch(field, value, "bool")
        return b"\x01" if value else b"\x00"

    if field.kind == "int":
        if not isinstance(value, int) or isinstance(value, bool):
            raise _mismatch(field, value, f"int, {field.width} bytes")
        # two's complement truncation to the field width
        masked = value & ((1 << (8 * field.width)) - 1)
        return struct.pack(order.value + _UNSIGNED_CODES[field.width], masked)

    if field.kind == "float":
        if not isinstance(value, float):
            raise _mismatch(field, value, f"float, {field.width} bytes")
        code = "f" if field.width == 4 else "d"
        try:
            return struct.pack(order.value + code, value)
        except (struct.error, OverflowError) as e:
            raise FormatError(f"cannot pack {value!r} as {field.token!r}") from e

    if not isinstance(value, (bytes, bytearray)):
        raise _mismatch(field, value, "bytes")
    if len(value) > field.width:
        raise FormatError(
            f"value of {len(value)} bytes does not fit in {field.token!r}"
        )
    return bytes(value).ljust(field.width, b"\x00")


def _unpack_field(field: Field, chunk: bytes, order: ByteOrder) -> Any:
    if field.kind == "bool":
        return chunk != b"\x00"
    if field.kind == "int":
        codes = _SIGNED_CODES if field.signed else _UNSIGNED_CODES
        return struct.unpack(order.value + codes[field.width], chunk)[0]
    if field.kind == "float":
        code = "f" if field.width == 4 else "d"
        return struct.unpack(order.value + code, chunk)[0]
    return chunk.rstrip(b"\x00")


def _mismatch(field: Field, value: Any, expected: str) -> FormatError:
    return FormatError(
        f"type of value {value!r} doesn't match expected {field.token!r} ({expected})"
    )


def pack(
    format: Sequence[str] | RecordFormat,
    values: Sequence[Any],
    order: ByteOrder = ByteOrder.BIG,
) -> bytes:
    """Return `values` packed according to `format`."""
    return _as_format(format).pack(values, order)


def unpack(
    format: Sequence[str] | RecordFormat,
    data: bytes,
    order: ByteOrder = ByteOrder.BIG,
) -> list[Any]:
    """
    Unpack the leading bytes of `data` according to `format`.

    `data` may be longer than the format; the remainder is ignored.
    """
    return _as_format(format).unpack(data, order)


def calcsize(format: Sequence[str] | RecordFormat) -> int:
    return _as_format(format).size
