import hashlib
import string
import zlib
from dataclasses import dataclass
from enum import Enum
from typing import Any

from vcs_plane.errors import CorruptObjectError, InvalidPrefixError

OID_LENGTH = 40
MIN_PREFIX_LENGTH = 2

_HEX_DIGITS = frozenset(string.hexdigits.lower())


class ObjectKind(str, Enum):
    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


def frame(kind: ObjectKind | str, payload: bytes) -> bytes:
    """Prefix `payload` with its `"<kind> <length>\\0"` header."""
    kind = ObjectKind(kind)
    header = f"{kind.value} {len(payload)}".encode("ascii")
    return header + b"\x00" + payload


def hash_object(kind: ObjectKind | str, payload: bytes) -> str:
    """Compute the content hash of a payload of the given kind."""
    return hashlib.sha1(frame(kind, payload)).hexdigest()


def unframe(data: bytes) -> tuple[ObjectKind, bytes]:
    nul = data.find(b"\x00")
    if nul < 0:
        raise CorruptObjectError("object header is not NUL terminated")

    fields = data[:nul].split(b" ")
    if len(fields) != 2:
        raise CorruptObjectError(
            f"object header should have 2 fields but got {len(fields)}"
        )

    raw_kind, raw_size = fields
    try:
        kind = ObjectKind(raw_kind.decode("ascii"))
    except (UnicodeDecodeError, ValueError) as e:
        raise CorruptObjectError(f"unknown object kind {raw_kind!r}") from e

    if not raw_size.isdigit():
        raise CorruptObjectError(f"size should be a number, but got {raw_size!r}")
    size = int(raw_size)

    payload = data[nul + 1 :]
    if len(payload) != size:
        raise CorruptObjectError(f"expected size {size}, got {len(payload)} bytes")

    return kind, payload


def compress(data: bytes) -> bytes:
    return zlib.compress(data)


def decompress(data: bytes) -> bytes:
    try:
        return zlib.decompress(data)
    except zlib.error as e:
        raise CorruptObjectError(f"object data is not valid zlib: {e}") from e


def check_prefix(prefix: str) -> str:
    prefix = prefix.lower()
    if len(prefix) < MIN_PREFIX_LENGTH:
        raise InvalidPrefixError(
            f"hash prefix must be {MIN_PREFIX_LENGTH} or more characters"
        )
    if len(prefix) > OID_LENGTH or not set(prefix) <= _HEX_DIGITS:
        raise InvalidPrefixError(f"{prefix!r} is not a valid hash prefix")
    return prefix


@dataclass(frozen=True)
class ContentObject:
    """
    Typed payload, identified by the hash of its framed content.
    """

    kind: ObjectKind
    payload: bytes

    @property
    def oid(self) -> str:
        return hash_object(self.kind, self.payload)

    @property
    def size(self) -> int:
        return len(self.payload)

    def framed(self) -> bytes:
        return frame(self.kind, self.payload)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("ContentObject(...)")
        else:
            with p.group(4, "ContentObject(", ")"):
                p.breakable()
                p.text(f"kind='{self.kind.value}',")
                p.breakable()
                p.text(f"oid={self.oid[:7]},")
                p.breakable()
                p.text(f"size={self.size},")
                p.breakable()


class ObjectStore:
    """
    Content addressable store of immutable objects.

    Objects are stored compressed, framed with their kind and length, and
    keyed by the hash of the framed bytes. A location is whatever the backend
    uses to find a stored object again (a file path, or the full hash).
    """

    def put(self, kind: ObjectKind | str, payload: bytes) -> tuple[str, str]:
        """Persist a payload and return its hash and storage location."""
        raise NotImplementedError()

    def find(self, prefix: str) -> str:
        """Return the location of the single object whose hash starts with `prefix`."""
        raise NotImplementedError()

    def read_raw(self, location: str) -> bytes:
        """Return the compressed stored bytes at a location returned by `find`."""
        raise NotImplementedError()

    def contains(self, oid: str) -> bool:
        """Check whether an object with exactly this hash is stored."""
        raise NotImplementedError()

    def get(self, prefix: str) -> ContentObject:
        """Read, decompress and verify the object matching `prefix`."""
        location = self.find(prefix)
        kind, payload = unframe(decompress(self.read_raw(location)))
        return ContentObject(kind, payload)
