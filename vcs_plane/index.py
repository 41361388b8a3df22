"""
Staging index: file metadata records pending a future commit, kept in a
single checksummed binary file.

File layout (all integers big endian):

    header      signature "DIRC", version, entry count   ["4s", "L", "L"]
    entries     one per staged path, sorted by path
    checksum    SHA-1 of everything above, 20 raw bytes

Each entry is the fixed block ENTRY_FORMAT followed by the UTF-8 path and
NUL padding up to the next multiple of 8 bytes. There is always at least one
NUL after the path, so a reader finds the end of an entry by scanning for
the terminator and rounding up.
"""

import hashlib
import logging
import os
import string
from dataclasses import dataclass
from operator import attrgetter
from pathlib import Path
from typing import Any, Iterable, Iterator

from vcs_plane.base import OID_LENGTH
from vcs_plane.binpack import ByteOrder, RecordFormat
from vcs_plane.config import INDEX_SIGNATURE, INDEX_VERSION
from vcs_plane.errors import (
    BadHeaderError,
    ChecksumMismatchError,
    CountMismatchError,
    DuplicateEntryError,
    EntryFormatError,
)

logger = logging.getLogger(__name__)

HEADER_FORMAT = RecordFormat(["4s", "L", "L"])
ENTRY_FORMAT = RecordFormat(
    [
        "q",  # ctime_ns
        "q",  # mtime_ns
        "Q",  # dev
        "Q",  # ino
        "Q",  # mode
        "Q",  # uid
        "Q",  # gid
        "Q",  # size
        "20s",  # binary content hash
        "L",  # flags
    ]
)
CHECKSUM_SIZE = 20
ENTRY_ALIGNMENT = 8

_BYTE_ORDER = ByteOrder.BIG
_HEX_DIGITS = frozenset(string.hexdigits.lower())
_INT_RANGES = {
    "ctime_ns": (-(1 << 63), (1 << 63) - 1),
    "mtime_ns": (-(1 << 63), (1 << 63) - 1),
    "dev": (0, (1 << 64) - 1),
    "ino": (0, (1 << 64) - 1),
    "mode": (0, (1 << 64) - 1),
    "uid": (0, (1 << 64) - 1),
    "gid": (0, (1 << 64) - 1),
    "size": (0, (1 << 64) - 1),
    "flags": (0, (1 << 32) - 1),
}


@dataclass(frozen=True)
class StagedEntry:
    """
    Metadata of one staged file. `oid` is the content hash of the blob
    holding the file's contents; timestamps are nanoseconds since the epoch.
    """

    path: str
    oid: str
    ctime_ns: int = 0
    mtime_ns: int = 0
    dev: int = 0
    ino: int = 0
    mode: int = 0
    uid: int = 0
    gid: int = 0
    size: int = 0
    flags: int = 0

    def __post_init__(self) -> None:
        if not self.path:
            raise ValueError("entry path must not be empty")
        if "\x00" in self.path:
            raise ValueError(f"entry path {self.path!r} contains NUL")
        if len(self.oid) != OID_LENGTH or not set(self.oid) <= _HEX_DIGITS:
            raise ValueError(f"{self.oid!r} is not a lowercase 40-character hash")
        for name, (low, high) in _INT_RANGES.items():
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError(f"{name} must be an int, got {value!r}")
            if not low <= value <= high:
                raise ValueError(f"{name}={value} is out of range")

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("StagedEntry(...)")
        else:
            with p.group(4, "StagedEntry(", ")"):
                p.breakable()
                p.text(f"path='{self.path}',")
                p.breakable()
                p.text(f"oid={self.oid[:7]},")
                p.breakable()
                p.text(f"mode={self.mode:o},")
                p.breakable()
                p.text(f"size={self.size},")
                p.breakable()


def sort_entries(entries: Iterable[StagedEntry]) -> list[StagedEntry]:
    """Return a new list of entries ordered by path."""
    return sorted(entries, key=attrgetter("path"))


def entry_length(path_length: int) -> int:
    unpadded = ENTRY_FORMAT.size + path_length + 1
    return -(-unpadded // ENTRY_ALIGNMENT) * ENTRY_ALIGNMENT


def encode_entry(entry: StagedEntry) -> bytes:
    fixed = ENTRY_FORMAT.pack(
        [
            entry.ctime_ns,
            entry.mtime_ns,
            entry.dev,
            entry.ino,
            entry.mode,
            entry.uid,
            entry.gid,
            entry.size,
            bytes.fromhex(entry.oid),
            entry.flags,
        ],
        _BYTE_ORDER,
    )
    path = entry.path.encode("utf-8")
    return (fixed + path).ljust(entry_length(len(path)), b"\x00")


def encode_index(entries: Iterable[StagedEntry]) -> bytes:
    ordered = sort_entries(entries)
    for previous, current in zip(ordered, ordered[1:]):
        if previous.path == current.path:
            raise DuplicateEntryError(f"path {current.path!r} is staged twice")

    header = HEADER_FORMAT.pack(
        [INDEX_SIGNATURE, INDEX_VERSION, len(ordered)], _BYTE_ORDER
    )
    content = header + b"".join(encode_entry(e) for e in ordered)
    return content + hashlib.sha1(content).digest()


def _decode_entries(body: bytes) -> list[StagedEntry]:
    entries: list[StagedEntry] = []
    offset = 0

    while offset < len(body):
        fixed_end = offset + ENTRY_FORMAT.size
        if fixed_end > len(body):
            raise EntryFormatError(f"truncated entry at offset {offset}")

        values = ENTRY_FORMAT.unpack(body[offset:fixed_end], _BYTE_ORDER)
        nul = body.find(b"\x00", fixed_end)
        if nul < 0:
            raise EntryFormatError(f"entry at offset {offset} has no path terminator")

        raw_path = body[fixed_end:nul]
        length = entry_length(len(raw_path))
        if offset + length > len(body):
            raise EntryFormatError(f"entry at offset {offset} overruns the index")

        ctime_ns, mtime_ns, dev, ino, mode, uid, gid, size, raw_oid, flags = values
        try:
            entries.append(
                StagedEntry(
                    path=raw_path.decode("utf-8"),
                    # NUL bytes at the end of the hash are stripped by the codec
                    oid=raw_oid.ljust(CHECKSUM_SIZE, b"\x00").hex(),
                    ctime_ns=ctime_ns,
                    mtime_ns=mtime_ns,
                    dev=dev,
                    ino=ino,
                    mode=mode,
                    uid=uid,
                    gid=gid,
                    size=size,
                    flags=flags,
                )
            )
        except (UnicodeDecodeError, ValueError) as e:
            raise EntryFormatError(f"invalid entry at offset {offset}: {e}") from e

        offset += length

    return entries


def decode_index(data: bytes) -> list[StagedEntry]:
    if len(data) < HEADER_FORMAT.size + CHECKSUM_SIZE:
        raise BadHeaderError(f"index file is too short ({len(data)} bytes)")

    content, checksum = data[:-CHECKSUM_SIZE], data[-CHECKSUM_SIZE:]
    if hashlib.sha1(content).digest() != checksum:
        raise ChecksumMismatchError("invalid index checksum")

    signature, version, count = HEADER_FORMAT.unpack(content, _BYTE_ORDER)
    if signature != INDEX_SIGNATURE:
        raise BadHeaderError(f"invalid index signature {signature!r}")
    if version != INDEX_VERSION:
        raise BadHeaderError(f"unknown index version {version}")

    entries = _decode_entries(content[HEADER_FORMAT.size :])
    if len(entries) != count:
        raise CountMismatchError(
            f"index header declares {count} entries but {len(entries)} were read"
        )
    if len({e.path for e in entries}) != len(entries):
        raise DuplicateEntryError("index contains duplicate paths")
    return entries


class StagingIndex:
    """
    In-memory view of the index file, keyed by path.

    The file is only read by `load()` and only written by `save()`; every
    save rewrites the whole file.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.entries: dict[str, StagedEntry] = {}
        self.dirty = False

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("StagingIndex(...)")
        else:
            with p.group(4, "StagingIndex(", ")"):
                p.breakable()
                p.text(f"path={self.path},")
                p.breakable()
                p.text("entries=")
                p.pretty(self.sorted())
                p.breakable()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[StagedEntry]:
        return iter(self.sorted())

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def sorted(self) -> list[StagedEntry]:
        return sort_entries(self.entries.values())

    def paths(self) -> list[str]:
        return [e.path for e in self.sorted()]

    def get(self, path: str) -> StagedEntry | None:
        return self.entries.get(path)

    def is_dirty(self) -> bool:
        return self.dirty

    def load(self) -> list[StagedEntry]:
        """
        Read and verify the index file, replacing the in-memory entries.

        A missing file is an empty index.
        """
        try:
            with open(self.path, "rb") as f:
                data = f.read()
        except FileNotFoundError:
            logger.debug("no index at %s", self.path)
            entries = []
        else:
            entries = decode_index(data)
            logger.debug("loaded %d index entries from %s", len(entries), self.path)

        self.entries = {e.path: e for e in entries}
        self.dirty = False
        return entries

    def add_or_update(self, entry: StagedEntry) -> None:
        self.entries[entry.path] = entry
        self.dirty = True

    def remove(self, path: str) -> StagedEntry:
        entry = self.entries.pop(path)
        self.dirty = True
        return entry

    def save(self, entries: Iterable[StagedEntry] | None = None) -> None:
        """
        Write the index file, sorted by path. When `entries` is given it
        replaces the in-memory entries first.
        """
        if entries is not None:
            entries = list(entries)
            data = encode_index(entries)
            self.entries = {e.path: e for e in entries}
        else:
            data = encode_index(self.entries.values())

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".lock")
        with open(tmp, "wb") as f:
            f.write(data)
        os.replace(tmp, self.path)

        self.dirty = False
        logger.debug("saved %d index entries to %s", len(self.entries), self.path)


def open_index(path: str | Path) -> StagingIndex:
    index = StagingIndex(path)
    index.load()
    return index
