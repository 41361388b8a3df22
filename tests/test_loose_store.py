import zlib
from pathlib import Path

import pytest

from vcs_plane.base import ObjectKind
from vcs_plane.errors import AmbiguousPrefixError, CorruptObjectError, NotFoundError
from vcs_plane.impl.loose import LooseObjectStore

FAKE_OID = "ab" + "1" * 38


@pytest.fixture
def store(tmp_path: Path) -> LooseObjectStore:
    return LooseObjectStore(tmp_path / "objects")


def write_raw(store: LooseObjectStore, oid: str, raw: bytes) -> Path:
    path = store.object_path(oid)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(raw)
    return path


def test_sharded_layout(store: LooseObjectStore):
    oid, location = store.put(ObjectKind.BLOB, b"Hello World")

    expected = store.objects_dir / oid[:2] / oid[2:]
    assert location == str(expected)
    assert zlib.decompress(expected.read_bytes()) == b"blob 11\x00Hello World"
    assert not list(expected.parent.glob("*.tmp")), "No temp files should remain"


def test_stored_bytes_are_deterministic(tmp_path: Path):
    store_a = LooseObjectStore(tmp_path / "a")
    store_b = LooseObjectStore(tmp_path / "b")

    _, path_a = store_a.put(ObjectKind.TREE, b"entries")
    _, path_b = store_b.put(ObjectKind.TREE, b"entries")

    assert Path(path_a).read_bytes() == Path(path_b).read_bytes()


def test_find_without_shard(store: LooseObjectStore):
    with pytest.raises(NotFoundError):
        store.find("ab")


def test_find_in_shard_without_match(store: LooseObjectStore):
    write_raw(store, FAKE_OID, b"")
    with pytest.raises(NotFoundError):
        store.find("ab2")


def test_find_ambiguous_prefix(store: LooseObjectStore):
    write_raw(store, "abc1" + "0" * 36, b"")
    write_raw(store, "abc2" + "0" * 36, b"")

    with pytest.raises(AmbiguousPrefixError):
        store.find("abc")
    assert store.find("abc1") == str(store.object_path("abc1" + "0" * 36))


def test_contains(store: LooseObjectStore):
    oid, _ = store.put(ObjectKind.BLOB, b"x")
    assert store.contains(oid)
    assert not store.contains(FAKE_OID)


@pytest.mark.parametrize(
    "raw",
    [
        zlib.compress(b"blob 5\x00abc"),
        zlib.compress(b"blob 3 x\x00abc"),
        zlib.compress(b"blob\x00abc"),
        zlib.compress(b"blob three\x00abc"),
        zlib.compress(b"blob -3\x00abc"),
        zlib.compress(b"tag 3\x00abc"),
        zlib.compress(b"blob 3abc"),
        b"not zlib at all",
    ],
    ids=[
        "length-mismatch",
        "three-fields",
        "one-field",
        "non-integer-length",
        "negative-length",
        "unknown-kind",
        "no-nul",
        "not-compressed",
    ],
)
def test_get_detects_corruption(store: LooseObjectStore, raw: bytes):
    write_raw(store, FAKE_OID, raw)
    with pytest.raises(CorruptObjectError):
        store.get(FAKE_OID)


def test_get_detects_truncated_file(store: LooseObjectStore):
    oid, location = store.put(ObjectKind.BLOB, b"some longer payload " * 50)
    path = Path(location)
    path.write_bytes(path.read_bytes()[:-10])

    with pytest.raises(CorruptObjectError):
        store.get(oid)


def test_existing_object_is_not_rewritten(store: LooseObjectStore):
    oid, location = store.put(ObjectKind.BLOB, b"keep")
    before = Path(location).stat().st_mtime_ns

    assert store.put(ObjectKind.BLOB, b"keep") == (oid, location)
    assert Path(location).stat().st_mtime_ns == before
