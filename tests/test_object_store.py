import hashlib
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from vcs_plane.base import ObjectKind, ObjectStore, hash_object
from vcs_plane.errors import InvalidPrefixError, NotFoundError
from vcs_plane.impl.loose import create_loose_object_store
from vcs_plane.impl.memory import MemoryStoreData, create_memory_object_store
from vcs_plane.impl.sql import Base, create_sql_object_store


class StoreProvider:
    def create(self, path: Path) -> ObjectStore:
        raise NotImplementedError()

    def cleanup(self, store: ObjectStore) -> None:
        pass


class LooseStoreProvider(StoreProvider):
    def create(self, path: Path) -> ObjectStore:
        return create_loose_object_store(path / "objects")


class MemoryStoreProvider(StoreProvider):
    def __init__(self):
        self.data: MemoryStoreData = {}

    def create(self, path: Path) -> ObjectStore:
        # Memory store ignores path, but uses shared dict
        return create_memory_object_store(self.data)


class SqlStoreProvider(StoreProvider):
    def __init__(self):
        self.engine = None

    def create(self, path: Path) -> ObjectStore:
        if self.engine:
            self.engine.dispose()

        self.engine = create_engine(f"sqlite:///{path / 'objects.db'}")
        Base.metadata.create_all(self.engine)
        Session = sessionmaker(bind=self.engine)
        return create_sql_object_store(Session)

    def cleanup(self, store: ObjectStore) -> None:
        if self.engine:
            self.engine.dispose()


PROVIDERS = [
    LooseStoreProvider,
    MemoryStoreProvider,
    SqlStoreProvider,
]
PROVIDER_IDS = ["loose", "memory", "sql"]


@pytest.fixture(params=PROVIDERS, ids=PROVIDER_IDS)
def provider(request) -> StoreProvider:
    return request.param()


@pytest.fixture
def store(tmp_path: Path, provider: StoreProvider):
    store = provider.create(tmp_path)
    yield store
    provider.cleanup(store)


def test_hash_of_framed_payload():
    expected = hashlib.sha1(b"blob 11\x00Hello World").hexdigest()
    assert hash_object(ObjectKind.BLOB, b"Hello World") == expected
    assert hash_object("blob", b"Hello World") == expected


def test_same_bytes_different_kind_hash_differently():
    assert hash_object("blob", b"x") != hash_object("tree", b"x")


def test_put_returns_hash_of_framing(store: ObjectStore):
    oid, location = store.put(ObjectKind.BLOB, b"Hello World")

    assert oid == hashlib.sha1(b"blob 11\x00Hello World").hexdigest()
    assert location
    assert store.contains(oid)


@pytest.mark.parametrize("kind", list(ObjectKind), ids=[k.value for k in ObjectKind])
@pytest.mark.parametrize(
    "payload",
    [b"", b"Hello World", b"nul\x00inside\x00", bytes(range(256)) * 40],
    ids=["empty", "text", "nul-bytes", "binary"],
)
def test_round_trip(store: ObjectStore, kind: ObjectKind, payload: bytes):
    oid, _ = store.put(kind, payload)

    obj = store.get(oid)
    assert obj.kind is kind
    assert obj.payload == payload
    assert obj.oid == oid
    assert obj.size == len(payload)


def test_put_is_idempotent(store: ObjectStore):
    first = store.put(ObjectKind.BLOB, b"same")
    second = store.put(ObjectKind.BLOB, b"same")

    assert first == second
    assert store.read_raw(first[1]) == store.read_raw(second[1])


def test_find_by_prefix(store: ObjectStore):
    oid, location = store.put(ObjectKind.BLOB, b"findme")

    assert store.find(oid) == location
    assert store.find(oid[:2]) == location
    assert store.find(oid[:7]) == location
    assert store.find(oid[:7].upper()) == location
    assert store.get(oid[:4]).payload == b"findme"


def test_find_missing_object(store: ObjectStore):
    with pytest.raises(NotFoundError):
        store.find("ab")
    with pytest.raises(NotFoundError):
        store.get("ab" + "0" * 38)


def test_find_rejects_short_prefix(store: ObjectStore):
    with pytest.raises(InvalidPrefixError):
        store.find("a")
    with pytest.raises(InvalidPrefixError):
        store.find("")


def test_find_rejects_non_hex_prefix(store: ObjectStore):
    with pytest.raises(InvalidPrefixError):
        store.find("zz")
    with pytest.raises(InvalidPrefixError):
        store.find("a" * 41)


def test_store_persistence(tmp_path: Path, provider: StoreProvider):
    store1 = provider.create(tmp_path)
    oid, _ = store1.put(ObjectKind.COMMIT, b"persisted")
    provider.cleanup(store1)

    store2 = provider.create(tmp_path)
    try:
        obj = store2.get(oid)
        assert obj.kind is ObjectKind.COMMIT
        assert obj.payload == b"persisted", "Objects should persist across instances"
    finally:
        provider.cleanup(store2)


def test_put_rejects_unknown_kind(store: ObjectStore):
    with pytest.raises(ValueError):
        store.put("tag", b"v1")
