import logging
from typing import Any

from vcs_plane.base import (
    ObjectKind,
    ObjectStore,
    check_prefix,
    compress,
    frame,
    hash_object,
)
from vcs_plane.errors import AmbiguousPrefixError, NotFoundError

logger = logging.getLogger(__name__)

MemoryStoreData = dict[str, bytes]


class MemoryObjectStore(ObjectStore):
    """
    Keeps compressed objects in a dict shared with the caller, keyed by hash.
    Locations are full hashes.
    """

    def __init__(self, data: MemoryStoreData) -> None:
        self.data = data

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("MemoryObjectStore(...)")
        else:
            with p.group(4, "MemoryObjectStore(", ")"):
                p.breakable()
                p.text(f"objects={len(self.data)},")
                p.breakable()

    def put(self, kind: ObjectKind | str, payload: bytes) -> tuple[str, str]:
        oid = hash_object(kind, payload)
        if oid not in self.data:
            self.data[oid] = compress(frame(kind, payload))
            logger.debug("stored object %s in memory", oid)
        return oid, oid

    def find(self, prefix: str) -> str:
        prefix = check_prefix(prefix)
        matches = sorted(oid for oid in self.data if oid.startswith(prefix))
        if not matches:
            raise NotFoundError(f"no object matches {prefix!r}")
        if len(matches) > 1:
            raise AmbiguousPrefixError(
                f"{len(matches)} objects match {prefix!r}: {', '.join(matches)}"
            )
        return matches[0]

    def read_raw(self, location: str) -> bytes:
        try:
            return self.data[location]
        except KeyError:
            raise NotFoundError(f"no object at {location!r}") from None

    def contains(self, oid: str) -> bool:
        return oid.lower() in self.data


def create_memory_object_store(
    data: MemoryStoreData | None = None,
) -> MemoryObjectStore:
    return MemoryObjectStore({} if data is None else data)
