import logging
import os
from pathlib import Path
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


class LooseObjectStore(ObjectStore):
    """
    One zlib-compressed file per object, at `<objects_dir>/<oid[:2]>/<oid[2:]>`.
    """

    def __init__(self, objects_dir: str | Path) -> None:
        self.objects_dir = Path(objects_dir)

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("LooseObjectStore(...)")
        else:
            with p.group(4, "LooseObjectStore(", ")"):
                p.breakable()
                p.text(f"path={self.objects_dir},")
                p.breakable()

    def object_path(self, oid: str) -> Path:
        return self.objects_dir / oid[:2] / oid[2:]

    def put(self, kind: ObjectKind | str, payload: bytes) -> tuple[str, str]:
        oid = hash_object(kind, payload)
        path = self.object_path(oid)

        if path.exists():
            logger.debug("object %s already stored", oid)
            return oid, str(path)

        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(path.name + ".tmp")
        with open(tmp, "wb") as f:
            f.write(compress(frame(kind, payload)))
        os.replace(tmp, path)

        logger.debug(
            "wrote %s object %s (%d bytes)", ObjectKind(kind).value, oid, len(payload)
        )
        return oid, str(path)

    def find(self, prefix: str) -> str:
        prefix = check_prefix(prefix)
        shard = self.objects_dir / prefix[:2]
        if not shard.is_dir():
            raise NotFoundError(f"no object matches {prefix!r}")

        rest = prefix[2:]
        matches = sorted(
            entry.name
            for entry in shard.iterdir()
            if entry.is_file()
            and entry.name.startswith(rest)
            and not entry.name.endswith(".tmp")
        )
        if not matches:
            raise NotFoundError(f"no object matches {prefix!r}")
        if len(matches) > 1:
            raise AmbiguousPrefixError(
                f"{len(matches)} objects match {prefix!r}: "
                + ", ".join(prefix[:2] + m for m in matches)
            )

        return str(shard / matches[0])

    def read_raw(self, location: str) -> bytes:
        with open(location, "rb") as f:
            return f.read()

    def contains(self, oid: str) -> bool:
        return self.object_path(oid.lower()).is_file()


def create_loose_object_store(objects_dir: str | Path) -> LooseObjectStore:
    return LooseObjectStore(objects_dir)
