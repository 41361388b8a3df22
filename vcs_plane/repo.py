import logging
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterable

from vcs_plane.base import ContentObject, ObjectKind, ObjectStore, hash_object
from vcs_plane.config import REPO_DIR_NAME, RepoLayout
from vcs_plane.errors import NotFoundError, RepositoryNotFoundError
from vcs_plane.filestat import stat_path, walk_files
from vcs_plane.impl.loose import LooseObjectStore
from vcs_plane.index import StagedEntry, StagingIndex

logger = logging.getLogger(__name__)


class Repository:
    """
    Worktree plus its object store and staging index.

    Staged paths are relative to the worktree and use `/` as separator.
    """

    @classmethod
    def init(cls, worktree: str | Path) -> "Repository":
        layout = RepoLayout.for_worktree(worktree)
        existed = layout.exists()
        layout.objects_dir.mkdir(parents=True, exist_ok=True)
        if existed:
            logger.info("reinitialized existing repository in %s", layout.root)
        else:
            logger.info("initialized empty repository in %s", layout.root)
        return cls(worktree)

    def __init__(self, worktree: str | Path, store: ObjectStore | None = None) -> None:
        self.worktree = Path(os.path.abspath(worktree))
        self.layout = RepoLayout.for_worktree(self.worktree)
        if not self.layout.exists():
            raise RepositoryNotFoundError(f"not a repository: {self.worktree}")

        if store is None:
            store = LooseObjectStore(self.layout.objects_dir)
        self.store = store
        self.index = StagingIndex(self.layout.index_path)
        self.reload()

    def reload(self) -> None:
        self.index.load()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("Repository(...)")
        else:
            with p.group(4, "Repository(", ")"):
                p.breakable()
                p.text(f"worktree={self.worktree},")
                p.breakable()
                p.text("store=")
                p.pretty(self.store)
                p.text(",")
                p.breakable()
                p.text("index=")
                p.pretty(self.index)
                p.breakable()

    def hash_object(
        self,
        payload: bytes,
        kind: ObjectKind | str = ObjectKind.BLOB,
        write: bool = True,
    ) -> str:
        if not write:
            return hash_object(kind, payload)
        oid, _ = self.store.put(kind, payload)
        return oid

    def cat(self, prefix: str) -> ContentObject:
        return self.store.get(prefix)

    def stage(self, entry: StagedEntry) -> None:
        """Stage an entry whose blob is already in the object store."""
        if not self.store.contains(entry.oid):
            raise NotFoundError(
                f"cannot stage {entry.path!r}: object {entry.oid} is not stored"
            )
        self.index.add_or_update(entry)

    def index_path(self, path: str | Path) -> str:
        absolute = Path(os.path.abspath(self.worktree / path))
        try:
            relative = absolute.relative_to(self.worktree)
        except ValueError:
            raise ValueError(f"{path} is outside repository {self.worktree}") from None
        return relative.as_posix()

    def add(self, paths: Iterable[str | Path]) -> list[StagedEntry]:
        """Store the contents of files (directories are walked) and stage them."""
        # every pathspec is checked before anything is staged
        targets: list[Path] = []
        for path in paths:
            target = self.worktree / path
            if REPO_DIR_NAME in Path(self.index_path(target)).parts:
                raise ValueError(f"{str(path)!r} is inside the repository directory")
            if not target.exists():
                raise FileNotFoundError(
                    f"pathspec {str(path)!r} did not match any files"
                )
            targets.append(target)

        staged: list[StagedEntry] = []
        for target in targets:
            for file in walk_files(target):
                staged.append(self._add_file(file))

        self.index.save()
        logger.info("staged %d files", len(staged))
        return staged

    def _add_file(self, file: Path) -> StagedEntry:
        oid, _ = self.store.put(ObjectKind.BLOB, file.read_bytes())
        entry = StagedEntry(
            path=self.index_path(file), oid=oid, **asdict(stat_path(file))
        )
        self.stage(entry)
        logger.debug("staged %s as %s", entry.path, oid)
        return entry

    def rm(self, paths: Iterable[str | Path]) -> list[StagedEntry]:
        """Unstage paths; a directory unstages everything below it."""
        removed: list[StagedEntry] = []
        for path in paths:
            key = self.index_path(path)
            if key in self.index:
                removed.append(self.index.remove(key))
                continue

            below = [
                p for p in self.index.paths() if key == "." or p.startswith(key + "/")
            ]
            if not below:
                raise KeyError(f"pathspec {str(path)!r} is not staged")
            removed.extend(self.index.remove(p) for p in below)

        self.index.save()
        return removed

    def ls_files(self) -> list[str]:
        return self.index.paths()


def open_repository(
    worktree: str | Path, store: ObjectStore | None = None
) -> Repository:
    return Repository(worktree, store)
