from dataclasses import dataclass
from pathlib import Path

REPO_DIR_NAME = ".vcsplane"
OBJECTS_DIR_NAME = "objects"
INDEX_FILE_NAME = "index"

INDEX_SIGNATURE = b"DIRC"
INDEX_VERSION = 1


@dataclass(frozen=True)
class RepoLayout:
    """
    On-disk locations of a repository, derived from its root directory
    (the `.vcsplane` directory, not the worktree).
    """

    root: Path

    @classmethod
    def for_worktree(cls, worktree: str | Path) -> "RepoLayout":
        return cls(Path(worktree).absolute() / REPO_DIR_NAME)

    @property
    def objects_dir(self) -> Path:
        return self.root / OBJECTS_DIR_NAME

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILE_NAME

    def exists(self) -> bool:
        return self.objects_dir.is_dir()
