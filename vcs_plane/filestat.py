import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from vcs_plane.config import REPO_DIR_NAME


@dataclass(frozen=True)
class FileStat:
    ctime_ns: int
    mtime_ns: int
    dev: int
    ino: int
    mode: int
    uid: int
    gid: int
    size: int
    flags: int


def stat_path(path: str | Path) -> FileStat:
    """
    Stat a file for staging. `flags` is `st_flags` where the platform
    reports it (BSD, macOS) and 0 elsewhere.
    """
    st = os.stat(path)
    return FileStat(
        ctime_ns=st.st_ctime_ns,
        mtime_ns=st.st_mtime_ns,
        dev=st.st_dev,
        ino=st.st_ino,
        mode=st.st_mode,
        uid=st.st_uid,
        gid=st.st_gid,
        size=st.st_size,
        flags=getattr(st, "st_flags", 0),
    )


def walk_files(
    path: str | Path, ignore: Iterable[str] = (REPO_DIR_NAME,)
) -> list[Path]:
    """List regular files at or below `path`, skipping directories named in `ignore`."""
    path = Path(path)
    ignored = set(ignore)

    if path.name in ignored:
        return []
    if path.is_file():
        return [path]

    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(path):
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        for name in sorted(filenames):
            candidate = Path(dirpath) / name
            if candidate.is_file():
                found.append(candidate)
    return found
