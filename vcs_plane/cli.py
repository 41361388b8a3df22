import argparse
import logging
import sys
from pathlib import Path

from vcs_plane.base import ObjectKind, hash_object
from vcs_plane.errors import VcsPlaneError
from vcs_plane.repo import Repository


def _read_input(worktree: str, name: str) -> bytes:
    if name == "-":
        return sys.stdin.buffer.read()
    return (Path(worktree) / name).read_bytes()


def cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.worktree) / args.directory
    repo = Repository.init(target)
    print(f"initialized repository in {repo.layout.root}")
    return 0


def cmd_hash_object(args: argparse.Namespace) -> int:
    payload = _read_input(args.worktree, args.file)
    if args.write:
        oid = Repository(args.worktree).hash_object(payload, args.type)
    else:
        oid = hash_object(args.type, payload)
    print(oid)
    return 0


def cmd_cat_file(args: argparse.Namespace) -> int:
    obj = Repository(args.worktree).cat(args.object)
    if args.mode == "type":
        print(obj.kind.value)
    elif args.mode == "size":
        print(obj.size)
    else:
        sys.stdout.buffer.write(obj.payload)
        sys.stdout.buffer.flush()
    return 0


def cmd_add(args: argparse.Namespace) -> int:
    Repository(args.worktree).add(args.paths)
    return 0


def cmd_rm(args: argparse.Namespace) -> int:
    for entry in Repository(args.worktree).rm(args.paths):
        print(f"rm '{entry.path}'")
    return 0


def cmd_ls_files(args: argparse.Namespace) -> int:
    repo = Repository(args.worktree)
    for entry in repo.index:
        if args.stage:
            print(f"{entry.mode:06o} {entry.oid}\t{entry.path}")
        else:
            print(entry.path)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vcs-plane", description="Content addressable object store and index"
    )
    parser.add_argument(
        "-C", dest="worktree", default=".", help="Run as if started in this directory"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Log debug output to stderr"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init", help="Create an empty repository")
    init.add_argument("directory", nargs="?", default=".")
    init.set_defaults(func=cmd_init)

    hash_obj = subparsers.add_parser(
        "hash-object", help="Compute an object hash, optionally storing the object"
    )
    hash_obj.add_argument("-w", dest="write", action="store_true")
    hash_obj.add_argument(
        "-t",
        dest="type",
        choices=[k.value for k in ObjectKind],
        default=ObjectKind.BLOB.value,
    )
    hash_obj.add_argument("file", help="File to hash, '-' for stdin")
    hash_obj.set_defaults(func=cmd_hash_object)

    cat = subparsers.add_parser("cat-file", help="Show a stored object")
    mode = cat.add_mutually_exclusive_group(required=True)
    mode.add_argument("-p", dest="mode", action="store_const", const="payload")
    mode.add_argument("-t", dest="mode", action="store_const", const="type")
    mode.add_argument("-s", dest="mode", action="store_const", const="size")
    cat.add_argument("object", help="Hash or hash prefix (2+ characters)")
    cat.set_defaults(func=cmd_cat_file)

    add = subparsers.add_parser("add", help="Add file contents to the index")
    add.add_argument("paths", nargs="+")
    add.set_defaults(func=cmd_add)

    rm = subparsers.add_parser("rm", help="Remove files from the index")
    rm.add_argument("paths", nargs="+")
    rm.set_defaults(func=cmd_rm)

    ls_files = subparsers.add_parser("ls-files", help="List staged files")
    ls_files.add_argument("-s", "--stage", action="store_true")
    ls_files.set_defaults(func=cmd_ls_files)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        return args.func(args)
    except KeyError as e:
        print(f"error: {e.args[0]}", file=sys.stderr)
    except (VcsPlaneError, OSError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
