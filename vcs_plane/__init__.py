from .base import ContentObject, ObjectKind, ObjectStore, hash_object
from .binpack import ByteOrder, RecordFormat, calcsize, pack, unpack
from .config import RepoLayout
from .impl.loose import LooseObjectStore, create_loose_object_store
from .impl.memory import MemoryObjectStore, create_memory_object_store
from .index import StagedEntry, StagingIndex, open_index
from .repo import Repository, open_repository

__all__ = [
    "ContentObject",
    "ObjectKind",
    "ObjectStore",
    "hash_object",
    "ByteOrder",
    "RecordFormat",
    "calcsize",
    "pack",
    "unpack",
    "RepoLayout",
    "LooseObjectStore",
    "create_loose_object_store",
    "MemoryObjectStore",
    "create_memory_object_store",
    "StagedEntry",
    "StagingIndex",
    "open_index",
    "Repository",
    "open_repository",
]
