class VcsPlaneError(Exception):
    """Base class for every error raised by vcs_plane."""


class FormatError(VcsPlaneError, ValueError):
    """Values do not match a binary record format descriptor."""


class ObjectLookupError(VcsPlaneError, LookupError):
    pass


class InvalidPrefixError(ObjectLookupError):
    pass


class NotFoundError(ObjectLookupError):
    pass


class AmbiguousPrefixError(ObjectLookupError):
    pass


class CorruptObjectError(VcsPlaneError):
    """Stored object does not decode to a well formed framed payload."""


class IndexIntegrityError(VcsPlaneError):
    """Index file exists but cannot be trusted."""


class BadHeaderError(IndexIntegrityError):
    pass


class ChecksumMismatchError(IndexIntegrityError):
    pass


class CountMismatchError(IndexIntegrityError):
    pass


class EntryFormatError(IndexIntegrityError):
    pass


class DuplicateEntryError(IndexIntegrityError):
    pass


class RepositoryNotFoundError(VcsPlaneError):
    pass
