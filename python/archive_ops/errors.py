"""
Error taxonomy for archive builds.

Every failure surfaced by the engine derives from ArchiveError so callers can
catch a single type at the boundary and report one descriptive message.
"""


class ArchiveError(Exception):
    """Base class for all archive build failures."""

    pass


class InvalidSourceError(ArchiveError):
    """Raised when the requested entry source is missing, of the wrong kind, or ambiguous."""

    pass


class UnsupportedFormatError(ArchiveError):
    """Raised when no writer is registered for the requested archive format."""

    pass


class MatchPatternError(ArchiveError):
    """Raised when an exclusion pattern is syntactically invalid."""

    def __init__(self, pattern: str, reason: str):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"invalid exclude pattern {pattern!r}: {reason}")


class SymlinkResolutionError(ArchiveError):
    """Raised when a symlink target does not exist or cannot be read."""

    pass


class SymlinkCycleError(SymlinkResolutionError):
    """Raised when symlink resolution exceeds the hop bound or loops back on itself."""

    pass


class EmptyArchiveError(ArchiveError):
    """Raised when the requested source would produce an archive with no entries."""

    pass


class WriteError(ArchiveError):
    """Raised on I/O failures while reading sources or writing the output archive."""

    pass


class DuplicateEntryError(ArchiveError):
    """Raised when two entries in one build share the same archive path."""

    def __init__(self, archive_path: str):
        self.archive_path = archive_path
        super().__init__(f"duplicate archive path: {archive_path}")


class InvalidFileModeError(ArchiveError):
    """Raised when an output file mode is not a valid octal permission string."""

    pass
