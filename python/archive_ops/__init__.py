from .errors import (
    ArchiveError,
    InvalidSourceError,
    UnsupportedFormatError,
    MatchPatternError,
    SymlinkResolutionError,
    SymlinkCycleError,
    EmptyArchiveError,
    WriteError,
    DuplicateEntryError,
    InvalidFileModeError,
)

# Traversal components
from .path_matcher import ExclusionSet, PathMatcher, is_excluded
from .symlink_resolver import SymlinkResolver, ResolvedLink
from .entries import ArchiveEntry
from .tree_walker import TreeWalker, WalkContext, WalkStats

# Archive writing components
from .archive_writers import (
    ArchiveFormat,
    ArchiveWriter,
    BaseArchiveWriter,
    ZipArchiveWriter,
    TarGzArchiveWriter,
    ArchiveWriterFactory,
)
from .checksums import FileChecksums, compute_file_checksums
from .archive_verifier import (
    ArchiveMember,
    ZipArchiveVerifier,
    TarGzArchiveVerifier,
    ArchiveVerifier,
)
from .config import ArchiveSettings, load_config, load_settings
from .path_utils import OutputFileManager, parse_file_mode, to_archive_path

# Orchestration
from .archive_manager import ArchiveRequest, ArchiveResult, ArchiveManager, build_archive

__all__ = [
    # Errors
    "ArchiveError",
    "InvalidSourceError",
    "UnsupportedFormatError",
    "MatchPatternError",
    "SymlinkResolutionError",
    "SymlinkCycleError",
    "EmptyArchiveError",
    "WriteError",
    "DuplicateEntryError",
    "InvalidFileModeError",
    # Traversal components
    "ExclusionSet",
    "PathMatcher",
    "is_excluded",
    "SymlinkResolver",
    "ResolvedLink",
    "ArchiveEntry",
    "TreeWalker",
    "WalkContext",
    "WalkStats",
    # Archive writing components
    "ArchiveFormat",
    "ArchiveWriter",
    "BaseArchiveWriter",
    "ZipArchiveWriter",
    "TarGzArchiveWriter",
    "ArchiveWriterFactory",
    "FileChecksums",
    "compute_file_checksums",
    # Verification components
    "ArchiveMember",
    "ZipArchiveVerifier",
    "TarGzArchiveVerifier",
    "ArchiveVerifier",
    # Configuration and paths
    "ArchiveSettings",
    "load_config",
    "load_settings",
    "OutputFileManager",
    "parse_file_mode",
    "to_archive_path",
    # Orchestration
    "ArchiveRequest",
    "ArchiveResult",
    "ArchiveManager",
    "build_archive",
]
