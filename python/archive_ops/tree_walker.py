"""
Directory traversal for archive operations.

This module enumerates a source directory into an ordered list of archive
entries, applying exclusion patterns and expanding symlinked directories under
the symlink's own name.
"""

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union
from colored_logger import get_colored_logger

from .entries import ArchiveEntry
from .errors import EmptyArchiveError, InvalidSourceError, SymlinkCycleError, WriteError
from .path_matcher import ExclusionSet, PathMatcher
from .path_utils import join_archive_path
from .symlink_resolver import SymlinkResolver

logger = get_colored_logger(__name__)


class WalkStats:
    """Container for traversal statistics."""

    def __init__(self):
        self.total_files = 0
        self.total_size = 0
        self.excluded_paths = 0
        self.expanded_symlinks = 0
        self.unreadable_entries = 0
        self.skipped_special = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary format."""
        return {
            "total_files": self.total_files,
            "total_size": self.total_size,
            "excluded_paths": self.excluded_paths,
            "expanded_symlinks": self.expanded_symlinks,
            "unreadable_entries": self.unreadable_entries,
            "skipped_special": self.skipped_special,
        }

    def add_file(self, file_size: int) -> None:
        self.total_files += 1
        self.total_size += file_size


@dataclass(frozen=True)
class WalkContext:
    """
    One frame of the walk: a real directory listed under an archive prefix.

    ``open_dirs`` holds the real directories that contain each symlink
    expansion leading to this frame; a link resolving to one of them (or to an
    ancestor of one) would expand forever.
    """

    real_root: Path
    prefix: str
    excludes: ExclusionSet
    open_dirs: Tuple[Path, ...] = field(default_factory=tuple)

    def archive_path(self, relative: str) -> str:
        return join_archive_path(self.prefix, relative)


class TreeWalker:
    """Walks a directory tree and produces archive entries in lexical order."""

    def __init__(
        self,
        excludes: Optional[ExclusionSet] = None,
        exclude_symlink_directories: bool = False,
        resolver: Optional[SymlinkResolver] = None,
    ):
        self.excludes = excludes if excludes is not None else ExclusionSet()
        self.matcher = PathMatcher(self.excludes)
        self.exclude_symlink_directories = exclude_symlink_directories
        self.resolver = resolver or SymlinkResolver()

    @staticmethod
    def validate_root(root: Union[str, os.PathLike]) -> Path:
        """Check that the walk root exists and is a directory."""
        root_path = Path(root)
        try:
            st = os.stat(root_path)
        except FileNotFoundError:
            raise InvalidSourceError(f"could not archive missing directory: {root}") from None
        except OSError as e:
            raise InvalidSourceError(f"could not access directory {root}: {e}") from e

        if not stat.S_ISDIR(st.st_mode):
            raise InvalidSourceError(f"could not archive directory that is a file: {root}")

        return root_path

    def _list_children(self, directory: Path) -> List[str]:
        try:
            return sorted(os.listdir(directory))
        except OSError as e:
            raise WriteError(f"error encountered during file walk: {e}") from e

    def _is_expansion_cycle(self, target: Path, context: WalkContext, current_dir: Path) -> bool:
        for open_dir in context.open_dirs + (current_dir,):
            if target == open_dir or target in open_dir.parents:
                return True
        return False

    def _push_children(
        self,
        stack: List[Tuple[WalkContext, str]],
        context: WalkContext,
        relative_dir: str,
    ) -> None:
        directory = context.real_root / relative_dir if relative_dir else context.real_root
        children = self._list_children(directory)
        # Reverse so the lexically smallest name is popped first
        for name in reversed(children):
            relative = f"{relative_dir}/{name}" if relative_dir else name
            stack.append((context, relative))

    def _expand_symlink(
        self,
        stack: List[Tuple[WalkContext, str]],
        context: WalkContext,
        archive_path: str,
        host_path: Path,
        entries: List[ArchiveEntry],
        stats: WalkStats,
    ) -> None:
        resolved = self.resolver.resolve(host_path)

        if not resolved.is_dir:
            st = resolved.stat_result
            entries.append(
                ArchiveEntry(
                    archive_path=archive_path,
                    source_path=resolved.real_path,
                    mtime=st.st_mtime,
                    mode=stat.S_IMODE(st.st_mode),
                )
            )
            stats.add_file(st.st_size)
            logger.trace("Symlinked file %s -> %s", archive_path, resolved.real_path)
            return

        if self.exclude_symlink_directories:
            # Emitted as-is; reading it later fails like reading any directory
            st = resolved.stat_result
            entries.append(
                ArchiveEntry(
                    archive_path=archive_path,
                    source_path=host_path,
                    mtime=st.st_mtime,
                    mode=stat.S_IMODE(st.st_mode),
                )
            )
            stats.unreadable_entries += 1
            logger.debug("Not expanding symlinked directory %s", archive_path)
            return

        current_dir = host_path.parent
        if self._is_expansion_cycle(resolved.real_path, context, current_dir):
            raise SymlinkCycleError(
                f"symlink {archive_path} -> {resolved.real_path} loops back into a "
                "directory that is already being archived"
            )

        stats.expanded_symlinks += 1
        logger.debug("Expanding symlinked directory %s -> %s", archive_path, resolved.real_path)
        child_context = WalkContext(
            real_root=resolved.real_path,
            prefix=archive_path,
            excludes=context.excludes,
            open_dirs=context.open_dirs + (current_dir,),
        )
        self._push_children(stack, child_context, "")

    def walk_with_stats(
        self, root: Union[str, os.PathLike]
    ) -> Tuple[List[ArchiveEntry], WalkStats]:
        """
        Walk a directory and return its entries with traversal statistics.

        Raises:
            InvalidSourceError: If root is missing or not a directory
            EmptyArchiveError: If no readable entry remains after exclusions
            SymlinkResolutionError: If a symlink cannot be resolved
        """
        root_path = self.validate_root(root)
        real_root = Path(os.path.realpath(root_path))

        entries: List[ArchiveEntry] = []
        stats = WalkStats()
        root_context = WalkContext(real_root=real_root, prefix="", excludes=self.excludes)

        stack: List[Tuple[WalkContext, str]] = []
        self._push_children(stack, root_context, "")

        while stack:
            context, relative = stack.pop()
            archive_path = context.archive_path(relative)
            host_path = context.real_root / relative

            if self.matcher.is_excluded(archive_path):
                stats.excluded_paths += 1
                continue

            try:
                st = os.lstat(host_path)
            except OSError as e:
                raise WriteError(f"error encountered during file walk: {e}") from e

            if stat.S_ISDIR(st.st_mode):
                logger.trace("Entering %s", archive_path)
                self._push_children(stack, context, relative)
            elif stat.S_ISREG(st.st_mode):
                entries.append(
                    ArchiveEntry(
                        archive_path=archive_path,
                        source_path=host_path,
                        mtime=st.st_mtime,
                        mode=stat.S_IMODE(st.st_mode),
                    )
                )
                stats.add_file(st.st_size)
                logger.trace("File %s", archive_path)
            elif stat.S_ISLNK(st.st_mode):
                self._expand_symlink(
                    stack, context, archive_path, host_path, entries, stats
                )
            else:
                stats.skipped_special += 1
                logger.warning("Skipping special file %s", host_path)

        if stats.total_files == 0:
            raise EmptyArchiveError("archive has not been created as it would be empty")

        logger.progress(
            "Walked %s: %d files, %d excluded, %d symlinked directories expanded",
            root,
            stats.total_files,
            stats.excluded_paths,
            stats.expanded_symlinks,
        )
        return entries, stats

    def walk(self, root: Union[str, os.PathLike]) -> List[ArchiveEntry]:
        """Walk a directory and return its entries in traversal order."""
        entries, _ = self.walk_with_stats(root)
        return entries
