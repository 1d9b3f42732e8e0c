"""
Symlink resolution with a bounded hop count.

Links are followed one hop at a time so that chains (link -> link -> dir) and
loops are handled explicitly: a loop or an over-long chain is reported as
SymlinkCycleError, a missing target as SymlinkResolutionError.
"""

import errno
import os
import stat
from pathlib import Path
from typing import NamedTuple, Union
from colored_logger import get_colored_logger

from .errors import SymlinkCycleError, SymlinkResolutionError

logger = get_colored_logger(__name__)

# Same bound the Linux kernel uses for path lookups (MAXSYMLINKS)
DEFAULT_MAX_HOPS = 40


class ResolvedLink(NamedTuple):
    """Final target of a symlink chain."""

    real_path: Path
    is_dir: bool
    stat_result: os.stat_result
    hops: int


class SymlinkResolver:
    """Resolves symlinks to their real file or directory targets."""

    def __init__(self, max_hops: int = DEFAULT_MAX_HOPS):
        if max_hops < 1:
            raise ValueError(f"max_hops must be at least 1, got {max_hops}")
        self.max_hops = max_hops

    def _follow_chain(self, path: Path) -> tuple:
        current = Path(os.path.abspath(path))
        hops = 0
        while True:
            try:
                st = os.lstat(current)
            except FileNotFoundError:
                raise SymlinkResolutionError(
                    f"symlink target does not exist: {path} -> {current}"
                ) from None
            except OSError as e:
                if e.errno == errno.ELOOP:
                    raise SymlinkCycleError(f"symlink loop resolving {path}: {e}") from e
                raise SymlinkResolutionError(f"could not stat {current}: {e}") from e

            if not stat.S_ISLNK(st.st_mode):
                return current, hops

            if hops >= self.max_hops:
                raise SymlinkCycleError(
                    f"too many levels of symbolic links resolving {path} "
                    f"(more than {self.max_hops} hops)"
                )

            try:
                target = os.readlink(current)
            except OSError as e:
                raise SymlinkResolutionError(f"could not read link {current}: {e}") from e

            current = Path(os.path.normpath(os.path.join(current.parent, target)))
            hops += 1

    def resolve(self, path: Union[str, os.PathLike]) -> ResolvedLink:
        """
        Resolve a symlink through any number of hops (up to max_hops).

        Args:
            path: Filesystem path known to be a symlink

        Returns:
            ResolvedLink with the canonical real path and its classification

        Raises:
            SymlinkCycleError: If the chain loops or exceeds max_hops
            SymlinkResolutionError: If the final target does not exist
        """
        last, hops = self._follow_chain(Path(path))

        # Intermediate directories of the final path may be links themselves
        try:
            real_path = last.resolve(strict=True)
            st = os.stat(real_path)
        except RuntimeError as e:
            # Raised by Path.resolve on loops before Python 3.13
            raise SymlinkCycleError(f"symlink loop resolving {path}: {e}") from e
        except FileNotFoundError:
            raise SymlinkResolutionError(
                f"symlink target does not exist: {path} -> {last}"
            ) from None
        except OSError as e:
            if e.errno == errno.ELOOP:
                raise SymlinkCycleError(f"symlink loop resolving {path}: {e}") from e
            raise SymlinkResolutionError(f"could not resolve {path}: {e}") from e

        is_dir = stat.S_ISDIR(st.st_mode)
        logger.trace(
            "Resolved %s -> %s (%s, %d hops)",
            path,
            real_path,
            "dir" if is_dir else "file",
            hops,
        )
        return ResolvedLink(real_path=real_path, is_dir=is_dir, stat_result=st, hops=hops)
