"""
Path utilities for archive operations.

This module normalizes host paths into archive paths, parses octal mode
strings, and manages the output file around a build (parent directory
creation, cleanup of partially written archives).
"""

import os
from pathlib import Path
from typing import Optional, Union
from colored_logger import get_colored_logger

from .errors import InvalidFileModeError, WriteError

logger = get_colored_logger(__name__)

MAX_FILE_MODE = 0o7777


def to_archive_path(path: Union[str, os.PathLike]) -> str:
    """
    Convert a host path into forward-slash archive form.

    OS separators become "/", leading "./" segments are dropped. The result is
    never empty.
    """
    archive_path = os.fspath(path)
    if os.sep != "/":
        archive_path = archive_path.replace(os.sep, "/")
    if os.altsep and os.altsep != "/":
        archive_path = archive_path.replace(os.altsep, "/")

    while archive_path.startswith("./"):
        archive_path = archive_path[2:]

    if not archive_path or archive_path == ".":
        raise ValueError(f"Archive path is empty after normalization: {path!r}")

    return archive_path


def join_archive_path(prefix: str, relative: str) -> str:
    """Join an archive prefix and a relative archive path."""
    if not prefix:
        return relative
    if not relative or relative == ".":
        return prefix
    return f"{prefix}/{relative}"


def parse_file_mode(mode: Optional[Union[str, int]]) -> Optional[int]:
    """
    Parse an octal permission string such as "0644" or "0o755".

    Returns None when no mode is set (None or empty string).

    Raises:
        InvalidFileModeError: If the value is not octal or out of range
    """
    if mode is None or mode == "":
        return None
    if isinstance(mode, int):
        value = mode
    else:
        text = str(mode).strip()
        if text.lower().startswith("0o"):
            text = text[2:]
        try:
            value = int(text, 8)
        except ValueError:
            raise InvalidFileModeError(
                f"error parsing output_file_mode value: {mode}"
            ) from None

    if not 0 <= value <= MAX_FILE_MODE:
        raise InvalidFileModeError(f"output_file_mode out of range: {mode}")

    return value


class OutputFileManager:
    """Manages the output path around a single archive build."""

    def __init__(self, delete_on_failure: bool = True, parent_dir_mode: int = 0o755):
        self.delete_on_failure = delete_on_failure
        self.parent_dir_mode = parent_dir_mode

    def ensure_parent_directory(self, output_path: Path) -> None:
        """Create missing parent directories of the output path."""
        parent = Path(output_path).parent
        if parent.exists():
            return
        try:
            parent.mkdir(mode=self.parent_dir_mode, parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(f"error creating output path: {e}") from e
        logger.debug("Created output directory %s", parent)

    def discard(self, output_path: Path) -> None:
        """Remove a partially written archive after a failed build."""
        if not self.delete_on_failure:
            logger.warning("Leaving partially written archive in place: %s", output_path)
            return

        if os.path.lexists(output_path):
            try:
                os.remove(output_path)
                logger.warning("Removed partially written archive: %s", output_path)
            except OSError as e:
                logger.error("Failed to remove partial archive %s: %s", output_path, e)
