"""
Archive entry model shared by the tree walker and the archive writers.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .errors import WriteError


@dataclass(frozen=True)
class ArchiveEntry:
    """
    One logical item to be written into an archive.

    Exactly one payload is set: inline ``content`` or a ``source_path`` that is
    read lazily, once, right before the entry is written. ``mtime`` and ``mode``
    carry the source metadata; writers decide whether to keep or normalize them.
    """

    archive_path: str
    content: Optional[bytes] = None
    source_path: Optional[Path] = None
    mtime: Optional[float] = None
    mode: Optional[int] = None

    def __post_init__(self):
        if not self.archive_path:
            raise ValueError("archive_path cannot be empty")
        if "\\" in self.archive_path and os.sep == "\\":
            raise ValueError(f"archive_path must use '/' separators: {self.archive_path}")
        if (self.content is None) == (self.source_path is None):
            raise ValueError(
                f"entry {self.archive_path} needs exactly one of content or source_path"
            )

    @classmethod
    def from_content(cls, archive_path: str, content: bytes) -> "ArchiveEntry":
        return cls(archive_path=archive_path, content=bytes(content))

    @property
    def is_inline(self) -> bool:
        return self.content is not None

    def read_bytes(self) -> bytes:
        """Return the payload, reading the source file if needed."""
        if self.content is not None:
            return self.content
        try:
            with open(self.source_path, "rb") as f:
                return f.read()
        except OSError as e:
            raise WriteError(f"error reading file for archival: {e}") from e
