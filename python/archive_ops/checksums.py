"""
Checksums of finished archive files.

The archive is hashed once, in chunks, with every algorithm the build result
reports.
"""

import base64
import hashlib
import os
from dataclasses import asdict, dataclass
from typing import Dict, Union
from colored_logger import get_colored_logger

from .errors import WriteError

logger = get_colored_logger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class FileChecksums:
    """Digests of a single file."""

    md5: str
    sha1: str
    sha256: str
    base64sha256: str
    sha512: str
    base64sha512: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def compute_file_checksums(
    path: Union[str, os.PathLike], chunk_size: int = DEFAULT_CHUNK_SIZE
) -> FileChecksums:
    """
    Hash a file with MD5, SHA-1, SHA-256 and SHA-512.

    Raises:
        WriteError: If the file cannot be read
    """
    md5 = hashlib.md5()
    sha1 = hashlib.sha1()
    sha256 = hashlib.sha256()
    sha512 = hashlib.sha512()

    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(max(1024, chunk_size)), b""):
                md5.update(chunk)
                sha1.update(chunk)
                sha256.update(chunk)
                sha512.update(chunk)
    except OSError as e:
        raise WriteError(f"could not compute file '{path}' checksum: {e}") from e

    checksums = FileChecksums(
        md5=md5.hexdigest(),
        sha1=sha1.hexdigest(),
        sha256=sha256.hexdigest(),
        base64sha256=base64.standard_b64encode(sha256.digest()).decode("ascii"),
        sha512=sha512.hexdigest(),
        base64sha512=base64.standard_b64encode(sha512.digest()).decode("ascii"),
    )
    logger.trace("Checksums for %s: sha256=%s", path, checksums.sha256)
    return checksums
