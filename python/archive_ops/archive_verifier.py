"""
Archive integrity verification and read-back.

This module reads finished ZIP and tar.gz archives back with the standard
library readers, to check their structure and to list what they contain.
"""

import gzip
import stat
import tarfile
import zipfile
import zlib
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Tuple, Union
from colored_logger import get_colored_logger

from .archive_writers import ArchiveFormat
from .errors import UnsupportedFormatError

logger = get_colored_logger(__name__)

GZIP_MAGIC = b"\x1f\x8b"


class ArchiveMember(NamedTuple):
    """
    One entry read back from an archive.

    ``modified`` is the raw format value: a date_time tuple for ZIP, an integer
    timestamp for tar.gz.
    """

    name: str
    data: bytes
    mode: int
    modified: Union[Tuple[int, ...], int]


class ZipArchiveVerifier:
    """Verifies ZIP archive integrity."""

    def verify_integrity(self, archive_path: str) -> bool:
        """Verify ZIP archive integrity by checking every member's CRC."""
        try:
            with zipfile.ZipFile(archive_path, "r") as zipf:
                bad_file = zipf.testzip()
                if bad_file is not None:
                    logger.debug("ZIP integrity check failed on file: %s", bad_file)
                    return False
                return True
        except (OSError, zipfile.BadZipFile, zlib.error) as e:
            logger.debug("ZIP integrity verification failed: %s", e)
            return False

    def read_entries(self, archive_path: str) -> List[ArchiveMember]:
        with zipfile.ZipFile(archive_path, "r") as zipf:
            return [
                ArchiveMember(
                    name=info.filename,
                    data=zipf.read(info),
                    mode=stat.S_IMODE(info.external_attr >> 16),
                    modified=info.date_time,
                )
                for info in zipf.infolist()
            ]

    def get_archive_info(self, archive_path: str) -> Dict[str, Any]:
        """Get detailed information about ZIP archive."""
        with zipfile.ZipFile(archive_path, "r") as zipf:
            file_list = zipf.infolist()
            compressed = sum(f.compress_size for f in file_list)
            uncompressed = sum(f.file_size for f in file_list)
            return {
                "file_count": len(file_list),
                "compressed_size": compressed,
                "uncompressed_size": uncompressed,
                "stored_only": all(f.compress_type == zipfile.ZIP_STORED for f in file_list),
            }


class TarGzArchiveVerifier:
    """Verifies tar.gz archive integrity."""

    def verify_integrity(self, archive_path: str) -> bool:
        """Verify tar.gz integrity by decompressing and reading every member."""
        try:
            with tarfile.open(archive_path, mode="r:gz") as tar:
                for member in tar:
                    if member.isfile():
                        file_data = tar.extractfile(member)
                        if file_data is not None:
                            file_data.read()
            return True
        except (OSError, EOFError, tarfile.TarError, zlib.error) as e:
            logger.debug("tar.gz integrity verification failed: %s", e)
            return False

    def read_entries(self, archive_path: str) -> List[ArchiveMember]:
        members = []
        with tarfile.open(archive_path, mode="r:gz") as tar:
            for member in tar:
                if not member.isfile():
                    continue
                file_data = tar.extractfile(member)
                members.append(
                    ArchiveMember(
                        name=member.name,
                        data=file_data.read() if file_data is not None else b"",
                        mode=member.mode,
                        modified=int(member.mtime),
                    )
                )
        return members

    def get_archive_info(self, archive_path: str) -> Dict[str, Any]:
        """Get detailed information about tar.gz archive."""
        file_count = 0
        uncompressed_size = 0
        with tarfile.open(archive_path, mode="r:gz") as tar:
            for member in tar:
                if member.isfile():
                    file_count += 1
                    uncompressed_size += member.size

        return {
            "file_count": file_count,
            "compressed_size": Path(archive_path).stat().st_size,
            "uncompressed_size": uncompressed_size,
        }


class ArchiveVerifier:
    """High-level archive verification interface."""

    def __init__(self):
        self.zip_verifier = ZipArchiveVerifier()
        self.tar_gz_verifier = TarGzArchiveVerifier()

    @staticmethod
    def detect_format(archive_path: str) -> ArchiveFormat:
        """
        Detect the archive format from the file name, then from its contents.

        Raises:
            UnsupportedFormatError: If the file is neither ZIP nor gzip
        """
        name = str(archive_path).lower()
        if name.endswith(".zip"):
            return ArchiveFormat.ZIP
        if name.endswith((".tar.gz", ".tgz")):
            return ArchiveFormat.TAR_GZ

        if zipfile.is_zipfile(archive_path):
            return ArchiveFormat.ZIP
        with open(archive_path, "rb") as f:
            if f.read(2) == GZIP_MAGIC:
                return ArchiveFormat.TAR_GZ

        raise UnsupportedFormatError(f"unknown archive format: {archive_path}")

    def _verifier_for(self, archive_path: str):
        if self.detect_format(archive_path) is ArchiveFormat.ZIP:
            return self.zip_verifier
        return self.tar_gz_verifier

    def verify_archive_integrity(self, archive_path: str) -> bool:
        """Verify archive integrity based on its format."""
        try:
            return self._verifier_for(archive_path).verify_integrity(archive_path)
        except (OSError, UnsupportedFormatError) as e:
            logger.debug("Archive integrity check failed: %s", e)
            return False

    def read_entries(self, archive_path: str) -> List[ArchiveMember]:
        """Read every file entry back, in archive order."""
        return self._verifier_for(archive_path).read_entries(archive_path)

    def get_archive_info(self, archive_path: str) -> Dict[str, Any]:
        """Get comprehensive information about an archive."""
        path = Path(archive_path)

        if not path.exists():
            raise FileNotFoundError(f"Archive not found: {archive_path}")

        archive_format = self.detect_format(archive_path)
        info = {
            "path": str(path),
            "size_bytes": path.stat().st_size,
            "modified_time": datetime.fromtimestamp(path.stat().st_mtime).isoformat(),
            "format": archive_format.value,
            "valid": False,
            "file_count": 0,
        }

        try:
            info.update(self._verifier_for(archive_path).get_archive_info(archive_path))
        except (OSError, EOFError, zipfile.BadZipFile, tarfile.TarError, gzip.BadGzipFile) as e:
            logger.debug("Error getting archive info: %s", e)

        info["valid"] = self.verify_archive_integrity(archive_path)
        return info
