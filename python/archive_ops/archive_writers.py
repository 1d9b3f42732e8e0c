"""
Archive writer implementations for the supported container formats.

This module provides format-specific writers that serialize entries into
deterministic ZIP and gzip-compressed TAR files. Every writer walks or collects
its entries before the output file is opened, so validation failures never
touch an existing output.
"""

import gzip
import io
import os
import stat
import tarfile
import zipfile
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Mapping, Optional, Protocol, Sequence, Union
from colored_logger import get_colored_logger

from .config import TarGzFormatSettings, ZipFormatSettings
from .entries import ArchiveEntry
from .errors import (
    DuplicateEntryError,
    EmptyArchiveError,
    InvalidSourceError,
    UnsupportedFormatError,
    WriteError,
)
from .path_matcher import ExclusionSet
from .path_utils import OutputFileManager, parse_file_mode, to_archive_path
from .symlink_resolver import SymlinkResolver
from .tree_walker import TreeWalker

logger = get_colored_logger(__name__)

# Entry sources; format policies key their metadata rules on these
SOURCE_CONTENT = "content"
SOURCE_FILE = "file"
SOURCE_DIRECTORY = "directory"
SOURCE_MULTIPLE = "multiple"


def _entry_name(name: str) -> str:
    try:
        return to_archive_path(name)
    except ValueError as e:
        raise InvalidSourceError(str(e)) from None


class ArchiveFormat(Enum):
    """Closed set of supported archive formats."""

    ZIP = "zip"
    TAR_GZ = "tar.gz"

    @classmethod
    def from_name(cls, name: Union[str, "ArchiveFormat"]) -> "ArchiveFormat":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise UnsupportedFormatError(f"archive type not supported: {name}") from None


class ArchiveWriter(Protocol):
    """Protocol defining interface for archive writers."""

    archive_format: ArchiveFormat
    output_path: Path

    def set_output_file_mode(self, output_file_mode: Optional[str]) -> None:
        ...

    def archive_content(self, content: bytes, archive_path: str) -> int:
        ...

    def archive_file(self, source_file: Union[str, os.PathLike]) -> int:
        ...

    def archive_dir(
        self,
        source_dir: Union[str, os.PathLike],
        excludes: Optional[Sequence[str]] = None,
        exclude_symlink_directories: bool = False,
    ) -> int:
        ...

    def archive_multiple(self, content: Mapping[str, bytes]) -> int:
        ...


class BaseArchiveWriter:
    """
    Shared entry collection and output handling.

    Subclasses provide the container stream (_open_stream/_close_stream) and
    the per-entry serialization (_write_entry).
    """

    archive_format: ArchiveFormat

    def __init__(
        self,
        output_path: Union[str, os.PathLike],
        output_manager: Optional[OutputFileManager] = None,
        resolver: Optional[SymlinkResolver] = None,
    ):
        self.output_path = Path(output_path)
        self.output_manager = output_manager or OutputFileManager()
        self.resolver = resolver or SymlinkResolver()
        self.output_file_mode: Optional[int] = None
        self._file = None

    def set_output_file_mode(self, output_file_mode: Optional[Union[str, int]]) -> None:
        """Set a uniform permission override applied to every entry."""
        self.output_file_mode = parse_file_mode(output_file_mode)

    def _open_stream(self, raw) -> None:
        raise NotImplementedError

    def _close_stream(self) -> None:
        raise NotImplementedError

    def _write_entry(self, entry: ArchiveEntry, data: bytes, source: str) -> None:
        raise NotImplementedError

    @contextmanager
    def _opened(self) -> Iterator[None]:
        """Open the output file and container stream; always close both."""
        try:
            self._file = open(self.output_path, "wb")
        except OSError as e:
            raise WriteError(f"error creating archive file: {e}") from e

        try:
            try:
                self._open_stream(self._file)
                yield
            finally:
                try:
                    self._close_stream()
                finally:
                    self._file.close()
                    self._file = None
        except OSError as e:
            self.output_manager.discard(self.output_path)
            raise WriteError(f"error writing archive {self.output_path}: {e}") from e
        except BaseException:
            self.output_manager.discard(self.output_path)
            raise

    def _write_entries(self, entries: List[ArchiveEntry], source: str) -> int:
        seen = set()
        for entry in entries:
            if entry.archive_path in seen:
                raise DuplicateEntryError(entry.archive_path)
            seen.add(entry.archive_path)

        with self._opened():
            for entry in entries:
                data = entry.read_bytes()
                self._write_entry(entry, data, source)
                logger.trace("Wrote %s (%d bytes)", entry.archive_path, len(data))

        logger.debug(
            "Wrote %d %s entries to %s", len(entries), self.archive_format.value, self.output_path
        )
        return len(entries)

    def archive_content(self, content: bytes, archive_path: str) -> int:
        """Write a single entry from in-memory bytes."""
        entry = ArchiveEntry.from_content(_entry_name(archive_path), content)
        return self._write_entries([entry], SOURCE_CONTENT)

    def archive_file(self, source_file: Union[str, os.PathLike]) -> int:
        """Write a single file under its base name."""
        source_path = Path(source_file)
        try:
            st = os.stat(source_path)
        except FileNotFoundError:
            raise InvalidSourceError(f"could not archive missing file: {source_file}") from None
        except OSError as e:
            raise InvalidSourceError(f"could not access file {source_file}: {e}") from e

        if stat.S_ISDIR(st.st_mode):
            raise InvalidSourceError(f"could not archive file that is a directory: {source_file}")

        entry = ArchiveEntry(
            archive_path=_entry_name(source_path.name),
            source_path=source_path,
            mtime=st.st_mtime,
            mode=stat.S_IMODE(st.st_mode),
        )
        return self._write_entries([entry], SOURCE_FILE)

    def archive_dir(
        self,
        source_dir: Union[str, os.PathLike],
        excludes: Optional[Sequence[str]] = None,
        exclude_symlink_directories: bool = False,
    ) -> int:
        """Write every entry of a directory tree in traversal order."""
        walker = TreeWalker(
            excludes=ExclusionSet(excludes),
            exclude_symlink_directories=exclude_symlink_directories,
            resolver=self.resolver,
        )
        entries = walker.walk(source_dir)
        return self._write_entries(entries, SOURCE_DIRECTORY)

    def archive_multiple(self, content: Mapping[str, bytes]) -> int:
        """Write one entry per named block, in sorted name order."""
        if not content:
            raise EmptyArchiveError("archive has not been created as it would be empty")

        entries = [
            ArchiveEntry.from_content(_entry_name(name), content[name])
            for name in sorted(content)
        ]
        return self._write_entries(entries, SOURCE_MULTIPLE)


class ZipArchiveWriter(BaseArchiveWriter):
    """
    Writes ZIP archives.

    With normalize_metadata every entry is stored uncompressed with the fixed
    normalized timestamp and mode. Otherwise entries are deflated with the
    zero-value timestamp and keep their source mode.
    """

    archive_format = ArchiveFormat.ZIP

    def __init__(
        self,
        output_path: Union[str, os.PathLike],
        normalize_metadata: Optional[bool] = None,
        settings: Optional[ZipFormatSettings] = None,
        output_manager: Optional[OutputFileManager] = None,
        resolver: Optional[SymlinkResolver] = None,
    ):
        super().__init__(output_path, output_manager, resolver)
        self.settings = settings or ZipFormatSettings()
        self.normalize_metadata = (
            self.settings.normalize_metadata if normalize_metadata is None else normalize_metadata
        )
        self._zip: Optional[zipfile.ZipFile] = None

    def _open_stream(self, raw) -> None:
        self._zip = zipfile.ZipFile(raw, "w", allowZip64=True)

    def _close_stream(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def _entry_mode(self, entry: ArchiveEntry) -> int:
        if self.output_file_mode is not None:
            return self.output_file_mode
        if self.normalize_metadata:
            return self.settings.normalized_mode
        if entry.mode is not None:
            return entry.mode
        return self.settings.default_mode

    def _write_entry(self, entry: ArchiveEntry, data: bytes, source: str) -> None:
        if self.normalize_metadata:
            date_time = self.settings.normalized_date_time
            compress_type = zipfile.ZIP_STORED
        else:
            date_time = self.settings.zero_date_time
            compress_type = zipfile.ZIP_DEFLATED

        zinfo = zipfile.ZipInfo(entry.archive_path, date_time=tuple(date_time))
        zinfo.create_system = 3  # Unix, so external_attr carries permission bits
        zinfo.external_attr = (stat.S_IFREG | self._entry_mode(entry)) << 16
        zinfo.compress_type = compress_type

        self._zip.writestr(
            zinfo,
            data,
            compress_type=compress_type,
            compresslevel=self.settings.compress_level
            if compress_type == zipfile.ZIP_DEFLATED
            else None,
        )


class TarGzArchiveWriter(BaseArchiveWriter):
    """
    Writes gzip-compressed POSIX TAR archives.

    Directory-walk entries keep the source modification time and mode; content
    and multi-source entries get a zero timestamp and the default mode. The gzip
    header carries no name and a zero timestamp.
    """

    archive_format = ArchiveFormat.TAR_GZ

    def __init__(
        self,
        output_path: Union[str, os.PathLike],
        settings: Optional[TarGzFormatSettings] = None,
        output_manager: Optional[OutputFileManager] = None,
        resolver: Optional[SymlinkResolver] = None,
    ):
        super().__init__(output_path, output_manager, resolver)
        self.settings = settings or TarGzFormatSettings()
        self._gzip: Optional[gzip.GzipFile] = None
        self._tar: Optional[tarfile.TarFile] = None

    def _open_stream(self, raw) -> None:
        self._gzip = gzip.GzipFile(
            filename="",
            mode="wb",
            fileobj=raw,
            compresslevel=self.settings.compress_level,
            mtime=0,
        )
        self._tar = tarfile.open(fileobj=self._gzip, mode="w", format=tarfile.PAX_FORMAT)

    def _close_stream(self) -> None:
        try:
            if self._tar is not None:
                self._tar.close()
        finally:
            self._tar = None
            if self._gzip is not None:
                self._gzip.close()
                self._gzip = None

    def _entry_mtime(self, entry: ArchiveEntry, source: str) -> int:
        if (
            source == SOURCE_DIRECTORY
            and self.settings.preserve_walk_mtime
            and entry.mtime is not None
        ):
            # Whole seconds keep the header free of PAX mtime records
            return int(entry.mtime)
        return 0

    def _entry_mode(self, entry: ArchiveEntry, source: str) -> int:
        if self.output_file_mode is not None:
            return self.output_file_mode
        if source in (SOURCE_DIRECTORY, SOURCE_FILE) and entry.mode is not None:
            return entry.mode
        return self.settings.default_mode

    def _write_entry(self, entry: ArchiveEntry, data: bytes, source: str) -> None:
        tarinfo = tarfile.TarInfo(name=entry.archive_path)
        tarinfo.type = tarfile.REGTYPE
        tarinfo.size = len(data)
        tarinfo.mtime = self._entry_mtime(entry, source)
        tarinfo.mode = self._entry_mode(entry, source)
        tarinfo.uid = tarinfo.gid = 0
        tarinfo.uname = tarinfo.gname = ""

        self._tar.addfile(tarinfo, io.BytesIO(data))


class ArchiveWriterFactory:
    """Factory for creating archive writers."""

    @staticmethod
    def create_archive_writer(
        archive_format: Union[str, ArchiveFormat],
        output_path: Union[str, os.PathLike],
        normalize_metadata: Optional[bool] = None,
        zip_settings: Optional[ZipFormatSettings] = None,
        tar_gz_settings: Optional[TarGzFormatSettings] = None,
        output_manager: Optional[OutputFileManager] = None,
        resolver: Optional[SymlinkResolver] = None,
    ) -> ArchiveWriter:
        """Create the writer for a format."""
        archive_format = ArchiveFormat.from_name(archive_format)

        if archive_format is ArchiveFormat.ZIP:
            return ZipArchiveWriter(
                output_path,
                normalize_metadata=normalize_metadata,
                settings=zip_settings,
                output_manager=output_manager,
                resolver=resolver,
            )
        if archive_format is ArchiveFormat.TAR_GZ:
            if normalize_metadata is not None:
                logger.debug("normalize_metadata has no effect on tar.gz archives")
            return TarGzArchiveWriter(
                output_path,
                settings=tar_gz_settings,
                output_manager=output_manager,
                resolver=resolver,
            )
        raise UnsupportedFormatError(f"archive type not supported: {archive_format}")

    @staticmethod
    def get_supported_formats() -> List[str]:
        """Get list of supported archive formats."""
        return [archive_format.value for archive_format in ArchiveFormat]


