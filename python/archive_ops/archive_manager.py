"""
Archive Manager - Orchestrates archive builds with modular components.

This is the main orchestrator that validates a build request, selects the
writer for the requested format, drives the entry source into it, and hashes
the finished file.
"""

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, Union
from colored_logger import get_colored_logger

from .archive_writers import ArchiveFormat, ArchiveWriter, ArchiveWriterFactory
from .checksums import FileChecksums, compute_file_checksums
from .config import ArchiveSettings
from .errors import InvalidSourceError
from .path_matcher import ExclusionSet
from .path_utils import OutputFileManager, parse_file_mode
from .symlink_resolver import SymlinkResolver

logger = get_colored_logger(__name__)

Content = Union[str, bytes]


def _as_bytes(content: Content) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


@dataclass
class ArchiveRequest:
    """
    Declarative description of one archive build.

    Exactly one entry source must be selected: ``source`` (named content
    blocks), ``source_content`` with ``source_content_filename``,
    ``source_file`` or ``source_dir``.
    """

    archive_type: str
    output_path: str
    source: Optional[Mapping[str, Content]] = None
    source_content: Optional[Content] = None
    source_content_filename: Optional[str] = None
    source_file: Optional[str] = None
    source_dir: Optional[str] = None
    excludes: Sequence[str] = field(default_factory=list)
    exclude_symlink_directories: bool = False
    output_file_mode: Optional[str] = None
    normalize_metadata: Optional[bool] = None

    def selected_sources(self) -> list:
        selected = []
        if self.source is not None:
            selected.append("source")
        if self.source_content is not None or self.source_content_filename is not None:
            selected.append("source_content")
        if self.source_file is not None:
            selected.append("source_file")
        if self.source_dir is not None:
            selected.append("source_dir")
        return selected

    def validate(self) -> None:
        """
        Check the request before anything is read or written.

        Raises:
            InvalidSourceError: On a missing, conflicting or incomplete source
        """
        if not self.output_path:
            raise InvalidSourceError("output_path must be set")

        selected = self.selected_sources()
        if not selected:
            raise InvalidSourceError(
                "one of source, source_content_filename, source_file or source_dir must be set"
            )
        if len(selected) > 1:
            raise InvalidSourceError(f"conflicting entry sources: {', '.join(selected)}")

        if selected == ["source_content"]:
            if self.source_content is None:
                raise InvalidSourceError("source_content_filename requires source_content")
            if not self.source_content_filename:
                raise InvalidSourceError("source_content requires source_content_filename")

        if selected != ["source_dir"]:
            if self.excludes:
                raise InvalidSourceError("excludes can only be used with source_dir")
            if self.exclude_symlink_directories:
                raise InvalidSourceError(
                    "exclude_symlink_directories can only be used with source_dir"
                )


@dataclass
class ArchiveResult:
    """Outcome of a successful build."""

    output_path: str
    archive_format: ArchiveFormat
    output_size: int
    entry_count: int
    checksums: FileChecksums
    elapsed_seconds: float = 0.0

    @property
    def id(self) -> str:
        return self.checksums.sha1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the attribute names reported to callers."""
        return {
            "output_path": self.output_path,
            "type": self.archive_format.value,
            "output_size": self.output_size,
            "entry_count": self.entry_count,
            "id": self.id,
            "output_md5": self.checksums.md5,
            "output_sha": self.checksums.sha1,
            "output_sha256": self.checksums.sha256,
            "output_base64sha256": self.checksums.base64sha256,
            "output_sha512": self.checksums.sha512,
            "output_base64sha512": self.checksums.base64sha512,
        }


class ArchiveManager:
    """
    Orchestrates archive builds using modular, focused components.

    This manager delegates specific responsibilities to specialized components:
    - Writer selection: ArchiveWriterFactory and the format-specific writers
    - Directory traversal: TreeWalker (through the writer)
    - Output path handling: OutputFileManager
    - Hashing: compute_file_checksums
    """

    def __init__(self, settings: Optional[ArchiveSettings] = None):
        self.settings = settings or ArchiveSettings()
        self.output_manager = OutputFileManager(
            delete_on_failure=self.settings.output.delete_on_failure,
            parent_dir_mode=self.settings.output.parent_dir_mode,
        )
        self.resolver = SymlinkResolver(self.settings.max_symlink_hops)

        logger.debug(
            "ArchiveManager initialized: max_symlink_hops=%d, delete_on_failure=%s",
            self.settings.max_symlink_hops,
            self.settings.output.delete_on_failure,
        )

    def _prepare_writer(self, request: ArchiveRequest) -> ArchiveWriter:
        """Validate the request and create its writer; nothing is written yet."""
        request.validate()
        archive_format = ArchiveFormat.from_name(request.archive_type)

        # Surface mode and pattern errors before the output directory is touched
        parse_file_mode(request.output_file_mode)
        if request.source_dir is not None:
            ExclusionSet(request.excludes)

        writer = ArchiveWriterFactory.create_archive_writer(
            archive_format,
            request.output_path,
            normalize_metadata=request.normalize_metadata,
            zip_settings=self.settings.zip,
            tar_gz_settings=self.settings.tar_gz,
            output_manager=self.output_manager,
            resolver=self.resolver,
        )
        writer.set_output_file_mode(request.output_file_mode)
        return writer

    def _prepare_output_path(self, output_path: Path) -> None:
        if self.settings.output.create_parent_dirs:
            self.output_manager.ensure_parent_directory(output_path)

    def _archive_source(self, writer: ArchiveWriter, request: ArchiveRequest) -> int:
        """Drive the selected entry source into the writer."""
        if request.source_dir is not None:
            return writer.archive_dir(
                request.source_dir,
                excludes=request.excludes,
                exclude_symlink_directories=request.exclude_symlink_directories,
            )
        if request.source_file is not None:
            return writer.archive_file(request.source_file)
        if request.source_content is not None:
            return writer.archive_content(
                _as_bytes(request.source_content), request.source_content_filename
            )
        return writer.archive_multiple(
            {name: _as_bytes(content) for name, content in request.source.items()}
        )

    def _finalize_result(
        self,
        request: ArchiveRequest,
        writer: ArchiveWriter,
        entry_count: int,
        start_time: float,
    ) -> ArchiveResult:
        output_path = Path(request.output_path)
        checksums = compute_file_checksums(output_path)
        result = ArchiveResult(
            output_path=str(output_path),
            archive_format=writer.archive_format,
            output_size=os.path.getsize(output_path),
            entry_count=entry_count,
            checksums=checksums,
            elapsed_seconds=time.time() - start_time,
        )

        logger.success(
            "Archive created: %s (%d entries, %.2f MB) in %.2f seconds",
            result.output_path,
            result.entry_count,
            result.output_size / (1024 * 1024),
            result.elapsed_seconds,
        )
        return result

    def create_archive(self, request: ArchiveRequest) -> ArchiveResult:
        """
        Build the archive described by a request.

        Args:
            request: Archive build request

        Returns:
            ArchiveResult with the output size and checksums

        Raises:
            ArchiveError: Any failure of the build, see archive_ops.errors
        """
        start_time = time.time()
        writer = self._prepare_writer(request)

        logger.info(
            "Creating %s archive %s from %s",
            writer.archive_format.value,
            request.output_path,
            request.selected_sources()[0],
        )

        self._prepare_output_path(Path(request.output_path))
        entry_count = self._archive_source(writer, request)

        return self._finalize_result(request, writer, entry_count, start_time)


def build_archive(
    archive_type: str,
    output_path: str,
    settings: Optional[ArchiveSettings] = None,
    **source_options: Any,
) -> ArchiveResult:
    """
    Convenience function to build an archive in one call.

    Args:
        archive_type: "zip" or "tar.gz"
        output_path: Destination file path
        settings: Engine settings (defaults when omitted)
        **source_options: Remaining ArchiveRequest fields (source_dir, excludes, ...)

    Returns:
        ArchiveResult
    """
    request = ArchiveRequest(archive_type=archive_type, output_path=output_path, **source_options)
    return ArchiveManager(settings).create_archive(request)
