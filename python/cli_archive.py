#!/usr/bin/env python3
"""
Deterministic Archive CLI Tool

A standalone command-line interface for building reproducible ZIP and
tar.gz archives from a directory, a single file, or inline content, and for
inspecting the archives it produces.

Usage:
    python3 cli_archive.py create --type zip --source-dir ./build --output out/build.zip
    python3 cli_archive.py create --type tar.gz --source-file ./app.py --output app.tar.gz
    python3 cli_archive.py info out/build.zip
    python3 cli_archive.py verify out/build.zip
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from colored_logger import setup_colored_logging, get_colored_logger
from archive_ops.archive_manager import ArchiveManager, ArchiveRequest
from archive_ops.archive_verifier import ArchiveVerifier
from archive_ops.archive_writers import ArchiveWriterFactory
from archive_ops.config import ArchiveSettings, load_config
from archive_ops.errors import ArchiveError, InvalidSourceError

logger = get_colored_logger(__name__)


class ArchiveCLI:
    """Command-line interface for deterministic archive builds."""

    def __init__(self, configure_logging: bool = False):
        self.configure_logging = configure_logging
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the argument parser with all commands and options."""
        parser = argparse.ArgumentParser(
            description="Build reproducible ZIP and tar.gz archives",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Archive a directory, skipping test files anywhere in the tree
  python3 cli_archive.py create --type zip --source-dir ./src --exclude "**/*_test.py" --output dist/src.zip

  # Archive inline content under a chosen name
  python3 cli_archive.py create --type zip --source-content "hello" --source-content-filename hello.txt --output hello.zip

  # Archive several named blocks with a uniform file mode
  python3 cli_archive.py create --type tar.gz --source a.txt=alpha --source b.txt=beta --output-file-mode 0644 --output blocks.tar.gz

  # Show archive entries and verify integrity
  python3 cli_archive.py info dist/src.zip
  python3 cli_archive.py verify dist/src.zip
            """,
        )
        parser.add_argument(
            "--config", "-c", help="Path to configuration file (YAML)"
        )
        verbosity = parser.add_mutually_exclusive_group()
        verbosity.add_argument(
            "--verbose", "-v", action="store_true", help="Enable debug output"
        )
        verbosity.add_argument(
            "--quiet", "-q", action="store_true", help="Only show warnings and errors"
        )

        subparsers = parser.add_subparsers(dest="command", help="Available commands")

        # Create command
        create_parser = subparsers.add_parser("create", help="Build an archive")
        create_parser.add_argument(
            "--type",
            "-t",
            dest="archive_type",
            required=True,
            help="Archive format (zip or tar.gz)",
        )
        create_parser.add_argument(
            "--output", "-o", required=True, help="Output archive path"
        )
        create_parser.add_argument("--source-dir", help="Directory to archive")
        create_parser.add_argument(
            "--exclude",
            action="append",
            default=[],
            metavar="PATTERN",
            help="Glob pattern of archive paths to leave out (repeatable, --source-dir only)",
        )
        create_parser.add_argument(
            "--exclude-symlink-directories",
            action="store_true",
            help="Do not follow symlinked directories (--source-dir only)",
        )
        create_parser.add_argument("--source-file", help="Single file to archive")
        create_parser.add_argument("--source-content", help="Inline content to archive")
        create_parser.add_argument(
            "--source-content-filename", help="Archive name for --source-content"
        )
        create_parser.add_argument(
            "--source",
            action="append",
            default=[],
            metavar="FILENAME=CONTENT",
            help="Named content block (repeatable)",
        )
        create_parser.add_argument(
            "--output-file-mode",
            help="Octal permission applied to every entry, e.g. 0644",
        )
        create_parser.add_argument(
            "--no-normalize",
            action="store_true",
            help="ZIP only: deflate entries and keep source modes instead of normalizing",
        )
        create_parser.add_argument(
            "--json", action="store_true", help="Print the result as JSON"
        )

        # Info command
        info_parser = subparsers.add_parser(
            "info", help="Display information about an existing archive"
        )
        info_parser.add_argument("archive_path", help="Path to the archive file")
        info_parser.add_argument(
            "--detailed", action="store_true", help="Show every entry with its mode"
        )

        # Verify command
        verify_parser = subparsers.add_parser("verify", help="Verify archive integrity")
        verify_parser.add_argument(
            "archive_path", help="Path to the archive file to verify"
        )

        # Formats command
        subparsers.add_parser(
            "formats", help="List supported archive formats and their normalization policy"
        )

        return parser

    def _setup_logging(self, args, config: Dict) -> None:
        if args.verbose:
            level = logging.DEBUG
        elif args.quiet:
            level = logging.WARNING
        else:
            level = config.get("logging", {}).get("level", "INFO")
        setup_colored_logging(level=level)

    def run(self, args: Optional[list] = None) -> int:
        """Run the CLI with the given arguments."""
        parsed_args = self.parser.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            config = load_config(parsed_args.config)
            if self.configure_logging:
                self._setup_logging(parsed_args, config)

            if parsed_args.command == "create":
                return self._handle_create(parsed_args, ArchiveSettings.from_config(config))
            elif parsed_args.command == "info":
                return self._handle_info(parsed_args)
            elif parsed_args.command == "verify":
                return self._handle_verify(parsed_args)
            elif parsed_args.command == "formats":
                return self._handle_formats(ArchiveSettings.from_config(config))
            else:
                logger.error("Unknown command: %s", parsed_args.command)
                return 1

        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130
        except ArchiveError as e:
            logger.failure("Error: %s", e)
            return 1
        except Exception as e:
            logger.error("Error: %s", e)
            logger.debug("Full error details:", exc_info=True)
            return 1

    @staticmethod
    def _parse_sources(values: List[str]) -> Optional[Dict[str, str]]:
        """Turn repeated FILENAME=CONTENT arguments into a mapping."""
        if not values:
            return None

        sources: Dict[str, str] = {}
        for value in values:
            filename, sep, content = value.partition("=")
            if not sep or not filename:
                raise InvalidSourceError(f"--source expects FILENAME=CONTENT, got {value!r}")
            if filename in sources:
                raise InvalidSourceError(f"--source given twice for {filename}")
            sources[filename] = content
        return sources

    def _build_request(self, args) -> ArchiveRequest:
        return ArchiveRequest(
            archive_type=args.archive_type,
            output_path=args.output,
            source=self._parse_sources(args.source),
            source_content=args.source_content,
            source_content_filename=args.source_content_filename,
            source_file=args.source_file,
            source_dir=args.source_dir,
            excludes=args.exclude,
            exclude_symlink_directories=args.exclude_symlink_directories,
            output_file_mode=args.output_file_mode,
            normalize_metadata=False if args.no_normalize else None,
        )

    def _handle_create(self, args, settings: ArchiveSettings) -> int:
        """Handle the 'create' command."""
        request = self._build_request(args)
        result = ArchiveManager(settings).create_archive(request)

        attributes = result.to_dict()
        if args.json:
            print(json.dumps(attributes, indent=2, sort_keys=True))
        else:
            for key, value in attributes.items():
                print(f"{key} = {value}")
        return 0

    def _handle_info(self, args) -> int:
        """Handle the 'info' command."""
        archive_path = Path(args.archive_path)

        if not archive_path.exists():
            logger.error("Archive file does not exist: %s", archive_path)
            return 1

        verifier = ArchiveVerifier()
        info = verifier.get_archive_info(str(archive_path))

        logger.info("Archive: %s", info["path"])
        logger.info("Format: %s", info["format"])
        logger.info("Size: %d bytes", info["size_bytes"])
        logger.info("Files: %d", info["file_count"])
        logger.info("Valid: %s", "Yes" if info["valid"] else "No")

        if args.detailed:
            logger.info("")
            logger.info("Entries:")
            for member in verifier.read_entries(str(archive_path)):
                logger.info(
                    "  %s (%d bytes, mode %04o)",
                    member.name,
                    len(member.data),
                    member.mode,
                )
        return 0

    def _handle_verify(self, args) -> int:
        """Handle the 'verify' command."""
        archive_path = Path(args.archive_path)

        if not archive_path.exists():
            logger.error("Archive file does not exist: %s", archive_path)
            return 1

        logger.info("Verifying archive integrity: %s", archive_path)
        if ArchiveVerifier().verify_archive_integrity(str(archive_path)):
            logger.success("Archive integrity check passed")
            return 0

        logger.failure("Archive integrity check failed")
        return 1

    def _handle_formats(self, settings: ArchiveSettings) -> int:
        """Handle the 'formats' command."""
        zip_settings = settings.zip
        tar_settings = settings.tar_gz

        logger.info(
            "Supported archive formats: %s",
            ", ".join(ArchiveWriterFactory.get_supported_formats()),
        )
        logger.info("")
        logger.info("Format: zip")
        if zip_settings.normalize_metadata:
            logger.info(
                "  Default: stored, timestamp %s, mode %04o",
                list(zip_settings.normalized_date_time),
                zip_settings.normalized_mode,
            )
        else:
            logger.info(
                "  Default: deflated (level %d), timestamp %s",
                zip_settings.compress_level,
                list(zip_settings.zero_date_time),
            )
        logger.info(
            "  --no-normalize: deflated, timestamp %s, source modes",
            list(zip_settings.zero_date_time),
        )
        logger.info("")
        logger.info("Format: tar.gz")
        logger.info(
            "  Directory entries: %s, source modes",
            "source modification times" if tar_settings.preserve_walk_mtime else "timestamp 0",
        )
        logger.info("  Content entries: timestamp 0, mode %04o", tar_settings.default_mode)
        logger.info("  Compression level: %d", tar_settings.compress_level)
        return 0


def main():
    """Main entry point for the CLI."""
    setup_colored_logging(level=logging.INFO)

    cli = ArchiveCLI(configure_logging=True)
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
