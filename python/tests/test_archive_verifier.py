"""
Tests for archive verification and read-back.
"""

import gzip
import shutil
import tempfile
import unittest
from pathlib import Path

from archive_ops import (
    ArchiveFormat,
    ArchiveMember,
    ArchiveVerifier,
    UnsupportedFormatError,
    build_archive,
)


class TestArchiveVerifier(unittest.TestCase):
    """Test integrity checks, format detection and entry listing."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.verifier = ArchiveVerifier()
        self.zip_path = self.temp_dir / "blocks.zip"
        self.tar_path = self.temp_dir / "blocks.tar.gz"
        sources = {"b.txt": "beta", "a.txt": "alpha"}
        build_archive("zip", str(self.zip_path), source=sources)
        build_archive("tar.gz", str(self.tar_path), source=sources)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_reads_zip_entries(self):
        """Test the normalized ZIP entries as read back."""
        self.assertEqual(
            self.verifier.read_entries(str(self.zip_path)),
            [
                ArchiveMember("a.txt", b"alpha", 0o644, (1981, 4, 10, 0, 0, 0)),
                ArchiveMember("b.txt", b"beta", 0o644, (1981, 4, 10, 0, 0, 0)),
            ],
        )

    def test_reads_tar_gz_entries(self):
        """Test the tar.gz content entries as read back."""
        self.assertEqual(
            self.verifier.read_entries(str(self.tar_path)),
            [
                ArchiveMember("a.txt", b"alpha", 0o600, 0),
                ArchiveMember("b.txt", b"beta", 0o600, 0),
            ],
        )

    def test_valid_archives_pass(self):
        """Test integrity of freshly built archives."""
        self.assertTrue(self.verifier.verify_archive_integrity(str(self.zip_path)))
        self.assertTrue(self.verifier.verify_archive_integrity(str(self.tar_path)))

    def test_corrupted_zip_fails(self):
        """Test a ZIP whose stored entry data was altered."""
        data = bytearray(self.zip_path.read_bytes())
        offset = data.index(b"alpha")
        data[offset] ^= 0xFF
        self.zip_path.write_bytes(bytes(data))

        self.assertFalse(self.verifier.verify_archive_integrity(str(self.zip_path)))

    def test_truncated_tar_gz_fails(self):
        """Test a tar.gz cut short."""
        data = self.tar_path.read_bytes()
        self.tar_path.write_bytes(data[: len(data) // 2])

        self.assertFalse(self.verifier.verify_archive_integrity(str(self.tar_path)))

    def test_detect_format_by_extension(self):
        """Test detection from the file name."""
        self.assertIs(ArchiveVerifier.detect_format("x.ZIP"), ArchiveFormat.ZIP)
        self.assertIs(ArchiveVerifier.detect_format("x.tar.gz"), ArchiveFormat.TAR_GZ)
        self.assertIs(ArchiveVerifier.detect_format("x.tgz"), ArchiveFormat.TAR_GZ)

    def test_detect_format_by_contents(self):
        """Test detection of files without a known extension."""
        zip_copy = self.temp_dir / "archive.bin"
        shutil.copyfile(self.zip_path, zip_copy)
        gz_file = self.temp_dir / "blob.bin"
        gz_file.write_bytes(gzip.compress(b"data"))
        text_file = self.temp_dir / "notes.txt"
        text_file.write_text("not an archive")

        self.assertIs(ArchiveVerifier.detect_format(str(zip_copy)), ArchiveFormat.ZIP)
        self.assertIs(ArchiveVerifier.detect_format(str(gz_file)), ArchiveFormat.TAR_GZ)
        with self.assertRaises(UnsupportedFormatError):
            ArchiveVerifier.detect_format(str(text_file))
        self.assertFalse(self.verifier.verify_archive_integrity(str(text_file)))

    def test_archive_info(self):
        """Test the summary of both formats."""
        zip_info = self.verifier.get_archive_info(str(self.zip_path))
        self.assertEqual(zip_info["format"], "zip")
        self.assertEqual(zip_info["file_count"], 2)
        self.assertEqual(zip_info["size_bytes"], self.zip_path.stat().st_size)
        self.assertTrue(zip_info["stored_only"])
        self.assertTrue(zip_info["valid"])

        tar_info = self.verifier.get_archive_info(str(self.tar_path))
        self.assertEqual(tar_info["format"], "tar.gz")
        self.assertEqual(tar_info["file_count"], 2)
        self.assertEqual(tar_info["uncompressed_size"], len("alpha") + len("beta"))
        self.assertTrue(tar_info["valid"])

    def test_archive_info_missing_file(self):
        """Test info on a path that does not exist."""
        with self.assertRaises(FileNotFoundError):
            self.verifier.get_archive_info(str(self.temp_dir / "missing.zip"))


if __name__ == "__main__":
    unittest.main()
