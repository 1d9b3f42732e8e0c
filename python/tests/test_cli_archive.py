"""
Tests for the archive command-line interface.
"""

import io
import json
import tarfile
import tempfile
import unittest
import zipfile
from contextlib import redirect_stdout
from pathlib import Path

from cli_archive import ArchiveCLI


class TestArchiveCLI(unittest.TestCase):
    """Test ArchiveCLI.run end to end."""

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.cli = ArchiveCLI()
        self.config = str(self.temp_dir / "no-config.yml")

    def tearDown(self):
        import shutil

        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _run(self, *args):
        stdout = io.StringIO()
        with redirect_stdout(stdout):
            code = self.cli.run(["--config", self.config, *args])
        return code, stdout.getvalue()

    def test_create_from_content_as_json(self):
        """Test a content build printing its attributes as JSON."""
        output = self.temp_dir / "hello.zip"

        code, stdout = self._run(
            "create",
            "--type", "zip",
            "--source-content", "hello",
            "--source-content-filename", "hello.txt",
            "--output", str(output),
            "--json",
        )

        self.assertEqual(code, 0)
        attributes = json.loads(stdout)
        self.assertEqual(attributes["output_size"], output.stat().st_size)
        self.assertEqual(attributes["entry_count"], 1)
        self.assertEqual(attributes["id"], attributes["output_sha"])
        with zipfile.ZipFile(output) as zipf:
            self.assertEqual(zipf.read("hello.txt"), b"hello")

    def test_create_from_named_sources(self):
        """Test repeated --source blocks with a file mode."""
        output = self.temp_dir / "blocks.tar.gz"

        code, stdout = self._run(
            "create",
            "-t", "tar.gz",
            "--source", "b.txt=beta",
            "--source", "a.txt=alpha=1",
            "--output-file-mode", "0644",
            "-o", str(output),
        )

        self.assertEqual(code, 0)
        self.assertIn("entry_count = 2", stdout)
        with tarfile.open(output, "r:gz") as tar:
            self.assertEqual(tar.getnames(), ["a.txt", "b.txt"])
            self.assertEqual(tar.extractfile("a.txt").read(), b"alpha=1")
            self.assertEqual(tar.getmember("b.txt").mode, 0o644)

    def test_create_from_directory_with_excludes(self):
        """Test a directory build honoring --exclude."""
        src = self.temp_dir / "src"
        (src / "pkg").mkdir(parents=True)
        (src / "pkg" / "main.py").write_text("print()")
        (src / "pkg" / "main_test.py").write_text("assert True")
        output = self.temp_dir / "src.zip"

        code, _ = self._run(
            "create",
            "--type", "zip",
            "--source-dir", str(src),
            "--exclude", "**/*_test.py",
            "--output", str(output),
        )

        self.assertEqual(code, 0)
        with zipfile.ZipFile(output) as zipf:
            self.assertEqual(zipf.namelist(), ["pkg/main.py"])

    def test_create_errors_return_one(self):
        """Test archive errors reported as exit status 1."""
        output = self.temp_dir / "out.zip"
        cases = [
            ["--type", "rar", "--source", "a=b"],
            ["--type", "zip", "--source", "a=b", "--source-content", "x",
             "--source-content-filename", "x.txt"],
            ["--type", "zip", "--source", "missing-separator"],
            ["--type", "zip", "--source", "a=1", "--source", "a=2"],
            ["--type", "zip", "--source", "a=b", "--output-file-mode", "abc"],
            ["--type", "zip", "--source-file", str(self.temp_dir / "nope.txt")],
        ]
        for extra in cases:
            with self.subTest(args=extra):
                code, _ = self._run("create", "--output", str(output), *extra)
                self.assertEqual(code, 1)
                self.assertFalse(output.exists())

    def test_create_requires_type(self):
        """Test argparse rejecting a missing --type."""
        with redirect_stdout(io.StringIO()), self.assertRaises(SystemExit):
            self.cli.run(["create", "--output", "out.zip"])

    def test_info_and_verify(self):
        """Test the inspection commands on a built archive."""
        output = self.temp_dir / "out.zip"
        self._run("create", "--type", "zip", "--source", "a=b", "--output", str(output))

        self.assertEqual(self._run("info", str(output))[0], 0)
        self.assertEqual(self._run("info", "--detailed", str(output))[0], 0)
        self.assertEqual(self._run("verify", str(output))[0], 0)

        output.write_bytes(b"garbage")
        self.assertEqual(self._run("verify", str(output))[0], 1)

    def test_missing_archive(self):
        """Test info and verify on a path that does not exist."""
        missing = str(self.temp_dir / "missing.zip")
        self.assertEqual(self._run("info", missing)[0], 1)
        self.assertEqual(self._run("verify", missing)[0], 1)

    def test_formats(self):
        self.assertEqual(self._run("formats")[0], 0)

    def test_no_command_prints_help(self):
        """Test running without a subcommand."""
        code, stdout = self._run()
        self.assertEqual(code, 1)
        self.assertIn("create", stdout)


if __name__ == "__main__":
    unittest.main()
