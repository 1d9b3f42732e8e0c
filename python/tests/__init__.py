"""
Test suite for the archive-file tool.

This package contains the tests for the archive_ops package and the
command-line interface, from path matching and tree walking up to complete
ZIP and tar.gz builds.
"""
