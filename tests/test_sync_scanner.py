"""Unit tests for the directory scanner."""

import os
import tempfile
from pathlib import Path

import pytest

from kubersync.sync.scanner import DirectoryScanner, LocalFile


class TestDirectoryScanner:
    """Test DirectoryScanner functionality."""

    @pytest.fixture
    def temp_dir(self):
        """Create a temporary directory for testing."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield Path(tmpdir)

    def test_scan_empty_directory(self, temp_dir):
        assert DirectoryScanner().scan_local(temp_dir) == []

    def test_scan_nested_files(self, temp_dir):
        (temp_dir / "b.txt").write_text("b")
        (temp_dir / "tls").mkdir()
        (temp_dir / "tls" / "tls.crt").write_text("crt")
        (temp_dir / "a.txt").write_text("a")

        files = DirectoryScanner().scan_local(temp_dir)

        assert [f.relative_path for f in files] == ["a.txt", "b.txt", "tls/tls.crt"]
        assert all(isinstance(f, LocalFile) for f in files)

    def test_directories_are_transparent(self, temp_dir):
        (temp_dir / "empty" / "deeper").mkdir(parents=True)

        assert DirectoryScanner().scan_local(temp_dir) == []

    def test_local_file_metadata(self, temp_dir):
        (temp_dir / "x").write_bytes(b"12345")

        [local] = DirectoryScanner().scan_local(temp_dir)

        assert local.path == temp_dir / "x"
        assert local.size == 5
        assert local.read_bytes() == b"12345"

    def test_dot_files_included(self, temp_dir):
        (temp_dir / ".env").write_text("A=1")

        assert [f.relative_path for f in DirectoryScanner().scan_local(temp_dir)] == [
            ".env"
        ]

    def test_directory_symlink_not_followed(self, temp_dir):
        target = temp_dir / "real"
        target.mkdir()
        (target / "f").write_text("1")
        os.symlink(target, temp_dir / "link")

        files = DirectoryScanner().scan_local(temp_dir)

        assert [f.relative_path for f in files] == ["real/f"]

    def test_missing_directory_raises(self, temp_dir):
        with pytest.raises(OSError):
            DirectoryScanner().scan_local(temp_dir / "missing")


class TestSnapshot:
    """Tests for reading a whole tree into memory."""

    def test_snapshot(self, tmp_path):
        (tmp_path / "a").write_bytes(b"1")
        (tmp_path / "d").mkdir()
        (tmp_path / "d" / "b").write_bytes(b"\x00\xff")

        assert DirectoryScanner().snapshot(tmp_path) == {"a": b"1", "d/b": b"\x00\xff"}

    def test_snapshot_is_ordered(self, tmp_path):
        for name in ("c", "a", "b"):
            (tmp_path / name).write_text(name)

        assert list(DirectoryScanner().snapshot(tmp_path)) == ["a", "b", "c"]
