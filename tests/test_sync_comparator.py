"""Unit tests for the file comparator."""

import pytest

from kubersync.exceptions import UnsafePathError
from kubersync.sync.comparator import FileComparator, SyncAction
from kubersync.sync.scanner import DirectoryScanner


def _decisions_by_path(decisions):
    return {d.relative_path: d for d in decisions}


class TestFileComparator:
    """Tests for FileComparator class."""

    def test_new_entry_is_written(self, tmp_path):
        comparator = FileComparator(allow_delete=True)
        decisions = comparator.compare(tmp_path, {"a": b"1"}, [])

        assert len(decisions) == 1
        assert decisions[0].action == SyncAction.WRITE
        assert decisions[0].path == tmp_path / "a"
        assert decisions[0].data == b"1"

    def test_identical_entry_is_skipped(self, tmp_path):
        (tmp_path / "a").write_bytes(b"1")
        local = DirectoryScanner().scan_local(tmp_path)

        decisions = FileComparator(allow_delete=True).compare(tmp_path, {"a": b"1"}, local)

        assert decisions[0].action == SyncAction.SKIP

    def test_changed_entry_is_written(self, tmp_path):
        (tmp_path / "a").write_bytes(b"old")
        local = DirectoryScanner().scan_local(tmp_path)

        decisions = FileComparator(allow_delete=True).compare(tmp_path, {"a": b"new"}, local)

        assert decisions[0].action == SyncAction.WRITE

    def test_local_only_deleted_after_initial_sync(self, tmp_path):
        (tmp_path / "stale").write_bytes(b"x")
        local = DirectoryScanner().scan_local(tmp_path)

        decisions = FileComparator(allow_delete=True).compare(tmp_path, {}, local)

        assert decisions[0].action == SyncAction.DELETE_LOCAL
        assert decisions[0].path == tmp_path / "stale"

    def test_local_only_kept_before_initial_sync(self, tmp_path):
        (tmp_path / "b").write_bytes(b"2")
        local = DirectoryScanner().scan_local(tmp_path)

        decisions = FileComparator(allow_delete=False).compare(tmp_path, {"a": b"1"}, local)
        by_path = _decisions_by_path(decisions)

        assert by_path["a"].action == SyncAction.WRITE
        assert by_path["b"].action == SyncAction.SKIP

    def test_writes_come_before_deletes(self, tmp_path):
        (tmp_path / "a").write_bytes(b"x")
        local = DirectoryScanner().scan_local(tmp_path)

        decisions = FileComparator(allow_delete=True).compare(tmp_path, {"z": b"1"}, local)

        assert [d.action for d in decisions] == [SyncAction.WRITE, SyncAction.DELETE_LOCAL]

    def test_nested_key_unmarks_nested_file(self, tmp_path):
        (tmp_path / "tls").mkdir()
        (tmp_path / "tls" / "key").write_bytes(b"k")
        local = DirectoryScanner().scan_local(tmp_path)

        decisions = FileComparator(allow_delete=True).compare(
            tmp_path, {"tls/key": b"k"}, local
        )

        assert [d.action for d in decisions] == [SyncAction.SKIP]

    def test_unsafe_key_aborts(self, tmp_path):
        with pytest.raises(UnsafePathError):
            FileComparator(allow_delete=True).compare(tmp_path, {"../x": b"1"}, [])

    def test_entry_shadowed_by_directory_is_written(self, tmp_path):
        """Unreadable targets count as different; the write reports the error."""
        (tmp_path / "a").mkdir()

        decisions = FileComparator(allow_delete=True).compare(tmp_path, {"a": b"1"}, [])

        assert decisions[0].action == SyncAction.WRITE
