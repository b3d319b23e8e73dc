"""Tests for watch.py module.

Tests recording, merging and evaluating watch sets.
"""

import hashlib
from unittest.mock import patch

from pkgcache.watch import (
    WatchSet,
    compute_file_hash,
    file_hash_or_none,
    is_up_to_date,
    read_and_watch_file,
    read_directory,
)


class TestFileHashing:
    """Tests for file hash helpers."""

    def test_compute_file_hash(self, tmp_path):
        """Should return the SHA-256 of the content."""
        path = tmp_path / "f.txt"
        path.write_bytes(b"hello")
        assert compute_file_hash(path) == hashlib.sha256(b"hello").hexdigest()

    def test_missing_file_hash_is_none(self, tmp_path):
        """Missing files and directories have no hash."""
        assert file_hash_or_none(tmp_path / "missing") is None
        assert file_hash_or_none(tmp_path) is None


class TestReadDirectory:
    """Tests for read_directory function."""

    def test_lists_sorted_with_dir_suffix(self, tmp_path):
        """Should sort entries and mark subdirectories."""
        (tmp_path / "b.txt").touch()
        (tmp_path / "a.txt").touch()
        (tmp_path / "sub").mkdir()
        assert read_directory(tmp_path, [], []) == ["a.txt", "b.txt", "sub/"]

    def test_include_and_exclude(self, tmp_path):
        """Should apply include then exclude patterns."""
        for name in ("a.py", "b.py", "c.txt", ".hidden.py"):
            (tmp_path / name).touch()
        assert read_directory(tmp_path, [r"\.py$"], [r"^\."]) == ["a.py", "b.py"]

    def test_missing_directory(self, tmp_path):
        """Should return None for a missing directory."""
        assert read_directory(tmp_path / "nope", [], []) is None


class TestIsUpToDate:
    """Tests for evaluating watch sets."""

    def test_empty_watch_set(self):
        """An empty watch set is always up to date."""
        assert is_up_to_date(WatchSet())

    def test_unchanged_file(self, tmp_path):
        """Should stay up to date while the file is unchanged."""
        path = tmp_path / "f.txt"
        path.write_text("one")
        watch_set = WatchSet()
        read_and_watch_file(watch_set, path)
        assert is_up_to_date(watch_set)

    def test_changed_file(self, tmp_path):
        """Should detect a changed file."""
        path = tmp_path / "f.txt"
        path.write_text("one")
        watch_set = WatchSet()
        read_and_watch_file(watch_set, path)
        path.write_text("two")
        assert not is_up_to_date(watch_set)

    def test_deleted_file(self, tmp_path):
        """Should detect a deleted file."""
        path = tmp_path / "f.txt"
        path.write_text("one")
        watch_set = WatchSet()
        read_and_watch_file(watch_set, path)
        path.unlink()
        assert not is_up_to_date(watch_set)

    def test_unreadable_file(self, tmp_path):
        """A watched file that cannot be read counts as changed."""
        path = tmp_path / "f.txt"
        path.write_text("one")
        watch_set = WatchSet()
        read_and_watch_file(watch_set, path)
        with patch(
            "pkgcache.watch.compute_file_hash", side_effect=PermissionError(13, "denied")
        ):
            assert not is_up_to_date(watch_set)

    def test_unlistable_directory(self, tmp_path):
        """A watched directory that cannot be listed counts as changed."""
        watch_set = WatchSet()
        watch_set.add_directory(tmp_path, contents=[])
        with patch(
            "pkgcache.watch.read_directory", side_effect=PermissionError(13, "denied")
        ):
            assert not is_up_to_date(watch_set)

    def test_file_that_must_stay_absent(self, tmp_path):
        """A file recorded as absent invalidates the set once it appears."""
        path = tmp_path / "optional.cfg"
        watch_set = WatchSet()
        assert read_and_watch_file(watch_set, path) is None
        assert is_up_to_date(watch_set)

        path.write_text("now here")
        assert not is_up_to_date(watch_set)

    def test_directory_gains_entry(self, tmp_path):
        """Adding a file to a watched directory should invalidate the set."""
        (tmp_path / "a.txt").touch()
        watch_set = WatchSet()
        watch_set.add_directory(tmp_path, contents=read_directory(tmp_path, [], []))
        assert is_up_to_date(watch_set)

        (tmp_path / "b.txt").touch()
        assert not is_up_to_date(watch_set)

    def test_directory_ignores_excluded_entries(self, tmp_path):
        """Entries matching exclude patterns do not invalidate the set."""
        watch_set = WatchSet()
        watch_set.add_directory(
            tmp_path,
            exclude=[r"^\."],
            contents=read_directory(tmp_path, [], [r"^\."]),
        )
        (tmp_path / ".swap").touch()
        assert is_up_to_date(watch_set)

    def test_conflicting_hashes_always_fire(self, tmp_path):
        """Recording two hashes for one file makes the set never fresh."""
        watch_set = WatchSet()
        watch_set.add_file(tmp_path / "f", "aaa")
        watch_set.add_file(tmp_path / "f", "bbb")
        assert watch_set.always_fire
        assert not is_up_to_date(watch_set)


class TestMerge:
    """Tests for merging watch sets."""

    def test_merge_unions_conditions(self, tmp_path):
        """Merged set should hold the conditions of both sets."""
        first = tmp_path / "first.txt"
        second = tmp_path / "second.txt"
        first.write_text("1")
        second.write_text("2")

        merged = WatchSet()
        read_and_watch_file(merged, first)
        other = WatchSet()
        read_and_watch_file(other, second)
        other.add_directory(tmp_path, contents=read_directory(tmp_path, [], []))
        merged.merge(other)

        assert set(merged.files) == {str(first), str(second)}
        assert len(merged.directories) == 1
        assert is_up_to_date(merged)

        second.write_text("changed")
        assert not is_up_to_date(merged)

    def test_merge_propagates_always_fire(self):
        """Merging an always-firing set should make the result always fire."""
        merged = WatchSet()
        merged.merge(WatchSet(always_fire=True))
        assert merged.always_fire


class TestSerialization:
    """Tests for to_dict/from_dict."""

    def test_from_dict_restores_conditions(self, tmp_path):
        """A deserialized watch set evaluates like the one it came from."""
        path = tmp_path / "f.txt"
        path.write_text("content")
        watch_set = WatchSet()
        read_and_watch_file(watch_set, path)
        watch_set.add_directory(tmp_path, contents=read_directory(tmp_path, [], []))

        restored = WatchSet.from_dict(watch_set.to_dict())

        assert restored == watch_set
        path.write_text("changed")
        assert not is_up_to_date(restored)

    def test_from_none_is_empty(self):
        """None deserializes to an empty watch set."""
        assert WatchSet.from_dict(None).is_empty()
