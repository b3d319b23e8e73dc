"""Watch sets: recorded build inputs that must still hold for reuse.

A watch set records, at build time, the filesystem facts a build depended on:
- files, by SHA-256 of their content (or None when the file must be absent)
- directories, by the sorted list of entries matching include/exclude patterns

A cached build is reusable only while every recorded condition still holds.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Default chunk size for hashing
HASH_CHUNK_SIZE = 64 * 1024  # 64KB


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


def file_hash_or_none(file_path: Path) -> str | None:
    """Return the SHA-256 of a regular file, or None if it is not one."""
    try:
        return compute_file_hash(file_path)
    except (FileNotFoundError, IsADirectoryError, NotADirectoryError):
        return None


def read_directory(
    path: Path,
    include: list[str],
    exclude: list[str],
) -> list[str] | None:
    """List directory entries filtered by include/exclude regexes.

    Subdirectory names carry a trailing '/'.

    Args:
        path: Directory to list.
        include: Entry is kept if it matches any of these (all kept if empty).
        exclude: Entry is dropped if it matches any of these.

    Returns:
        Sorted entry names, or None if path is not a directory.
    """
    if not path.is_dir():
        return None

    entries: list[str] = []
    for child in path.iterdir():
        entry = child.name + "/" if child.is_dir() else child.name
        if include and not any(re.search(p, entry) for p in include):
            continue
        if any(re.search(p, entry) for p in exclude):
            continue
        entries.append(entry)
    return sorted(entries)


@dataclass
class DirectoryWatch:
    """A recorded directory listing."""

    path: str
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    contents: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "include": list(self.include),
            "exclude": list(self.exclude),
            "contents": None if self.contents is None else list(self.contents),
        }


@dataclass
class WatchSet:
    """A set of conditions certifying that a build's inputs are unchanged.

    Attributes:
        files: Absolute path -> SHA-256 hex, or None if the file must not exist.
        directories: Recorded directory listings.
        always_fire: Set when conflicting conditions were recorded; such a
            watch set is never up to date.
    """

    files: dict[str, str | None] = field(default_factory=dict)
    directories: list[DirectoryWatch] = field(default_factory=list)
    always_fire: bool = False

    def add_file(self, path: Path | str, sha256: str | None) -> None:
        """Record that path must keep the given hash (None = stay absent)."""
        key = str(path)
        if key in self.files and self.files[key] != sha256:
            logger.debug("Conflicting hashes recorded for %s", key)
            self.always_fire = True
        self.files[key] = sha256

    def add_directory(
        self,
        path: Path | str,
        include: list[str] | None = None,
        exclude: list[str] | None = None,
        contents: list[str] | None = None,
    ) -> None:
        """Record the filtered listing of a directory."""
        self.directories.append(
            DirectoryWatch(
                path=str(path),
                include=list(include or []),
                exclude=list(exclude or []),
                contents=None if contents is None else sorted(contents),
            )
        )

    def merge(self, other: WatchSet) -> None:
        """Merge another watch set's conditions into this one."""
        if other.always_fire:
            self.always_fire = True
        for path, sha256 in other.files.items():
            self.add_file(path, sha256)
        for directory in other.directories:
            self.directories.append(
                DirectoryWatch(**directory.to_dict()),
            )

    def is_empty(self) -> bool:
        return not self.files and not self.directories and not self.always_fire

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        data: dict[str, Any] = {
            "files": dict(sorted(self.files.items())),
            "directories": [d.to_dict() for d in self.directories],
        }
        if self.always_fire:
            data["always_fire"] = True
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> WatchSet:
        """Rebuild a watch set from its dictionary form.

        Args:
            data: Output of to_dict(), or None for an empty watch set.

        Returns:
            WatchSet instance.
        """
        if not data:
            return cls()
        return cls(
            files=dict(data.get("files", {})),
            directories=[DirectoryWatch(**d) for d in data.get("directories", [])],
            always_fire=bool(data.get("always_fire", False)),
        )


def read_and_watch_file(watch_set: WatchSet, path: Path) -> bytes | None:
    """Read a file and record its hash (or absence) in a watch set.

    Args:
        watch_set: Watch set to record into.
        path: File to read.

    Returns:
        File contents, or None if the file does not exist.
    """
    try:
        data = path.read_bytes()
    except FileNotFoundError:
        watch_set.add_file(path, None)
        return None
    watch_set.add_file(path, hashlib.sha256(data).hexdigest())
    return data


def is_up_to_date(watch_set: WatchSet) -> bool:
    """Check whether every condition in a watch set still holds.

    Evaluation stops at the first condition that no longer holds. A watched
    path that can no longer be read counts as changed.

    Args:
        watch_set: Watch set to evaluate.

    Returns:
        True if all recorded files and directories are unchanged.
    """
    if watch_set.always_fire:
        return False

    for path, expected in watch_set.files.items():
        try:
            actual = file_hash_or_none(Path(path))
        except OSError as e:
            logger.debug("Cannot read watched file %s: %s", path, e)
            return False
        if actual != expected:
            logger.debug("Watched file changed: %s", path)
            return False

    for directory in watch_set.directories:
        try:
            actual_contents = read_directory(
                Path(directory.path), directory.include, directory.exclude
            )
        except OSError as e:
            logger.debug("Cannot list watched directory %s: %s", directory.path, e)
            return False
        if actual_contents != directory.contents:
            logger.debug("Watched directory changed: %s", directory.path)
            return False

    return True


__all__ = [
    "HASH_CHUNK_SIZE",
    "DirectoryWatch",
    "WatchSet",
    "compute_file_hash",
    "file_hash_or_none",
    "is_up_to_date",
    "read_and_watch_file",
    "read_directory",
]
