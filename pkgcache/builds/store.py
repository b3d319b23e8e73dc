"""Artifact store adapter.

This module handles:
- Resolving versioned packages in the package store and loading them
- Reading build info and loading/saving local packages in the cache directory
- Per-package advisory locks on the cache directory

Versioned packages are immutable once published, so they are loaded without
any staleness check.
"""

from __future__ import annotations

import fcntl
import logging
import os
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pkgcache.builds.artifacts import (
    BUILD_INFO_FILENAME,
    Artifact,
    BuildInfo,
    load_artifact,
    read_build_info,
    save_artifact,
)

if TYPE_CHECKING:
    from pkgcache.packages.package_map import PackageMap

logger = logging.getLogger(__name__)

LOCKS_DIRNAME = ".locks"


class NoPackageStoreError(Exception):
    """Raised when a versioned package is needed but no store is configured."""

    def __init__(self, name: str, code: str = "no_package_store") -> None:
        super().__init__(f"Can't load versioned package {name} without a package store")
        self.name = name
        self.code = code


class PackageNotInStoreError(Exception):
    """Raised when the store has no directory for a name and version."""

    def __init__(
        self, name: str, version: str, path: Path, code: str = "package_not_in_store"
    ) -> None:
        super().__init__(f"Package {name}@{version} not found in store at {path}")
        self.name = name
        self.version = version
        self.path = path
        self.code = code


class PackageStore(Protocol):
    """Store of prebuilt, versioned packages."""

    def package_path(self, name: str, version: str) -> Path:
        """Return the directory holding the built package."""
        ...


class DirectoryPackageStore:
    """Package store laid out as <root>/<name>/<version>/."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def __repr__(self) -> str:
        return f"<DirectoryPackageStore(root='{self.root}')>"

    def package_path(self, name: str, version: str) -> Path:
        path = self.root / name / version
        if not path.is_dir():
            raise PackageNotInStoreError(name, version, path)
        return path


@contextmanager
def cache_lock(
    lock_dir: Path,
    name: str,
    timeout: float | None = None,
) -> Iterator[None]:
    """Acquire the advisory lock for one package's cache directory.

    Uses a file-based lock so that separate processes sharing a cache
    directory do not read and write the same package at the same time.

    Args:
        lock_dir: Directory for lock files.
        name: Package name to lock on.
        timeout: Lock acquisition timeout in seconds (None = blocking).

    Yields:
        None when lock is acquired.

    Raises:
        TimeoutError: If lock cannot be acquired within timeout.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)

    safe_name = name.replace(":", "_").replace("/", "_")
    lock_file = lock_dir / f"{safe_name}.lock"

    logger.debug("Acquiring cache lock for package: %s", name)

    fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o600)
    lock_acquired = False
    try:
        if timeout is not None:
            start = time.monotonic()
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    lock_acquired = True
                    break
                except BlockingIOError:
                    if time.monotonic() - start >= timeout:
                        raise TimeoutError(
                            f"Timeout waiting for cache lock on package {name}"
                        ) from None
                    time.sleep(0.1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX)
            lock_acquired = True

        logger.debug("Cache lock acquired for package: %s", name)
        yield
    finally:
        if lock_acquired:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Cache lock released for package: %s", name)
        os.close(fd)


class ArtifactStore:
    """Loads and saves artifacts for the build cache.

    Args:
        cache_dir: Directory for built local packages; None disables saving.
        package_store: Store of versioned packages; None disables loading them.
        lock_timeout: Seconds to wait for a package lock (None = block).
    """

    def __init__(
        self,
        cache_dir: Path | None = None,
        package_store: PackageStore | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        self.cache_dir = cache_dir
        self.package_store = package_store
        self.lock_timeout = lock_timeout
        if cache_dir is not None:
            cache_dir.mkdir(parents=True, exist_ok=True)

    def package_dir(self, name: str) -> Path:
        assert self.cache_dir is not None
        return self.cache_dir / name

    def build_info_path(self, name: str) -> Path:
        return self.package_dir(name) / BUILD_INFO_FILENAME

    @contextmanager
    def locked(self, name: str) -> Iterator[None]:
        """Hold the package's cache lock; no-op without a cache directory."""
        if self.cache_dir is None:
            yield
            return
        with cache_lock(self.cache_dir / LOCKS_DIRNAME, name, self.lock_timeout):
            yield

    def load_versioned(self, name: str, version: str) -> Artifact:
        """Load a versioned package from the package store.

        Raises:
            NoPackageStoreError: If no package store is configured.
            PackageNotInStoreError: If the store has no such package.
            ArtifactLoadError: If the stored package cannot be read.
        """
        if self.package_store is None:
            raise NoPackageStoreError(name)
        path = self.package_store.package_path(name, version)
        logger.info("Loading package %s@%s from %s", name, version, path)
        return load_artifact(name, path)

    def read_build_info(self, name: str) -> BuildInfo | None:
        """Read a local package's build info; None without a cache directory."""
        if self.cache_dir is None:
            return None
        return read_build_info(self.build_info_path(name))

    def load_local(self, name: str, build_info: BuildInfo | None) -> Artifact:
        """Load a local package from the cache directory."""
        return load_artifact(name, self.package_dir(name), build_info=build_info)

    def save_local(
        self,
        artifact: Artifact,
        plugin_provider_map: PackageMap,
        include_build_info: bool = True,
    ) -> Path | None:
        """Save a local package to the cache directory.

        Returns:
            Package directory, or None if no cache directory is configured.
        """
        if self.cache_dir is None:
            return None
        return save_artifact(
            artifact,
            self.package_dir(artifact.name),
            plugin_provider_map=plugin_provider_map,
            include_build_info=include_build_info,
        )


__all__ = [
    "LOCKS_DIRNAME",
    "ArtifactStore",
    "DirectoryPackageStore",
    "NoPackageStoreError",
    "PackageNotInStoreError",
    "PackageStore",
    "cache_lock",
]
