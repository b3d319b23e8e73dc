"""Tests for builds/store.py module.

Tests the versioned package store, the artifact store adapter and the
per-package cache lock.
"""

import pytest

from pkgcache.builds.artifacts import Artifact
from pkgcache.builds.store import (
    LOCKS_DIRNAME,
    ArtifactStore,
    DirectoryPackageStore,
    NoPackageStoreError,
    PackageNotInStoreError,
    cache_lock,
)
from pkgcache.packages.package_map import PackageMap


class TestDirectoryPackageStore:
    """Tests for DirectoryPackageStore."""

    def test_package_path(self, store_dir):
        """Should resolve <root>/<name>/<version>."""
        store = DirectoryPackageStore(store_dir)
        assert store.package_path("tool", "1.0") == store_dir / "tool" / "1.0"

    def test_missing_version(self, store_dir):
        """Should raise for a version the store does not hold."""
        store = DirectoryPackageStore(store_dir)
        with pytest.raises(PackageNotInStoreError) as exc_info:
            store.package_path("tool", "3.0")
        assert exc_info.value.code == "package_not_in_store"


class TestArtifactStore:
    """Tests for ArtifactStore adapter."""

    def test_load_versioned(self, store_dir):
        """Should load the stored artifact for a name and version."""
        store = ArtifactStore(package_store=DirectoryPackageStore(store_dir))
        artifact = store.load_versioned("tool", "2.0")
        assert artifact.units == {"main": {"tool.txt": "tool 2.0"}}

    def test_load_versioned_without_store(self):
        """Versioned loads need a package store."""
        with pytest.raises(NoPackageStoreError):
            ArtifactStore().load_versioned("tool", "1.0")

    def test_without_cache_dir(self):
        """Without a cache dir, reads find nothing and saves do nothing."""
        store = ArtifactStore()
        assert store.read_build_info("app") is None
        assert store.save_local(Artifact(name="app"), PackageMap()) is None

    def test_save_and_load_local(self, tmp_path):
        """Local packages are saved under <cache_dir>/<name>."""
        store = ArtifactStore(cache_dir=tmp_path / "cache")
        artifact = Artifact(name="app", units={"main": {"a.txt": "a"}})

        path = store.save_local(artifact, PackageMap())

        assert path == tmp_path / "cache" / "app"
        build_info = store.read_build_info("app")
        assert build_info is not None
        assert store.load_local("app", build_info).units == artifact.units

    def test_locked_creates_lock_file(self, tmp_path):
        """Locking a package uses a lock file under the cache dir."""
        store = ArtifactStore(cache_dir=tmp_path)
        with store.locked("app"):
            assert (tmp_path / LOCKS_DIRNAME / "app.lock").exists()

    def test_locked_without_cache_dir(self):
        """Locking is a no-op without a cache dir."""
        with ArtifactStore().locked("app"):
            pass


class TestCacheLock:
    """Tests for cache_lock context manager."""

    def test_acquires_and_releases_lock(self, tmp_path):
        """Should acquire and release lock."""
        lock_dir = tmp_path / "locks"

        with cache_lock(lock_dir, "app"):
            lock_file = lock_dir / "app.lock"
            assert lock_file.exists()

        # Lock released (file still exists but unlocked)
        with cache_lock(lock_dir, "app", timeout=0.5):
            pass

    def test_different_packages_do_not_block(self, tmp_path):
        """Should allow locks on different packages."""
        lock_dir = tmp_path / "locks"

        with (
            cache_lock(lock_dir, "a"),
            cache_lock(lock_dir, "b", timeout=0.5),
        ):
            assert (lock_dir / "a.lock").exists()
            assert (lock_dir / "b.lock").exists()

    def test_timeout_when_held(self, tmp_path):
        """Should time out while another holder has the lock."""
        lock_dir = tmp_path / "locks"

        with cache_lock(lock_dir, "app"):
            with pytest.raises(TimeoutError):
                with cache_lock(lock_dir, "app", timeout=0.2):
                    pass
