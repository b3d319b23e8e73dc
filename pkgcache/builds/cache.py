"""Package build cache.

This module provides the high-level build API:
- PackageCache.build_packages(): build every package a set of roots needs
- PackageCache.get_built_artifact(): read a package built in this session

Packages are built depth-first: a local package's build-first dependencies
are built before it, each package exactly once per cache instance. A
dependency cycle is reported into the capture and the offending edge is
skipped so the rest of the build can continue.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path
from typing import TYPE_CHECKING

from pkgcache.builds.builder import LocalPackageBuilder
from pkgcache.builds.store import ArtifactStore, NoPackageStoreError
from pkgcache.types import LocalPackageInfo, VersionedPackageInfo

if TYPE_CHECKING:
    from pkgcache.builds.artifacts import Artifact
    from pkgcache.builds.store import PackageStore
    from pkgcache.capture import Capture
    from pkgcache.compiler import Compiler
    from pkgcache.packages.package_map import PackageMap

logger = logging.getLogger(__name__)


class UnknownPackageError(Exception):
    """Raised when a required package is not described in the package map."""

    def __init__(self, name: str, code: str = "unknown_package") -> None:
        super().__init__(f"Depend on unknown package {name}?")
        self.name = name
        self.code = code


class UnknownPackageKindError(Exception):
    """Raised for a PackageInfo that is neither local nor versioned."""

    def __init__(self, name: str, info: object, code: str = "unknown_kind") -> None:
        super().__init__(
            f"Unknown package info type for {name}: {type(info).__name__}"
        )
        self.name = name
        self.code = code


class PackageNotBuiltError(Exception):
    """Raised when asking for a package that has not been built yet."""

    def __init__(self, name: str, code: str = "package_not_built") -> None:
        super().__init__(f"Package {name} not yet built?")
        self.name = name
        self.code = code


class RegistryError(Exception):
    """Raised when a built package would be registered twice."""

    def __init__(self, name: str, code: str = "already_registered") -> None:
        super().__init__(f"Package {name} is already built in this session")
        self.name = name
        self.code = code


class BuildInProgressError(Exception):
    """Raised when build_packages is re-entered on the same cache."""

    def __init__(
        self,
        message: str = "A build is already running on this package cache",
        code: str = "build_in_progress",
    ) -> None:
        super().__init__(message)
        self.code = code


class PackageCache:
    """Builds packages once per session and keeps the results in memory.

    Args:
        compiler: Compiler for local packages.
        cache_dir: Directory for built local packages; None disables saving
            and loading them.
        package_store: Store of versioned packages; None means versioned
            packages cannot be used.
        lock_timeout: Seconds to wait for a package cache lock (None = block).
    """

    def __init__(
        self,
        compiler: Compiler,
        cache_dir: Path | None = None,
        package_store: PackageStore | None = None,
        lock_timeout: float | None = None,
    ) -> None:
        self.store = ArtifactStore(
            cache_dir=cache_dir,
            package_store=package_store,
            lock_timeout=lock_timeout,
        )
        self.builder = LocalPackageBuilder(self.store, compiler)
        self._built: dict[str, Artifact] = {}
        self._building = False

    @property
    def cache_dir(self) -> Path | None:
        return self.store.cache_dir

    def build_packages(
        self,
        capture: Capture,
        package_map: PackageMap,
        root_names: Iterable[str] | None = None,
    ) -> None:
        """Build the named roots and everything they need.

        Recoverable problems (cycles, compile errors) are recorded in the
        capture; the affected packages still end up built, possibly empty.

        Args:
            capture: Active build message capture.
            package_map: Packages visible to this build.
            root_names: Packages to build; every package in the map if None.

        Raises:
            NotInCaptureError: If the capture is not active.
            BuildInProgressError: If a build is already running on this cache.
            UnknownPackageError: If a required package is not in the map.
            NoPackageStoreError: If a versioned package is needed without a store.
        """
        capture.assert_in_capture()
        if self._building:
            raise BuildInProgressError()

        names = list(root_names) if root_names is not None else package_map.names()
        logger.debug("Building %d root package(s)", len(names))

        self._building = True
        try:
            for name in names:
                self._ensure_built(name, package_map, capture, frozenset())
        finally:
            self._building = False

    def get_built_artifact(self, name: str) -> Artifact:
        """Return a package built in this session.

        Only valid for packages whose build has completed, such as the
        build-first dependencies of the package being compiled.

        Raises:
            PackageNotBuiltError: If the package has not been built.
        """
        try:
            return self._built[name]
        except KeyError:
            raise PackageNotBuiltError(name) from None

    def is_built(self, name: str) -> bool:
        return name in self._built

    def built_package_names(self) -> list[str]:
        """Names of the packages built so far, in build order."""
        return list(self._built)

    def _register(self, name: str, artifact: Artifact) -> None:
        if name in self._built:
            raise RegistryError(name)
        self._built[name] = artifact

    def _ensure_built(
        self,
        name: str,
        package_map: PackageMap,
        capture: Capture,
        ancestors: frozenset[str],
    ) -> None:
        if name in self._built:
            logger.debug("Package %s already built", name)
            return

        info = package_map.get_info(name)
        if info is None:
            raise UnknownPackageError(name)

        match info:
            case LocalPackageInfo(source=source):
                on_stack = ancestors | {name}
                for dep in source.get_packages_to_build_first(package_map):
                    if dep in on_stack:
                        logger.warning(
                            "Circular dependency between %s and %s", name, dep
                        )
                        capture.error(
                            f"circular dependency between packages {name} and {dep}"
                        )
                        continue
                    self._ensure_built(dep, package_map, capture, on_stack)

                artifact = self.builder.build(
                    name, info, package_map, capture, cache=self
                )
                self._register(name, artifact)

            case VersionedPackageInfo(version=version):
                if self.store.package_store is None:
                    raise NoPackageStoreError(name)
                with capture.enter_job(f"loading package {name}@{version}"):
                    artifact = self.store.load_versioned(name, version)
                self._register(name, artifact)

            case _:
                raise UnknownPackageKindError(name, info)


__all__ = [
    "BuildInProgressError",
    "PackageCache",
    "PackageNotBuiltError",
    "RegistryError",
    "UnknownPackageError",
    "UnknownPackageKindError",
]
