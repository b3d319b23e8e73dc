"""Local package builder.

Builds or loads one local package:
1. Read the build info recorded by the last build (if any)
2. If it is still up to date, load the cached artifact
3. Otherwise compile the package
4. If compiling reported errors, substitute an empty artifact and save nothing
5. Otherwise save the artifact and its build info to the cache directory
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pkgcache.builds.artifacts import ArtifactLoadError, empty_artifact
from pkgcache.builds.freshness import is_up_to_date

if TYPE_CHECKING:
    from pkgcache.builds.artifacts import Artifact
    from pkgcache.builds.store import ArtifactStore
    from pkgcache.capture import Capture
    from pkgcache.compiler import BuiltArtifactSource, Compiler
    from pkgcache.packages.package_map import PackageMap
    from pkgcache.types import LocalPackageInfo

logger = logging.getLogger(__name__)


class LocalPackageBuilder:
    """Builds local packages, reusing cached builds when their inputs match.

    Args:
        store: Artifact store used for the cache directory.
        compiler: Compiler invoked for stale packages.
    """

    def __init__(self, store: ArtifactStore, compiler: Compiler) -> None:
        self.store = store
        self.compiler = compiler

    def build(
        self,
        name: str,
        info: LocalPackageInfo,
        package_map: PackageMap,
        capture: Capture,
        cache: BuiltArtifactSource,
    ) -> Artifact:
        """Build or load a local package inside its own job.

        Args:
            name: Package name.
            info: The package's PackageInfo.
            package_map: Full package map of the session.
            capture: Active build message capture.
            cache: Already-built packages, handed to the compiler.

        Returns:
            The package's artifact; empty if compilation reported errors.
        """
        with capture.enter_job(f"building package {name}"), self.store.locked(name):
            build_info = self.store.read_build_info(name)

            if is_up_to_date(build_info, package_map):
                try:
                    artifact = self.store.load_local(name, build_info)
                except ArtifactLoadError as e:
                    logger.warning("Cached package unusable, rebuilding: %s", e)
                else:
                    logger.info("Package %s is up to date, loaded from cache", name)
                    return artifact

            logger.info("Compiling package %s", name)
            result = self.compiler.compile(
                info.source,
                package_map=package_map,
                cache=cache,
                capture=capture,
            )

            if capture.job_has_messages():
                logger.warning(
                    "Package %s failed to build; using an empty package", name
                )
                return empty_artifact(name)

            plugin_provider_map = package_map.make_subset_map(
                result.plugin_provider_package_names
            )
            self.store.save_local(result.artifact, plugin_provider_map)
            return result.artifact


__all__ = ["LocalPackageBuilder"]
