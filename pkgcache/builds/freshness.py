"""Freshness check for cached local packages.

A cached package is up to date when:
1. Build info was recorded for it
2. Every package that provided plugins to it is still described the same
   way in the current package map (same version or source root)
3. Every watched input of its units and plugins is unchanged

The checks run in that order; the filesystem is only touched once the
cheaper package map comparison passes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pkgcache import watch

if TYPE_CHECKING:
    from pkgcache.builds.artifacts import BuildInfo
    from pkgcache.packages.package_map import PackageMap

logger = logging.getLogger(__name__)


def merged_watch_set(build_info: BuildInfo) -> watch.WatchSet:
    """Merge the plugin watch set with every unit watch set."""
    merged = build_info.plugin_watch_set()
    for unit_watch_set in build_info.unit_watch_sets().values():
        merged.merge(unit_watch_set)
    return merged


def is_up_to_date(build_info: BuildInfo | None, package_map: PackageMap) -> bool:
    """Decide whether a cached build can be reused.

    Args:
        build_info: Build info recorded by the cached build, or None.
        package_map: Current package map.

    Returns:
        True if the cached artifact is still valid.
    """
    if build_info is None:
        return False

    if not package_map.is_superset_of_snapshot(
        build_info.plugin_provider_package_map
    ):
        logger.debug("Plugin providers changed since the cached build")
        return False

    return watch.is_up_to_date(merged_watch_set(build_info))


__all__ = ["is_up_to_date", "merged_watch_set"]
