"""Build cache module.

This module handles:
- Build orchestration in dependency order (cache)
- Building or reusing one local package (builder)
- Cache freshness checks (freshness)
- Loading/saving artifacts and versioned packages (store, artifacts)
"""

from pkgcache.builds.artifacts import Artifact, BuildInfo
from pkgcache.builds.cache import PackageCache

__all__ = ["Artifact", "BuildInfo", "PackageCache"]
