"""Package description module.

This module handles:
- The PackageMap consumed by the build cache
- Local package sources
- Validation and loading of package map files (YAML/JSON)
"""

from pkgcache.packages.io import load_package_map, schema_to_package_map
from pkgcache.packages.package_map import PackageMap
from pkgcache.packages.schema import PackageEntrySchema, PackageMapSchema
from pkgcache.packages.source import DirectorySource

__all__ = [
    "DirectorySource",
    "PackageEntrySchema",
    "PackageMap",
    "PackageMapSchema",
    "load_package_map",
    "schema_to_package_map",
]
