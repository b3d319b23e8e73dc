"""Local package sources.

A DirectorySource describes a local package living in a directory of the
project tree, together with the packages that must be built before it
(typically because they provide build-time plugins).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pkgcache.packages.package_map import PackageMap


@dataclass(frozen=True)
class DirectorySource:
    """Source description of a package rooted at a directory.

    Attributes:
        name: Package name.
        source_root: Absolute directory holding the package sources.
        build_first: Packages to build before this one, in order.
    """

    name: str
    source_root: Path
    build_first: tuple[str, ...] = field(default_factory=tuple)

    def get_packages_to_build_first(self, package_map: PackageMap) -> list[str]:
        """Return build-first packages, in declaration order.

        Names the map does not describe are still returned; the cache treats
        them as a configuration error.
        """
        return list(self.build_first)


__all__ = ["DirectorySource"]
