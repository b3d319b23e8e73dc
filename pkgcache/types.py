"""Shared type definitions for pkgcache.

This module contains the package description types shared across
subpackages to avoid circular imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, Union, runtime_checkable

if TYPE_CHECKING:
    from pkgcache.packages.package_map import PackageMap


class PackageKind(str, Enum):
    """How a package's artifact is obtained."""

    LOCAL = "local"
    VERSIONED = "versioned"


@runtime_checkable
class PackageSource(Protocol):
    """Source description of a local package, as consumed by the cache."""

    name: str
    source_root: Path

    def get_packages_to_build_first(self, package_map: PackageMap) -> list[str]:
        """Return the ordered names of packages that must be built first."""
        ...


@dataclass(frozen=True)
class LocalPackageInfo:
    """A package built from source in the current project tree."""

    source: PackageSource

    @property
    def kind(self) -> PackageKind:
        return PackageKind.LOCAL


@dataclass(frozen=True)
class VersionedPackageInfo:
    """A prebuilt package loaded from the package store by version."""

    version: str

    @property
    def kind(self) -> PackageKind:
        return PackageKind.VERSIONED


PackageInfo = Union[LocalPackageInfo, VersionedPackageInfo]


__all__ = [
    "LocalPackageInfo",
    "PackageInfo",
    "PackageKind",
    "PackageSource",
    "VersionedPackageInfo",
]
