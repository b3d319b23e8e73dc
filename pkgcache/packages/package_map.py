"""Package map: the set of packages a build session can see.

A PackageMap maps package names to PackageInfo (local or versioned). It is
never mutated after construction; subsets are new maps.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from typing import Any

from pkgcache.types import (
    LocalPackageInfo,
    PackageInfo,
    PackageKind,
    VersionedPackageInfo,
)


class PackageMap:
    """Immutable mapping of package name to PackageInfo."""

    def __init__(self, packages: Mapping[str, PackageInfo] | None = None) -> None:
        self._packages: dict[str, PackageInfo] = dict(packages or {})

    def __repr__(self) -> str:
        return f"<PackageMap({', '.join(self._packages)})>"

    def __contains__(self, name: object) -> bool:
        return name in self._packages

    def __len__(self) -> int:
        return len(self._packages)

    def __iter__(self) -> Iterator[str]:
        return iter(self._packages)

    def names(self) -> list[str]:
        return list(self._packages)

    def items(self) -> Iterator[tuple[str, PackageInfo]]:
        return iter(self._packages.items())

    def get_info(self, name: str) -> PackageInfo | None:
        """Return the PackageInfo for name, or None if not in the map."""
        return self._packages.get(name)

    def each_package(self, fn: Callable[[str, PackageInfo], Any]) -> None:
        """Call fn(name, info) for every package, in map order."""
        for name, info in self._packages.items():
            fn(name, info)

    def make_subset_map(self, names: Iterable[str]) -> PackageMap:
        """Return a new map restricted to the given names.

        Names not present in this map are ignored.
        """
        wanted = set(names)
        return PackageMap(
            {name: info for name, info in self._packages.items() if name in wanted}
        )

    def to_snapshot(self) -> dict[str, dict[str, str]]:
        """Serialize the map to a JSON-friendly snapshot.

        Returns:
            name -> {"kind": "versioned", "version": ...} or
            name -> {"kind": "local", "source_root": ...}.
        """
        snapshot: dict[str, dict[str, str]] = {}
        for name, info in sorted(self._packages.items()):
            snapshot[name] = _info_to_snapshot(info)
        return snapshot

    def is_superset_of_snapshot(self, snapshot: Mapping[str, Mapping[str, Any]]) -> bool:
        """Check that every snapshot entry is still described the same way.

        A versioned entry must still be versioned at the same version; a
        local entry must still be local with the same source root.

        Args:
            snapshot: Output of to_snapshot() from an earlier map.

        Returns:
            True if this map agrees with every entry of the snapshot.
        """
        for name, recorded in snapshot.items():
            info = self._packages.get(name)
            if info is None:
                return False
            if _info_to_snapshot(info) != dict(recorded):
                return False
        return True


def _info_to_snapshot(info: PackageInfo) -> dict[str, str]:
    match info:
        case VersionedPackageInfo(version=version):
            return {"kind": PackageKind.VERSIONED.value, "version": version}
        case LocalPackageInfo(source=source):
            return {
                "kind": PackageKind.LOCAL.value,
                "source_root": str(source.source_root),
            }
    raise TypeError(f"Unknown package info type: {type(info).__name__}")


__all__ = ["PackageMap"]
