"""Package map file loading.

This module provides helpers for loading package maps from YAML/JSON files
and turning the validated schema into a PackageMap.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from pkgcache.packages.package_map import PackageMap
from pkgcache.packages.schema import PackageMapSchema
from pkgcache.packages.source import DirectorySource
from pkgcache.types import LocalPackageInfo, PackageInfo, VersionedPackageInfo


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML content as a dictionary.

    Raises:
        FileNotFoundError: If the file does not exist.
        yaml.YAMLError: If the file is not valid YAML.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a YAML mapping, got {type(data).__name__}")
    return data


def load_json(path: Path) -> dict[str, Any]:
    """Load a JSON file and return its contents as a dict.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
    """
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object, got {type(data).__name__}")
    return data


def schema_to_package_map(schema: PackageMapSchema, base_path: Path) -> PackageMap:
    """Build a PackageMap from a validated schema.

    Args:
        schema: Validated package map schema.
        base_path: Directory that relative source paths are resolved against.

    Returns:
        PackageMap in file order.
    """
    packages: dict[str, PackageInfo] = {}
    for name, entry in schema.packages.items():
        if entry.version is not None:
            packages[name] = VersionedPackageInfo(version=entry.version)
        else:
            assert entry.path is not None
            source_root = (base_path / entry.path).resolve()
            packages[name] = LocalPackageInfo(
                source=DirectorySource(
                    name=name,
                    source_root=source_root,
                    build_first=tuple(entry.build_first),
                )
            )
    return PackageMap(packages)


def load_package_map(path: Path) -> PackageMap:
    """Load and validate a package map from a file (YAML or JSON).

    File format is determined by extension (.yaml, .yml for YAML,
    .json for JSON).

    Args:
        path: Path to the package map file.

    Returns:
        PackageMap with local sources resolved relative to the file.

    Raises:
        ValueError: If file extension is not supported.
        FileNotFoundError: If the file does not exist.
        pydantic.ValidationError: If data does not match schema.
    """
    suffix = path.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = load_yaml(path)
    elif suffix == ".json":
        data = load_json(path)
    else:
        raise ValueError(
            f"Unsupported file extension '{suffix}'. Use .yaml, .yml, or .json"
        )
    schema = PackageMapSchema.model_validate(data)
    return schema_to_package_map(schema, path.resolve().parent)


__all__ = [
    "load_json",
    "load_package_map",
    "load_yaml",
    "schema_to_package_map",
]
