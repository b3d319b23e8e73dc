"""Built package artifacts and their on-disk form.

This module handles:
- The in-memory Artifact produced by compiling or loading a package
- Saving an artifact (and optionally its build info) to a package directory
- Loading an artifact from a package directory
- Reading the build-info sidecar used to decide staleness

Package directory layout:
    <dir>/artifact.json            compiled units and plugin names
    <dir>/package-buildinfo.json   build inputs recorded at build time
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pkgcache.watch import WatchSet

if TYPE_CHECKING:
    from pkgcache.packages.package_map import PackageMap

logger = logging.getLogger(__name__)

ARTIFACT_FILENAME = "artifact.json"
BUILD_INFO_FILENAME = "package-buildinfo.json"

# Bump when the on-disk format changes; older directories are then rebuilt
ARTIFACT_FORMAT_VERSION = "1"
BUILD_INFO_FORMAT_VERSION = "1"


class ArtifactLoadError(Exception):
    """Raised when an artifact cannot be loaded from disk."""

    def __init__(
        self, name: str, path: Path, reason: str, code: str = "artifact_load_error"
    ) -> None:
        super().__init__(f"Cannot load package {name} from {path}: {reason}")
        self.name = name
        self.path = path
        self.code = code


class ArtifactManifest(BaseModel):
    """Schema of artifact.json."""

    model_config = ConfigDict(extra="forbid")

    format_version: str = ARTIFACT_FORMAT_VERSION
    name: str = Field(min_length=1)
    units: dict[str, dict[str, str]] = Field(default_factory=dict)
    plugins: list[str] = Field(default_factory=list)


class BuildInfo(BaseModel):
    """Build inputs recorded for a local package (package-buildinfo.json).

    Attributes:
        format_version: Build-info format version.
        built_at: When the package was built (informational).
        plugin_provider_package_map: Snapshot of the packages that provided
            build-time plugins, as produced by PackageMap.to_snapshot().
        unit_dependencies: Unit name -> watch set of that unit's inputs.
        plugin_dependencies: Watch set of the package's plugin inputs.
    """

    model_config = ConfigDict(extra="forbid")

    format_version: str = BUILD_INFO_FORMAT_VERSION
    built_at: str | None = None
    plugin_provider_package_map: dict[str, dict[str, str]] = Field(
        default_factory=dict
    )
    unit_dependencies: dict[str, dict[str, Any]] = Field(default_factory=dict)
    plugin_dependencies: dict[str, Any] = Field(default_factory=dict)

    def unit_watch_sets(self) -> dict[str, WatchSet]:
        return {
            unit: WatchSet.from_dict(data)
            for unit, data in self.unit_dependencies.items()
        }

    def plugin_watch_set(self) -> WatchSet:
        return WatchSet.from_dict(self.plugin_dependencies)


@dataclass
class Artifact:
    """The built, loadable representation of one package.

    Attributes:
        name: Package name.
        units: Compiled units: unit name -> relative path -> content.
        plugins: Names of build-time plugins this package provides.
        unit_watch_sets: Inputs each unit was built from.
        plugin_watch_set: Inputs of the package's plugins.
        is_empty: True for placeholder artifacts substituted after a failed build.
    """

    name: str
    units: dict[str, dict[str, str]] = field(default_factory=dict)
    plugins: list[str] = field(default_factory=list)
    unit_watch_sets: dict[str, WatchSet] = field(default_factory=dict)
    plugin_watch_set: WatchSet = field(default_factory=WatchSet)
    is_empty: bool = False

    def __repr__(self) -> str:
        return (
            f"<Artifact(name='{self.name}', units={sorted(self.units)}, "
            f"empty={self.is_empty})>"
        )

    def to_manifest(self) -> ArtifactManifest:
        return ArtifactManifest(name=self.name, units=self.units, plugins=self.plugins)

    def make_build_info(
        self, plugin_provider_map: PackageMap | None = None
    ) -> BuildInfo:
        """Create the build info describing this artifact's inputs."""
        return BuildInfo(
            built_at=datetime.now(timezone.utc).isoformat(),
            plugin_provider_package_map=(
                plugin_provider_map.to_snapshot() if plugin_provider_map else {}
            ),
            unit_dependencies={
                unit: ws.to_dict() for unit, ws in sorted(self.unit_watch_sets.items())
            },
            plugin_dependencies=self.plugin_watch_set.to_dict(),
        )


def empty_artifact(name: str) -> Artifact:
    """Create an empty placeholder artifact for a package."""
    return Artifact(name=name, is_empty=True)


def read_build_info(path: Path) -> BuildInfo | None:
    """Read a build-info file.

    A missing, unreadable or outdated file is not an error: it only means
    the package has to be rebuilt.

    Args:
        path: Path to package-buildinfo.json.

    Returns:
        BuildInfo, or None if there is no usable build info.
    """
    try:
        with path.open(encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.debug("No build info at %s", path)
        return None
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable build info %s: %s", path, e)
        return None

    try:
        build_info = BuildInfo.model_validate(data)
    except ValidationError as e:
        logger.warning("Ignoring invalid build info %s: %s", path, e)
        return None

    if build_info.format_version != BUILD_INFO_FORMAT_VERSION:
        logger.info(
            "Ignoring build info %s with format version %s",
            path,
            build_info.format_version,
        )
        return None
    return build_info


def load_artifact(
    name: str,
    path: Path,
    build_info: BuildInfo | None = None,
) -> Artifact:
    """Load an artifact from a package directory.

    Args:
        name: Expected package name.
        path: Package directory.
        build_info: Already-read build info; read from the directory if None.

    Returns:
        Loaded Artifact.

    Raises:
        ArtifactLoadError: If the manifest is missing, invalid, or belongs to
            another package.
    """
    manifest_path = path / ARTIFACT_FILENAME
    try:
        with manifest_path.open(encoding="utf-8") as f:
            manifest = ArtifactManifest.model_validate(json.load(f))
    except FileNotFoundError as e:
        raise ArtifactLoadError(name, path, f"missing {ARTIFACT_FILENAME}") from e
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ArtifactLoadError(name, path, str(e)) from e

    if manifest.format_version != ARTIFACT_FORMAT_VERSION:
        raise ArtifactLoadError(
            name, path, f"unsupported format version {manifest.format_version}"
        )
    if manifest.name != name:
        raise ArtifactLoadError(name, path, f"directory holds {manifest.name}")

    if build_info is None:
        build_info = read_build_info(path / BUILD_INFO_FILENAME)

    artifact = Artifact(
        name=manifest.name,
        units=manifest.units,
        plugins=manifest.plugins,
    )
    if build_info is not None:
        artifact.unit_watch_sets = build_info.unit_watch_sets()
        artifact.plugin_watch_set = build_info.plugin_watch_set()

    logger.debug("Loaded package %s from %s", name, path)
    return artifact


def _write_json(data: dict[str, Any], output_path: Path) -> None:
    with output_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
        f.write("\n")


def save_artifact(
    artifact: Artifact,
    path: Path,
    plugin_provider_map: PackageMap | None = None,
    include_build_info: bool = False,
) -> Path:
    """Save an artifact to a package directory, replacing it atomically.

    The directory is written under a temporary name next to path and then
    renamed into place, so readers never see a partial package.

    Args:
        artifact: Artifact to save.
        path: Package directory.
        plugin_provider_map: Packages that provided plugins to this build.
        include_build_info: Also write package-buildinfo.json.

    Returns:
        The package directory.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{path.name}-new-", dir=path.parent))
    try:
        _write_json(artifact.to_manifest().model_dump(), staging / ARTIFACT_FILENAME)
        if include_build_info:
            build_info = artifact.make_build_info(plugin_provider_map)
            _write_json(build_info.model_dump(), staging / BUILD_INFO_FILENAME)

        if path.exists():
            retired = path.with_name(f".{path.name}-old-{uuid.uuid4().hex[:8]}")
            path.rename(retired)
            staging.rename(path)
            shutil.rmtree(retired, ignore_errors=True)
        else:
            staging.rename(path)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    logger.info("Saved package %s to %s", artifact.name, path)
    return path


__all__ = [
    "ARTIFACT_FILENAME",
    "ARTIFACT_FORMAT_VERSION",
    "BUILD_INFO_FILENAME",
    "BUILD_INFO_FORMAT_VERSION",
    "Artifact",
    "ArtifactLoadError",
    "ArtifactManifest",
    "BuildInfo",
    "empty_artifact",
    "load_artifact",
    "read_build_info",
    "save_artifact",
]
