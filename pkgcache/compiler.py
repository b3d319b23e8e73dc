"""Package compilers.

The build cache only depends on the Compiler protocol. SourceTreeCompiler is
the reference implementation used by the CLI: it packs a local package's
source files into a single "main" unit and records what it read, so that the
cache can later tell whether a rebuild is needed.

Files under a top-level plugins/ directory are build-time plugins: the
package advertises them by name and their inputs are watched separately.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pkgcache.builds.artifacts import Artifact
from pkgcache.builds.cache import PackageNotBuiltError
from pkgcache.watch import WatchSet, read_and_watch_file, read_directory

if TYPE_CHECKING:
    from pkgcache.capture import Capture
    from pkgcache.packages.package_map import PackageMap
    from pkgcache.types import PackageSource

logger = logging.getLogger(__name__)

MAIN_UNIT = "main"
PLUGINS_DIRNAME = "plugins"
HIDDEN_PATTERN = r"^\."


class BuiltArtifactSource(Protocol):
    """Read-only access to packages already built in this session."""

    def get_built_artifact(self, name: str) -> Artifact:
        ...


@dataclass
class CompileResult:
    """Result of compiling a local package.

    Attributes:
        artifact: The compiled artifact.
        plugin_provider_package_names: Packages whose plugins were used.
    """

    artifact: Artifact
    plugin_provider_package_names: list[str] = field(default_factory=list)


class Compiler(Protocol):
    """Turns a local package's source into an artifact."""

    def compile(
        self,
        source: PackageSource,
        *,
        package_map: PackageMap,
        cache: BuiltArtifactSource,
        capture: Capture,
    ) -> CompileResult:
        ...


def _is_hidden(relative: Path) -> bool:
    return any(part.startswith(".") for part in relative.parts)


class SourceTreeCompiler:
    """Packs the files of a source directory into an artifact.

    Args:
        include_patterns: Glob patterns, relative to the source root, of the
            files to collect.
    """

    def __init__(self, include_patterns: list[str] | None = None) -> None:
        self.include_patterns = include_patterns or ["**/*"]

    def _collect_files(self, root: Path) -> list[Path]:
        found: set[Path] = set()
        for pattern in self.include_patterns:
            for path in root.glob(pattern):
                if path.is_file() and not _is_hidden(path.relative_to(root)):
                    found.add(path)
        return sorted(found)

    def _watch_directories(self, root: Path, watch_set: WatchSet) -> None:
        directories = [root] + sorted(
            p
            for p in root.rglob("*")
            if p.is_dir() and not _is_hidden(p.relative_to(root))
        )
        for directory in directories:
            watch_set.add_directory(
                directory,
                exclude=[HIDDEN_PATTERN],
                contents=read_directory(directory, [], [HIDDEN_PATTERN]),
            )

    def compile(
        self,
        source: PackageSource,
        *,
        package_map: PackageMap,
        cache: BuiltArtifactSource,
        capture: Capture,
    ) -> CompileResult:
        """Compile a local package.

        Diagnostics are recorded in the capture; the caller decides what to
        do with a result produced while errors were reported.
        """
        root = Path(source.source_root)
        plugin_providers: list[str] = []

        for dep in source.get_packages_to_build_first(package_map):
            try:
                provider = cache.get_built_artifact(dep)
            except PackageNotBuiltError:
                capture.error(
                    f"package {dep} is not built yet; cannot use its plugins"
                )
                continue
            logger.debug(
                "Using plugins %s from package %s", provider.plugins or "[]", dep
            )
            plugin_providers.append(dep)

        unit_watch_set = WatchSet()
        plugin_watch_set = WatchSet()

        if not root.is_dir():
            capture.error(f"source directory {root} does not exist")
            return CompileResult(artifact=Artifact(name=source.name))

        files: dict[str, str] = {}
        plugins: list[str] = []
        for path in self._collect_files(root):
            relative = path.relative_to(root)
            is_plugin = relative.parts[0] == PLUGINS_DIRNAME
            data = read_and_watch_file(
                plugin_watch_set if is_plugin else unit_watch_set, path
            )
            if data is None:
                capture.error("file disappeared while compiling", path=str(path))
                continue
            try:
                text = data.decode("utf-8")
            except UnicodeDecodeError:
                capture.error("file is not valid UTF-8", path=str(path))
                continue
            if is_plugin:
                plugins.append(relative.stem)
            else:
                files[relative.as_posix()] = text

        self._watch_directories(root, unit_watch_set)

        artifact = Artifact(
            name=source.name,
            units={MAIN_UNIT: files},
            plugins=sorted(set(plugins)),
            unit_watch_sets={MAIN_UNIT: unit_watch_set},
            plugin_watch_set=plugin_watch_set,
        )
        logger.info(
            "Compiled package %s: %d file(s), %d plugin(s)",
            source.name,
            len(files),
            len(artifact.plugins),
        )
        return CompileResult(
            artifact=artifact,
            plugin_provider_package_names=plugin_providers,
        )


__all__ = [
    "MAIN_UNIT",
    "BuiltArtifactSource",
    "CompileResult",
    "Compiler",
    "SourceTreeCompiler",
]
