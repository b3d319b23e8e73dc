"""Shared fixtures for pkgcache tests."""

from pathlib import Path

import pytest

from pkgcache.builds.artifacts import Artifact, save_artifact
from pkgcache.capture import Capture
from pkgcache.compiler import CompileResult
from pkgcache.packages.source import DirectorySource
from pkgcache.types import LocalPackageInfo
from pkgcache.watch import WatchSet, read_and_watch_file


def local(name: str, root: Path, build_first: tuple[str, ...] = ()) -> LocalPackageInfo:
    """Create a LocalPackageInfo backed by a DirectorySource."""
    return LocalPackageInfo(
        source=DirectorySource(name=name, source_root=root, build_first=build_first)
    )


class FakeCompiler:
    """Compiler double that records calls and can be told to fail.

    Attributes:
        calls: Package names compiled, in order.
        failing: Packages whose compilation reports an error.
        plugin_providers: Package -> plugin provider names to report.
        watched_files: Package -> files recorded in the unit watch set.
    """

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.failing: set[str] = set()
        self.plugin_providers: dict[str, list[str]] = {}
        self.watched_files: dict[str, list[Path]] = {}

    def compile(self, source, *, package_map, cache, capture) -> CompileResult:
        self.calls.append(source.name)
        if source.name in self.failing:
            capture.error(f"syntax error in {source.name}")

        watch_set = WatchSet()
        for path in self.watched_files.get(source.name, []):
            read_and_watch_file(watch_set, path)

        providers = self.plugin_providers.get(source.name, [])
        for provider in providers:
            cache.get_built_artifact(provider)

        artifact = Artifact(
            name=source.name,
            units={"main": {"index.txt": f"compiled {source.name}"}},
            unit_watch_sets={"main": watch_set},
        )
        return CompileResult(
            artifact=artifact, plugin_provider_package_names=list(providers)
        )


@pytest.fixture
def compiler() -> FakeCompiler:
    """Create a fresh fake compiler."""
    return FakeCompiler()


@pytest.fixture
def capture():
    """Yield an active capture."""
    c = Capture()
    with c.scope():
        yield c


@pytest.fixture
def store_dir(tmp_path: Path) -> Path:
    """Create a versioned package store holding tool@1.0 and tool@2.0."""
    root = tmp_path / "store"
    for version in ("1.0", "2.0"):
        save_artifact(
            Artifact(name="tool", units={"main": {"tool.txt": f"tool {version}"}}),
            root / "tool" / version,
        )
    return root
