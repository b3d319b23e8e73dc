"""Thin CLI wrapper for pkgcache.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import json
import logging
import shutil
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, NoReturn

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pkgcache import __version__
from pkgcache.config import Settings, get_settings, print_settings_json

if TYPE_CHECKING:
    from pkgcache.packages.package_map import PackageMap

app = typer.Typer(
    name="pkgcache",
    help="Package build cache - build packages in dependency order, reusing cached builds",
    no_args_is_help=True,
)
console = Console()
logger = logging.getLogger(__name__)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"pkgcache version {__version__}")
        raise typer.Exit()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """Package build cache - build packages in dependency order."""
    _configure_logging("DEBUG" if verbose else get_settings().log_level)


def _effective_settings(
    cache_dir: Path | None,
    store_dir: Path | None,
    no_cache: bool = False,
) -> Settings:
    settings = get_settings()
    updates: dict[str, object] = {}
    if cache_dir is not None:
        updates["cache_dir"] = cache_dir
    if no_cache:
        updates["cache_dir"] = None
    if store_dir is not None:
        updates["store_dir"] = store_dir
    return settings.model_copy(update=updates)


def _load_map_or_exit(map_file: Path) -> "PackageMap":
    from pkgcache.packages.io import load_package_map

    try:
        return load_package_map(map_file)
    except FileNotFoundError:
        console.print(f"[red]Package map not found: {map_file}[/red]")
        raise typer.Exit(code=1) from None
    except (ValueError, ValidationError) as e:
        console.print(f"[red]Invalid package map {map_file}:[/red]")
        console.print(str(e))
        raise typer.Exit(code=1) from None


def _fail(code: str, message: str, json_output: bool) -> NoReturn:
    """Report a fatal build error and exit with code 1."""
    if json_output:
        typer.echo(json.dumps({"success": False, "code": code, "message": message}))
    else:
        console.print(f"[red]Error ({code}): {escape(message)}[/red]")
    raise typer.Exit(code=1)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        typer.echo(print_settings_json(settings))
    else:
        cache_dir_display = (
            str(settings.cache_dir) if settings.cache_dir else "(disabled)"
        )
        store_dir_display = str(settings.store_dir) if settings.store_dir else "(none)"
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Paths:[/bold]")
        console.print(f"  Cache directory:     {cache_dir_display}")
        console.print(f"  Store directory:     {store_dir_display}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Log level:           {settings.log_level}")
        console.print(f"  Lock timeout:        {settings.lock_timeout}")
        console.print(f"  Include patterns:    {', '.join(settings.include_patterns)}")


@app.command()
def build(
    map_file: Annotated[Path, typer.Argument(help="Package map file (YAML or JSON)")],
    roots: Annotated[
        list[str] | None,
        typer.Option("--root", "-r", help="Package to build (can be repeated)"),
    ] = None,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Directory for built local packages"),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Do not read or write the cache directory"),
    ] = False,
    store_dir: Annotated[
        Path | None,
        typer.Option("--store-dir", help="Versioned package store directory"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build packages from a package map.

    Builds every package in the map, or only --root packages and what they
    need. Exits with code 1 if any build errors were reported.
    """
    from pkgcache.builds.artifacts import ArtifactLoadError
    from pkgcache.builds.cache import (
        PackageCache,
        RegistryError,
        UnknownPackageError,
    )
    from pkgcache.builds.store import (
        DirectoryPackageStore,
        NoPackageStoreError,
        PackageNotInStoreError,
    )
    from pkgcache.capture import Capture
    from pkgcache.compiler import SourceTreeCompiler

    settings = _effective_settings(cache_dir, store_dir, no_cache)
    package_map = _load_map_or_exit(map_file)

    cache = PackageCache(
        compiler=SourceTreeCompiler(settings.include_patterns),
        cache_dir=settings.cache_dir,
        package_store=(
            DirectoryPackageStore(settings.store_dir) if settings.store_dir else None
        ),
        lock_timeout=settings.lock_timeout,
    )
    capture = Capture()
    try:
        with capture.scope():
            cache.build_packages(capture, package_map, roots)
    except (
        UnknownPackageError,
        NoPackageStoreError,
        PackageNotInStoreError,
        ArtifactLoadError,
        RegistryError,
    ) as e:
        _fail(e.code, str(e), json_output)
    except TimeoutError as e:
        _fail("lock_timeout", str(e), json_output)

    names = cache.built_package_names()
    if json_output:
        output = {
            "success": not capture.has_messages(),
            "packages": [
                {
                    "name": name,
                    "empty": cache.get_built_artifact(name).is_empty,
                }
                for name in names
            ],
            "messages": [
                {"job": list(m.job), "message": m.message, "path": m.path}
                for m in capture.messages
            ],
        }
        typer.echo(json.dumps(output, indent=2))
    else:
        console.print(f"[bold]Built {len(names)} package(s):[/bold]")
        for name in names:
            if cache.get_built_artifact(name).is_empty:
                console.print(f"  [red]✗ {name} (empty)[/red]")
            else:
                console.print(f"  [green]✓ {name}[/green]")
        if capture.has_messages():
            console.print()
            console.print("[bold red]Errors:[/bold red]")
            console.print(capture.format_messages(), markup=False)

    if capture.has_messages():
        raise typer.Exit(code=1)


@app.command()
def status(
    map_file: Annotated[Path, typer.Argument(help="Package map file (YAML or JSON)")],
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Directory for built local packages"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show which local packages would be loaded from cache.

    Nothing is compiled; freshness is judged from recorded build info and
    whether the cached artifact still loads.
    """
    from pkgcache.builds.artifacts import ArtifactLoadError
    from pkgcache.builds.freshness import is_up_to_date
    from pkgcache.builds.store import ArtifactStore
    from pkgcache.types import LocalPackageInfo

    settings = _effective_settings(cache_dir, None)
    package_map = _load_map_or_exit(map_file)
    # Read-only: never create the cache directory here
    existing_cache_dir = (
        settings.cache_dir
        if settings.cache_dir is not None and settings.cache_dir.is_dir()
        else None
    )
    store = ArtifactStore(cache_dir=existing_cache_dir)

    results: dict[str, str] = {}
    for name, info in package_map.items():
        if not isinstance(info, LocalPackageInfo):
            results[name] = "versioned"
            continue
        build_info = store.read_build_info(name)
        if build_info is None:
            results[name] = "missing"
        elif not is_up_to_date(build_info, package_map):
            results[name] = "stale"
        else:
            # build recompiles when the cached artifact cannot be loaded
            try:
                store.load_local(name, build_info)
            except ArtifactLoadError as e:
                logger.debug("Cached package %s unusable: %s", name, e)
                results[name] = "stale"
            else:
                results[name] = "fresh"

    if json_output:
        typer.echo(json.dumps(results, indent=2))
        return

    colors = {"fresh": "green", "stale": "yellow", "missing": "red", "versioned": "blue"}
    for name, state in results.items():
        console.print(f"  [{colors[state]}]{state:<9}[/{colors[state]}] {name}")


@app.command()
def clean(
    names: Annotated[
        list[str] | None,
        typer.Argument(help="Packages to remove (all cached packages if omitted)"),
    ] = None,
    cache_dir: Annotated[
        Path | None,
        typer.Option("--cache-dir", help="Directory for built local packages"),
    ] = None,
) -> None:
    """Remove cached local packages.

    Only package directories directly inside the cache directory are removed.
    Exits with code 1 without removing anything if a name is not a valid
    package name.
    """
    from pkgcache.packages.schema import PACKAGE_NAME_PATTERN

    if names:
        invalid = [name for name in names if not PACKAGE_NAME_PATTERN.match(name)]
        if invalid:
            console.print(
                f"[red]Invalid package name(s): {escape(', '.join(invalid))}[/red]"
            )
            raise typer.Exit(code=1)

    settings = _effective_settings(cache_dir, None)
    if settings.cache_dir is None or not settings.cache_dir.is_dir():
        console.print("[yellow]No cache directory[/yellow]")
        return

    cache_root = settings.cache_dir.resolve()
    if names:
        targets = [settings.cache_dir / name for name in names]
    else:
        targets = sorted(
            p
            for p in settings.cache_dir.iterdir()
            if p.is_dir() and not p.name.startswith(".")
        )

    removed = 0
    for target in targets:
        if target.resolve().parent != cache_root:
            console.print(
                f"  [yellow]Skipping {escape(target.name)}: not in cache[/yellow]"
            )
        elif target.is_dir():
            shutil.rmtree(target)
            removed += 1
            console.print(f"  Removed {target.name}")
        else:
            console.print(f"  [yellow]Not cached: {target.name}[/yellow]")
    console.print(f"[bold]Removed {removed} package(s)[/bold]")


if __name__ == "__main__":
    app()
