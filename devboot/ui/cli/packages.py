"""
CLI commands for the host package manager.

Thin wrappers over the backend ``select_package_manager`` picks, plus
package-map lookups for that backend.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from devboot.core.errors import DevbootError
from devboot.ui.cli.context import get_host, get_settings


def _backend(ctx: click.Context):
    from devboot.core.use_cases.bootstrap import select_package_manager

    host = get_host(ctx)
    settings = get_settings(ctx)
    try:
        return select_package_manager(host.detector.detect_system(), settings, host)
    except DevbootError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


@click.group()
def packages() -> None:
    """Packages — inspect the system package manager."""


@packages.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_packages(ctx: click.Context, as_json: bool) -> None:
    """List installed packages."""
    backend = _backend(ctx)
    try:
        installed = backend.list_installed()
    except DevbootError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(
            {"manager": backend.name, "packages": [{"name": p.name, "version": p.version} for p in installed]},
            indent=2,
        ))
        return

    click.secho(f"📦 {backend.name}: {len(installed)} packages installed", fg="cyan", bold=True)
    for package in installed:
        click.echo(f"   {package.name} {package.version}")


@packages.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, as_json: bool) -> None:
    """Show the package manager name and version."""
    backend = _backend(ctx)
    try:
        manager_info = backend.info()
    except DevbootError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(manager_info.to_dict(), indent=2))
        return

    click.echo(f"{manager_info.name} {manager_info.version}")


@packages.command()
@click.argument("code")
@click.option("--version", "constraint", default=None, help="Version constraint, e.g. '>=2.30'.")
@click.option(
    "--package-map",
    "package_map_file",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Package map to use instead of the embedded one.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resolve(
    ctx: click.Context,
    code: str,
    constraint: str | None,
    package_map_file: str | None,
    as_json: bool,
) -> None:
    """Show what the package manager calls a generic package CODE."""
    from devboot.core.services.package_resolver import PackageResolver, load_package_mappings

    backend = _backend(ctx)
    host = get_host(ctx)
    map_file = package_map_file or get_settings(ctx).package_map_file
    try:
        mappings = load_package_mappings(Path(map_file) if map_file else None)
        request = PackageResolver(mappings, backend.name, host.detector.detect_system()).resolve(code, constraint)
    except DevbootError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    constraints = str(request.version_constraints) if request.version_constraints else None
    if as_json:
        click.echo(json.dumps(
            {
                "code": code,
                "manager": backend.name,
                "name": request.name,
                "type": request.type,
                "version_constraints": constraints,
            },
            indent=2,
        ))
        return

    suffix = f" ({request.type})" if request.type else ""
    click.echo(f"{code} → {request.name}{suffix} [{backend.name}]")
    if constraints:
        click.echo(f"   version: {constraints}")
