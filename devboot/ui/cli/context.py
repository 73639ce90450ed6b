"""
Shared CLI plumbing — settings and host collaborators from ``ctx.obj``.

Tests inject a ``Host`` built from mocks through ``obj={"host": ...}``.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from devboot.core.errors import SettingsError
from devboot.core.models.settings import BootstrapSettings
from devboot.core.use_cases.bootstrap import Host


def get_host(ctx: click.Context) -> Host:
    host = ctx.obj.get("host")
    if host is None:
        host = Host.default()
        ctx.obj["host"] = host
    return host


def get_settings(ctx: click.Context) -> BootstrapSettings:
    """devboot.yml settings (``--config`` or auto-detected); exits 1 if invalid."""
    settings = ctx.obj.get("settings")
    if settings is not None:
        return settings

    from devboot.core.config.loader import load_settings

    config_path: Path | None = ctx.obj.get("config_path")
    try:
        settings = load_settings(config_path)
    except SettingsError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    ctx.obj["settings"] = settings
    return settings
