"""
devboot — CLI entrypoint.

Usage:
    devboot --help
    devboot check-compatibility
    devboot install --shell zsh
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from devboot import __version__
from devboot.core.errors import DevbootError
from devboot.core.models.package import DisplayMode
from devboot.core.observability.logging_config import (
    LOG_FILE_ENV,
    LOG_FILE_LEVEL_ENV,
    LOG_LEVEL_ENV,
    resolve_level,
    set_display_mode,
    setup_logging,
)
from devboot.ui.cli.context import get_host, get_settings


@click.group()
@click.version_option(version=__version__, prog_name="devboot")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to devboot.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """devboot — bootstrap a developer environment on Linux and macOS."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(verbose, quiet, debug, os.environ.get(LOG_LEVEL_ENV)),
        log_file=os.environ.get(LOG_FILE_ENV),
        log_file_level=os.environ.get(LOG_FILE_LEVEL_ENV),
        quiet_third_party=not debug,
    )


# ── Compatibility ───────────────────────────────────────────────


@cli.command("check-compatibility")
@click.option(
    "--compat-file",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Compatibility matrix to use instead of the embedded one.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def check_compatibility(ctx: click.Context, compat_file: str | None, as_json: bool) -> None:
    """Check whether this system can be bootstrapped."""
    from devboot.core.use_cases.bootstrap import check_host

    settings = get_settings(ctx)
    if compat_file:
        settings = settings.model_copy(update={"compatibility_file": compat_file})

    report = check_host(settings, get_host(ctx))

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
        if not report.compatible:
            sys.exit(1)
        return

    info = report.system_info
    click.secho("\n🖥  System", fg="cyan", bold=True)
    click.echo(f"   OS:           {info.os_name or '-'}")
    click.echo(f"   Distribution: {info.distro_name or '-'} {info.distro_version}")
    click.echo(f"   Architecture: {info.arch or '-'}")

    if info.prerequisites.details:
        click.echo()
        click.secho("   Prerequisites:", fg="white", bold=True)
        for name, detail in info.prerequisites.details.items():
            icon = "✅" if detail.available else "❌"
            click.echo(f"     {icon} {name} ({detail.command})")
            if not detail.available and detail.install_hint:
                click.echo(f"        → {detail.install_hint}")
    click.echo()

    if not report.compatible:
        click.secho(f"❌ {report.error}", fg="red")
        sys.exit(1)
    click.secho("✅ System is compatible", fg="green")


# ── Install ─────────────────────────────────────────────────────

_STEP_ICONS = {"ok": "✅", "skipped": "⏭️ ", "failed": "❌"}


@cli.command()
@click.option("--shell", "shell_name", default=None, help="Shell to install and set as default (default: zsh).")
@click.option("--gpg/--no-gpg", "install_gpg", default=None, help="Install the GPG client.")
@click.option("--gpg-key/--no-gpg-key", "create_gpg_key", default=None,
              help="Create a GPG key pair when none exists.")
@click.option("--shell-with-brew/--no-shell-with-brew", "install_shell_with_brew", default=None,
              help="Install the shell with Homebrew even on Linux.")
@click.option("--plain", "display_mode", flag_value=DisplayMode.PLAIN.value,
              help="Hide child output, print plain status lines.")
@click.option("--passthrough", "display_mode", flag_value=DisplayMode.VERBOSE.value,
              help="Stream package-manager output to the terminal.")
@click.option("--brew-path", default=None, help="Path to the brew binary.")
@click.option("--install-brew/--no-install-brew", "install_brew", default=None,
              help="Install Homebrew when a step needs it and it is missing.")
@click.option("--multi-user-system", "multi_user_system", is_flag=True, default=None,
              help="Install Homebrew as a shared linuxbrew user (Linux only).")
@click.option(
    "--package-map",
    "package_map_file",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Package map to use instead of the embedded one.",
)
@click.option(
    "--compat-file",
    type=click.Path(exists=False, dir_okay=False),
    default=None,
    help="Compatibility matrix to use instead of the embedded one.",
)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    shell_name: str | None,
    install_gpg: bool | None,
    create_gpg_key: bool | None,
    install_shell_with_brew: bool | None,
    display_mode: str | None,
    brew_path: str | None,
    install_brew: bool | None,
    multi_user_system: bool | None,
    package_map_file: str | None,
    compat_file: str | None,
    as_json: bool,
) -> None:
    """Install Homebrew (when needed), the shell, GPG and configured packages."""
    from devboot.core.use_cases.bootstrap import run_bootstrap

    overrides = {
        "shell": shell_name,
        "install_gpg": install_gpg,
        "create_gpg_key": create_gpg_key,
        "install_shell_with_brew": install_shell_with_brew,
        "display_mode": DisplayMode(display_mode) if display_mode else None,
        "brew_path": brew_path,
        "install_brew": install_brew,
        "multi_user_system": multi_user_system or None,
        "package_map_file": package_map_file,
        "compatibility_file": compat_file,
    }
    settings = get_settings(ctx).model_copy(
        update={k: v for k, v in overrides.items() if v is not None},
    )
    set_display_mode(settings.display_mode)

    quiet = ctx.obj.get("quiet", False) or as_json

    def on_step(step) -> None:
        if quiet:
            return
        icon = _STEP_ICONS.get(step.status, "•")
        detail = f" — {step.detail}" if step.detail else ""
        click.echo(f"   {icon} {step.name}{detail}")

    if not quiet:
        click.secho(f"🚀 Bootstrapping ({settings.shell}, {settings.display_mode.value})", fg="cyan", bold=True)

    try:
        result = run_bootstrap(settings, get_host(ctx), on_step=on_step)
    except KeyboardInterrupt:
        click.secho("\n❌ Interrupted", fg="red", err=True)
        sys.exit(130)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
    if not result.ok:
        if not as_json:
            click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)
    if not quiet:
        click.secho(f"✅ Done ({result.package_manager})", fg="green")


# ── Escalation ──────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def escalation(ctx: click.Context, as_json: bool) -> None:
    """Show available privilege escalation methods."""
    escalator = get_host(ctx).escalator
    try:
        is_root = escalator.is_running_as_root()
        methods = escalator.available_methods()
    except DevbootError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({"root": is_root, "methods": [m.value for m in methods]}, indent=2))
        return

    click.secho("🔑 Privilege escalation", fg="cyan", bold=True)
    click.echo(f"   Running as root: {'yes' if is_root else 'no'}")
    for method in methods:
        click.echo(f"     • {method.value}")


# ── Register command groups ─────────────────────────────────────

from devboot.ui.cli.packages import packages  # noqa: E402

cli.add_command(packages)


if __name__ == "__main__":
    cli()
