from __future__ import annotations

from typing import Annotated

import typer

from lanfuse.config import (
    Settings,
    data_dir_from_settings,
    render_settings_toml,
    update_scanning,
    write_settings,
)

from .common import load_settings_or_exit, resolve_config_path_or_exit

app = typer.Typer(no_args_is_help=True, help="Show or edit the lanfuse configuration")


@app.command("show")
def show_config() -> None:
    settings = load_settings_or_exit()
    path, exists = resolve_config_path_or_exit(allow_missing=True)

    typer.echo(f"Config source: {path if exists else 'defaults'}")
    typer.echo(f"Data directory: {data_dir_from_settings(settings)}")
    typer.echo(render_settings_toml(settings))


@app.command("init")
def init_config(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite existing config"),
    ] = False,
) -> None:
    path, exists = resolve_config_path_or_exit(allow_missing=True)
    if exists and not force:
        typer.echo(f"Config already exists at {path}")
        return

    write_settings(Settings(), path)
    typer.echo(f"Wrote default config to {path}")


@app.command("set")
def set_scanning(
    key: Annotated[str, typer.Argument(help="[scanning] key, e.g. default_subnet")],
    value: Annotated[str, typer.Argument(help="New value")],
) -> None:
    """Change one scanning setting and write the config file."""
    settings = load_settings_or_exit()
    path, _ = resolve_config_path_or_exit(allow_missing=True)
    try:
        updated = update_scanning(settings, key, value)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc

    write_settings(updated, path)
    typer.echo(f"{key} = {getattr(updated.scanning, key)}")
