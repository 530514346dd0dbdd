"""Command line tooling for configuration inspection and field provisioning.

Commands:
- ``indexbridge config print-merged``: merged configuration (file, env, overrides)
- ``indexbridge config validate``: validate a configuration file
- ``indexbridge config export-schema``: write the JSON Schema for tooling
- ``indexbridge config defaults``: default configuration values
- ``indexbridge config show SECTION``: one configuration section
- ``indexbridge fields ensure-id``: provision the back-reference field

Printed configuration always has the API key masked.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .backend import SearchBackend
from .config import IndexBridgeConfig, export_config_schema, load_config
from .errors import IndexBridgeError
from .logging_utils import setup_logging

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="IndexBridge configuration and schema tooling", no_args_is_help=True)
config_app = typer.Typer(help="Configuration inspection and validation", no_args_is_help=True)
fields_app = typer.Typer(help="Remote field schema provisioning", no_args_is_help=True)
app.add_typer(config_app, name="config")
app.add_typer(fields_app, name="fields")

ConfigOption = typer.Option(None, "--config", "-c", help="Config file path (YAML/JSON)")


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    setup_logging(level=log_level)


@config_app.command("print-merged")
def cmd_config_print_merged(config_file: Optional[str] = ConfigOption) -> None:
    """Print merged configuration after file, environment and override precedence.

    Example:
        indexbridge config print-merged -c indexbridge.yaml
    """
    try:
        cfg = load_config(config_file)
    except (OSError, ValueError) as exc:
        typer.secho(f"Error loading config: {exc}", fg="red", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(cfg.redacted_dump(), indent=2))


@config_app.command("validate")
def cmd_config_validate(config_file: Optional[str] = ConfigOption) -> None:
    """Validate configuration; exit code 0 if valid, 1 if invalid."""
    try:
        cfg = load_config(config_file)
    except (OSError, ValueError) as exc:
        typer.secho("Config validation failed:", fg="red", err=True)
        typer.secho(f"   {exc}", fg="red", err=True)
        raise typer.Exit(1)
    typer.secho("Config is valid", fg="green")
    typer.echo(f"   Config hash: {cfg.config_hash()[:16]}...")


@config_app.command("export-schema")
def cmd_config_export_schema(
    output_file: str = typer.Option(
        "indexbridge-schema.json", "--output", "-o", help="Output file path for JSON Schema"
    ),
) -> None:
    """Export the configuration JSON Schema for IDE and validator integration."""
    try:
        Path(output_file).write_text(
            json.dumps(export_config_schema(), indent=2), encoding="utf-8"
        )
    except OSError as exc:
        typer.secho(f"Error exporting schema: {exc}", fg="red", err=True)
        raise typer.Exit(1)
    typer.secho(f"Schema exported to {output_file}", fg="green")


@config_app.command("defaults")
def cmd_config_defaults() -> None:
    """Show default configuration values."""
    typer.echo(json.dumps(IndexBridgeConfig().redacted_dump(), indent=2))


@config_app.command("show")
def cmd_config_show(
    section: str = typer.Argument(..., help="Section: remote, endpoints, http, upload, index, search"),
    config_file: Optional[str] = ConfigOption,
) -> None:
    """Display one configuration section."""
    try:
        output = load_config(config_file).redacted_dump()
    except (OSError, ValueError) as exc:
        typer.secho(f"Error loading config: {exc}", fg="red", err=True)
        raise typer.Exit(1)
    if section not in output:
        typer.secho(f"Unknown section: {section}", fg="red", err=True)
        typer.secho(f"   Valid sections: {', '.join(output)}", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(output[section], indent=2))


@fields_app.command("ensure-id")
def cmd_fields_ensure_id(config_file: Optional[str] = ConfigOption) -> None:
    """Create the back-reference id field in the remote schema if missing."""
    try:
        with SearchBackend(load_config(config_file)) as backend:
            created = backend.ensure_id_field()
            field_name = backend.config.index.id_field
    except IndexBridgeError as exc:
        LOGGER.error("ensure-id failed", extra={"event": {"status": exc.status}})
        typer.secho(f"Field provisioning failed: {exc}", fg="red", err=True)
        raise typer.Exit(1)
    except (OSError, ValueError) as exc:
        typer.secho(f"Error loading config: {exc}", fg="red", err=True)
        raise typer.Exit(1)
    if created:
        typer.secho(f"Created field {field_name}", fg="green")
    else:
        typer.echo(f"Field {field_name} already exists")


__all__ = ["app", "config_app", "fields_app"]
