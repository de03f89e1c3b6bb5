# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Config command for jobrelay.

Provides configuration validation.
"""

import typer

from jobrelay.config import get_config_path, load_config
from jobrelay.resolver import ConfigError

app = typer.Typer(help="Manage and validate configuration")


@app.command()
def validate(
    config_path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """
    Validate configuration file.

    Checks that the config file exists, is valid YAML and declares at least
    one usable Jenkins instance.
    """
    typer.echo(f"Validating configuration {get_config_path(config_path)}...")
    typer.echo()

    try:
        config = load_config(config_path)
    except ConfigError as e:
        typer.echo(f"Validation failed: {e}", err=True)
        raise typer.Exit(2)

    typer.echo("Configuration structure is valid")
    typer.echo()
    for idx, instance in enumerate(config.instances):
        default = " (default)" if idx == 0 else ""
        typer.echo(f"Instance: {instance.name}{default} {instance.url} ({len(instance.jobs)} job override(s))")
    if config.job_file:
        typer.echo(f"Job list: {config.job_file}")
    typer.echo()
    typer.echo("Configuration validation complete!")
