# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for jobrelay.

Dumb trigger: loads config and job list, executes, renders the report.
Exit codes: 0 all builds succeeded, 1 some build did not, 2 config error.
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple

import typer

from jobrelay import __version__
from jobrelay.config import load_config
from jobrelay.executor import execute
from jobrelay.joblist import JobListError, read_job_list
from jobrelay.report import format_result, render_report
from jobrelay.resolver import ConfigError, resolve_all
from jobrelay.schemas import JobEntry, RelayConfig

EXIT_CONFIG_ERROR = 2


app = typer.Typer(
    name="jobrelay",
    help="Trigger Jenkins jobs from a job list and wait for the results",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Trigger Jenkins jobs from a job list and wait for the results."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load_inputs(config_path: Optional[str], job_file: Optional[str]) -> Tuple[RelayConfig, List[JobEntry]]:
    """Load config and job list, exiting with code 2 on failure."""
    try:
        config = load_config(config_path)
        path = job_file or config.job_file
        if not path:
            raise JobListError("No job list given (pass JOB_FILE or set file.path in config)")
        entries = read_job_list(Path(path))
    except (ConfigError, JobListError) as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR)
    return config, entries


@app.command()
def run(
    job_file: Optional[str] = typer.Argument(None, help="Job list file (default: file.path from config)"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    workers: int = typer.Option(1, "--workers", "-w", min=1, help="Jobs to run at once"),
    format: str = typer.Option("table", "--format", "-f", help="Report format: table, json"),
):
    """Trigger every job in the list and wait for all builds to finish."""
    config, entries = _load_inputs(config_path, job_file)
    # stdout carries only JSON lines in json mode
    progress_to_stderr = format == "json"

    def on_result(result):
        typer.echo(format_result(result), err=progress_to_stderr)

    try:
        report = execute(config, entries, workers=workers, on_result=on_result)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR)

    if not progress_to_stderr:
        typer.echo()
    render_report(report, format_type=format)
    raise typer.Exit(report.exit_code)


@app.command()
def jobs(
    job_file: Optional[str] = typer.Argument(None, help="Job list file (default: file.path from config)"),
    config_path: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """Show the resolved settings for every job without triggering anything."""
    config, entries = _load_inputs(config_path, job_file)
    try:
        specs = resolve_all(config, entries)
    except ConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(EXIT_CONFIG_ERROR)

    for spec in specs:
        line = (
            f"{spec.instance.name}/{spec.job_name}: trigger={spec.trigger.value} "
            f"interval={spec.poll_interval}s attempts={spec.poll_attempts}"
        )
        if spec.parameters:
            params = ", ".join(f"{k}={v}" for k, v in sorted(spec.parameters.items()))
            line += f" parameters[{params}]"
        typer.echo(line)


@app.command()
def version():
    """Show version information."""
    typer.echo(f"jobrelay version {__version__}")


# Static commands (config)
from jobrelay.commands import config as config_command

app.add_typer(config_command.app, name="config")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
