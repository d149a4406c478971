"""ospec CLI: top-level command group."""

from __future__ import annotations

import logging
import runpy
from dataclasses import asdict
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.logging import RichHandler

from ospec import __version__, o
from ospec.config import OspecConfig, load_config, validate_config
from ospec.errors import OspecError
from ospec.reporters import JSONReporter, reporter

logger = logging.getLogger(__name__)

_LOG_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def _configure_logging(verbosity: int) -> None:
    level = _LOG_LEVELS.get(verbosity, logging.DEBUG)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _config_to_dict(config: OspecConfig) -> dict[str, Any]:
    """Convert OspecConfig to a dictionary for display."""
    result = asdict(config)
    result.pop("raw", None)
    return result


def _load_spec_files(files: tuple[Path, ...]) -> None:
    """Execute each file so its declarations land on the default suite."""
    for path in files:
        logger.debug("Loading %s", path)
        runpy.run_path(str(path), run_name="__ospec__")


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug).")
@click.version_option(version=__version__, prog_name="ospec")
@click.pass_context
def cli(ctx: click.Context, *, verbose: int) -> None:
    """ospec: run spec trees of tests with hooks, async timeouts and bail."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _configure_logging(verbose)


@cli.command()
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--bail/--no-bail",
    "bail",
    default=None,
    help="Stop starting new tests after the first failure.",
)
@click.option(
    "--timeout",
    "timeout_ms",
    type=float,
    default=None,
    help="Default timeout in milliseconds for asynchronous tests.",
)
@click.option(
    "--bail-scope",
    type=click.Choice(["run", "group"]),
    default=None,
    help="Skip the rest of the run, or only the rest of the failing group.",
)
@click.option("--json", "json_output", is_flag=True, help="Print the result as JSON.")
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write the JSON report to this file.",
)
@click.option(
    "--config-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Directory containing .ospec.yml.",
)
def run(
    files: tuple[Path, ...],
    *,
    bail: bool | None,
    timeout_ms: float | None,
    bail_scope: str | None,
    json_output: bool,
    output_path: Path | None,
    config_dir: Path,
) -> None:
    """Run the specs declared in FILES."""
    config = load_config(config_dir)
    if bail is not None:
        config.run.bail_on_first_failure = bail
    if timeout_ms is not None:
        config.run.default_timeout_ms = timeout_ms
    if bail_scope is not None:
        config.run.bail_scope = bail_scope

    errors = validate_config(config)
    if errors:
        for error in errors:
            reporter.print_error(error)
        raise click.Abort

    o.reset()
    try:
        _load_spec_files(files)
        result = o.run_sync(config.run)
    except OspecError as e:
        reporter.print_error(f"Malformed suite: {e}")
        raise click.Abort from e

    as_json = json_output or config.report.format == "json"
    if as_json:
        click.echo(JSONReporter().generate_string(result))
    else:
        reporter.print_result(result, show_passed=config.report.show_passed)

    report_path = output_path or (
        Path(config.report.output_path) if config.report.output_path else None
    )
    if report_path is not None:
        JSONReporter().generate(report_path, result)

    if not result.success:
        raise click.Abort
    if not result.drained:
        reporter.print_error(
            f"{result.pending_timed_out} timed-out test(s) never settled; not exiting cleanly"
        )
        raise click.Abort
    if not as_json:
        reporter.print_success("All tests passed!")


@cli.group("config")
def config_group() -> None:
    """Inspect ospec configuration."""


@config_group.command("show")
@click.option(
    "--config-dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
def config_show(config_dir: Path) -> None:
    """Print the effective configuration."""
    config = load_config(config_dir)
    click.echo(yaml.safe_dump(_config_to_dict(config), sort_keys=False))
    for error in validate_config(config):
        reporter.print_warning(error)
