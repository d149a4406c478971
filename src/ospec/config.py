"""Configuration parsing from ``.ospec.yml``."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".ospec.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_TRUTHY = {"1", "true", "yes", "on"}

_VALID_BAIL_SCOPES = {"run", "group"}
_VALID_REPORT_FORMATS = {"terminal", "json"}

DEFAULT_TIMEOUT_MS = 200.0
DEFAULT_DRAIN_TIMEOUT_MS = 5000.0


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        else:
            result[key] = value
    return result


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY
    return bool(value)


@dataclass
class RunConfig:
    """Options for a single run."""

    bail_on_first_failure: bool = False
    """Stop starting new tests and hooks after the first failure."""

    default_timeout_ms: float = DEFAULT_TIMEOUT_MS
    """Timeout for asynchronous units when no spec sets one."""

    bail_scope: str = "run"
    """``run`` skips everything left; ``group`` only the failing group's rest."""

    drain_timeout_ms: float = DEFAULT_DRAIN_TIMEOUT_MS
    """How long to wait for timed-out bodies to settle before giving up."""


@dataclass
class ReportConfig:
    """Result reporting configuration."""

    format: str = "terminal"
    """Output format: terminal or json."""

    output_path: str = ""
    """Write the JSON report to this file in addition to the console output."""

    show_passed: bool = True
    """List passing tests in the terminal tree."""


@dataclass
class OspecConfig:
    """Top-level ospec configuration."""

    run: RunConfig = field(default_factory=RunConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    raw: dict[str, Any] = field(default_factory=dict)
    """The raw parsed YAML data."""


def _parse_run_config(raw: dict[str, Any]) -> RunConfig:
    return RunConfig(
        bail_on_first_failure=_as_bool(
            raw.get("bail_on_first_failure", os.environ.get("OSPEC_BAIL", "false"))
        ),
        default_timeout_ms=float(
            raw.get(
                "default_timeout_ms",
                os.environ.get("OSPEC_DEFAULT_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
            )
        ),
        bail_scope=str(raw.get("bail_scope", os.environ.get("OSPEC_BAIL_SCOPE", "run"))),
        drain_timeout_ms=float(
            raw.get(
                "drain_timeout_ms",
                os.environ.get("OSPEC_DRAIN_TIMEOUT_MS", DEFAULT_DRAIN_TIMEOUT_MS),
            )
        ),
    )


def _parse_report_config(raw: dict[str, Any]) -> ReportConfig:
    return ReportConfig(
        format=str(raw.get("format", "terminal")),
        output_path=str(raw.get("output_path", "")),
        show_passed=_as_bool(raw.get("show_passed", True)),
    )


def load_config(root: str | Path) -> OspecConfig:
    """Load ``.ospec.yml`` from *root*.

    Falls back to defaults and environment variables when the file is
    missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        parsed = yaml.safe_load(config_file.read_text(encoding="utf-8"))
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)
        logger.debug("Loaded configuration from %s", config_file)

    run_raw = raw.get("run", {})
    if not isinstance(run_raw, dict):
        run_raw = {}

    report_raw = raw.get("report", {})
    if not isinstance(report_raw, dict):
        report_raw = {}

    return OspecConfig(
        run=_parse_run_config(run_raw),
        report=_parse_report_config(report_raw),
        raw=raw,
    )


def _validate_run_config(run: RunConfig) -> list[str]:
    errors: list[str] = []
    if run.default_timeout_ms <= 0:
        errors.append(f"run.default_timeout_ms must be positive, got {run.default_timeout_ms}")
    if run.drain_timeout_ms < 0:
        errors.append(f"run.drain_timeout_ms must not be negative, got {run.drain_timeout_ms}")
    if run.bail_scope not in _VALID_BAIL_SCOPES:
        errors.append(
            f"run.bail_scope must be one of {sorted(_VALID_BAIL_SCOPES)}, got {run.bail_scope!r}"
        )
    return errors


def _validate_report_config(report: ReportConfig) -> list[str]:
    if report.format not in _VALID_REPORT_FORMATS:
        return [
            f"report.format must be one of {sorted(_VALID_REPORT_FORMATS)}, got {report.format!r}"
        ]
    return []


def validate_config(config: OspecConfig) -> list[str]:
    """Return a list of human-readable configuration errors (empty if valid)."""
    return _validate_run_config(config.run) + _validate_report_config(config.report)
