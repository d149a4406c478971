"""Tests for the ospec CLI commands."""

from __future__ import annotations

import json
import textwrap
from typing import TYPE_CHECKING

import pytest
import yaml
from click.testing import CliRunner

from ospec import o
from ospec.cli import _config_to_dict, cli
from ospec.config import OspecConfig

if TYPE_CHECKING:
    from pathlib import Path


_PASSING = """
    import asyncio

    from ospec import o

    @o.spec("math")
    def _():
        @o.test("adds")
        def _(a):
            a(1 + 1).equals(2)

        @o.test("waits")
        async def _(a):
            await asyncio.sleep(0)
"""

_FAILING = """
    from ospec import o

    @o.spec("math")
    def _():
        @o.test("adds")
        def _(a):
            a(1 + 1).equals(3)

        @o.test("subtracts")
        def _(a):
            a(2 - 1).equals(1)
"""

_DUPLICATE = """
    from ospec import o

    o.test("same", lambda: None)
    o.test("same", lambda: None)
"""


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def _clean_default_suite() -> None:
    o.reset()


def _write_spec(root: Path, source: str, name: str = "math_spec.py") -> Path:
    path = root / name
    path.write_text(textwrap.dedent(source), encoding="utf-8")
    return path


# ── run ─────────────────────────────────────────────────────────


class TestRunCommand:
    def test_passing_suite(self, runner: CliRunner, tmp_path: Path) -> None:
        spec = _write_spec(tmp_path, _PASSING)

        result = runner.invoke(cli, ["run", str(spec), "--config-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        assert "All tests passed!" in result.output
        assert "adds" in result.output

    def test_failing_suite_exits_nonzero(self, runner: CliRunner, tmp_path: Path) -> None:
        spec = _write_spec(tmp_path, _FAILING)

        result = runner.invoke(cli, ["run", str(spec), "--config-dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "expected 3, got 2" in result.output
        assert "All tests passed!" not in result.output

    def test_bail_skips_remaining(self, runner: CliRunner, tmp_path: Path) -> None:
        spec = _write_spec(tmp_path, _FAILING)
        report = tmp_path / "report.json"

        result = runner.invoke(
            cli,
            ["run", str(spec), "--bail", "--output", str(report), "--config-dir", str(tmp_path)],
        )

        assert result.exit_code == 1
        data = json.loads(report.read_text(encoding="utf-8"))
        assert data["summary"]["failed"] == 1
        assert data["summary"]["skipped"] == 1
        assert data["summary"]["bailed"] is True

    def test_json_output(self, runner: CliRunner, tmp_path: Path) -> None:
        spec = _write_spec(tmp_path, _PASSING)

        result = runner.invoke(
            cli, ["run", str(spec), "--json", "--config-dir", str(tmp_path)]
        )

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["summary"]["passed"] == 2
        assert data["summary"]["success"] is True

    def test_writes_report_file(self, runner: CliRunner, tmp_path: Path) -> None:
        spec = _write_spec(tmp_path, _PASSING)
        report = tmp_path / "out" / "report.json"

        result = runner.invoke(
            cli,
            ["run", str(spec), "--output", str(report), "--config-dir", str(tmp_path)],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(report.read_text(encoding="utf-8"))["summary"]["total"] == 2

    def test_duplicate_name_is_malformed(self, runner: CliRunner, tmp_path: Path) -> None:
        spec = _write_spec(tmp_path, _DUPLICATE)

        result = runner.invoke(cli, ["run", str(spec), "--config-dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "Malformed suite" in result.output
        assert "Duplicate name 'same'" in result.output

    def test_invalid_config_aborts(self, runner: CliRunner, tmp_path: Path) -> None:
        spec = _write_spec(tmp_path, _PASSING)
        (tmp_path / ".ospec.yml").write_text(
            yaml.dump({"run": {"default_timeout_ms": -5}}), encoding="utf-8"
        )

        result = runner.invoke(cli, ["run", str(spec), "--config-dir", str(tmp_path)])

        assert result.exit_code == 1
        assert "default_timeout_ms must be positive" in result.output

    def test_requires_files(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["run"])
        assert result.exit_code == 2


# ── config show ─────────────────────────────────────────────────


class TestConfigShow:
    def test_shows_effective_config(self, runner: CliRunner, tmp_path: Path) -> None:
        (tmp_path / ".ospec.yml").write_text(
            yaml.dump({"run": {"bail_scope": "group"}}), encoding="utf-8"
        )

        result = runner.invoke(cli, ["config", "show", "--config-dir", str(tmp_path)])

        assert result.exit_code == 0, result.output
        shown = yaml.safe_load(result.output)
        assert shown["run"]["bail_scope"] == "group"
        assert "raw" not in shown

    def test_config_to_dict_drops_raw(self) -> None:
        data = _config_to_dict(OspecConfig(raw={"x": 1}))
        assert set(data) == {"run", "report"}


class TestVersion:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "ospec" in result.output
