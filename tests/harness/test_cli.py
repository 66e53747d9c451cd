"""Tests for the command-line interface."""

import json
import os
import time
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from e2e_harness.cli.app import main
from e2e_harness.models.harness_models import RunContext, RunReport, RunStatus

SCENARIO = """
name: smoke
steps:
  - action: navigate
    url: /
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def patched_config(config):
    with patch("e2e_harness.cli.app.load_config", return_value=config) as load:
        yield load


@pytest.fixture
def scenario_file(tmp_path):
    path = tmp_path / "smoke.yaml"
    path.write_text(SCENARIO)
    return path


def _report(tmp_path, status=RunStatus.COMPLETED):
    context = RunContext.create(tmp_path / "runs", prefix="cli", scenario="smoke")
    return RunReport.from_context(context, status)


class TestRunCommand:
    """Tests for `e2e-harness run`."""

    def test_exit_code_follows_report(self, runner, patched_config, scenario_file, tmp_path):
        with patch("e2e_harness.cli.app.HarnessDriver") as driver_cls:
            driver_cls.return_value.run = AsyncMock(return_value=_report(tmp_path))

            result = runner.invoke(main, ["run", str(scenario_file)])

        assert result.exit_code == 0, result.output
        assert "Running smoke against https://example.test" in result.output
        scenario = driver_cls.return_value.run.await_args.args[0]
        assert scenario.name == "smoke"

    def test_aborted_run_exits_non_zero(self, runner, patched_config, scenario_file, tmp_path):
        with patch("e2e_harness.cli.app.HarnessDriver") as driver_cls:
            driver_cls.return_value.run = AsyncMock(
                return_value=_report(tmp_path, status=RunStatus.ABORTED)
            )

            result = runner.invoke(main, ["run", str(scenario_file)])

        assert result.exit_code == 1

    def test_overrides_reach_the_config(self, runner, patched_config, scenario_file, tmp_path):
        with patch("e2e_harness.cli.app.HarnessDriver") as driver_cls:
            driver_cls.return_value.run = AsyncMock(return_value=_report(tmp_path))

            runner.invoke(
                main,
                [
                    "run",
                    str(scenario_file),
                    "--localhost",
                    "--base-url",
                    "http://localhost:3000",
                    "--interactive",
                    "--timeout",
                    "2500",
                    "--output-prefix",
                    "nightly",
                ],
            )

        used = driver_cls.call_args.args[0]
        assert used.environment == "local"
        assert used.base_url == "http://localhost:3000"
        assert used.interactive is True
        assert used.headless is False
        assert used.default_timeout_ms == 2500
        assert used.output_prefix == "nightly"

    def test_env_and_localhost_are_exclusive(self, runner, patched_config, scenario_file):
        result = runner.invoke(main, ["run", str(scenario_file), "--env", "staging", "--localhost"])

        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    def test_invalid_scenario_fails(self, runner, patched_config, tmp_path):
        result = runner.invoke(main, ["run", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Scenario file not found" in result.output


class TestAuthCheck:
    """Tests for `e2e-harness auth check`."""

    def test_valid_snapshot(self, runner, patched_config, tmp_path):
        expires = (datetime.now() + timedelta(hours=2)).timestamp()
        path = tmp_path / "state.json"
        path.write_text(
            json.dumps(
                {
                    "cookies": [],
                    "origins": [
                        {
                            "origin": "https://example.test",
                            "localStorage": [
                                {"name": "sb-auth-token", "value": json.dumps({"expires_at": expires})}
                            ],
                        }
                    ],
                }
            )
        )

        result = runner.invoke(main, ["auth", "check", "--path", str(path)])

        assert result.exit_code == 0
        assert "Auth state valid" in result.output

    def test_missing_snapshot(self, runner, patched_config, tmp_path):
        result = runner.invoke(main, ["auth", "check", "--path", str(tmp_path / "none.json")])

        assert result.exit_code == 1
        assert "unusable" in result.output


class TestOtherCommands:
    """Tests for `list` and `cleanup`."""

    def test_list(self, runner, scenario_file, tmp_path):
        (tmp_path / "broken.yaml").write_text("steps: []")

        result = runner.invoke(main, ["list", str(tmp_path)])

        assert result.exit_code == 0
        assert "smoke.yaml: smoke (1 steps)" in result.output
        assert "broken.yaml: invalid" in result.output

    def test_cleanup_dry_run(self, runner, patched_config, tmp_path):
        old = tmp_path / "runs" / "run-old"
        old.mkdir(parents=True)
        stamp = time.time() - 30 * 24 * 60 * 60
        os.utime(old, (stamp, stamp))

        result = runner.invoke(
            main, ["cleanup", "--output-root", str(tmp_path / "runs"), "--days", "7", "--dry-run"]
        )

        assert result.exit_code == 0
        assert "Would delete 1 run(s)" in result.output
        assert old.exists()
