"""CLI tests for the local login journey commands."""

from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from loadflow import cli
from loadflow.core.logger import get_logger
from loadflow.services.login_flow import FlowReport, FlowState, Metric, RedirectError


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def credentials_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SLCM_USERNAME", "alice")
    monkeypatch.setenv("SLCM_PASSWORD", "secret")


def test_run_prints_metrics(cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch, credentials_env) -> None:
    seen: dict[str, object] = {}

    async def fake_run_journey(config, credentials, base_url, *, headless, browser_args, trace):
        seen.update(base_url=base_url, headless=headless, trace=trace, user=credentials.user_id)
        return FlowReport(
            user_id=credentials.user_id,
            state=FlowState.LOGIN_VERIFIED,
            metrics=[Metric("sso_redirect_time", 150.0), Metric("login_duration", 300.0)],
        )

    monkeypatch.setattr(cli, "_run_journey", fake_run_journey)

    result = cli_runner.invoke(cli.app, ["run", "--target", "https://staging.example.test/", "--headed"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.output[result.output.index("{") :])
    assert payload == {
        "user": "alice",
        "state": "login_verified",
        "metrics": {"sso_redirect_time": 150.0, "login_duration": 300.0},
    }
    assert seen == {"base_url": "https://staging.example.test", "headless": False, "trace": False, "user": "alice"}


def test_run_uses_profile_trace_flag(cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch, credentials_env) -> None:
    seen: dict[str, object] = {}

    async def fake_run_journey(config, credentials, base_url, *, headless, browser_args, trace):
        seen.update(trace=trace, browser_args=list(browser_args))
        return FlowReport(user_id=credentials.user_id, state=FlowState.LOGIN_VERIFIED, metrics=[])

    monkeypatch.setattr(cli, "_run_journey", fake_run_journey)

    result = cli_runner.invoke(cli.app, ["run", "--profile", "debug"])

    assert result.exit_code == 0, result.output
    assert seen == {"trace": True, "browser_args": ["--no-sandbox", "--disable-setuid-sandbox"]}


def test_run_without_credentials_exits_with_config_error(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli.app, ["run"])

    assert result.exit_code == 2
    assert "SLCM_USERNAME" in result.output


def test_run_reports_failed_step(cli_runner: CliRunner, monkeypatch: pytest.MonkeyPatch, credentials_env) -> None:
    async def failing_run_journey(*_args, **_kwargs):
        raise RedirectError("Click login and redirect to SSO", "no redirect to SSO host login.ui.ac.id")

    monkeypatch.setattr(cli, "_run_journey", failing_run_journey)

    result = cli_runner.invoke(cli.app, ["run"])

    assert result.exit_code == 1
    assert "Click login and redirect to SSO" in result.output


def test_show_config_masks_password(cli_runner: CliRunner, credentials_env) -> None:
    result = cli_runner.invoke(cli.app, ["show-config"])

    assert result.exit_code == 0, result.output
    assert "secret" not in result.output
    payload = json.loads(result.output)
    assert payload["credentials"] == {"username": "alice", "password": "***"}
    assert payload["profile"] == "poc"
    assert payload["sso_host"] == "login.ui.ac.id"
    assert payload["app_url_pattern"] == r"slcm\.pusilkom\.com"


def test_phases_command(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli.app, ["phases", "--profile", "heavy"])

    assert result.exit_code == 0, result.output
    assert "Profile heavy: 90s, 360 journeys" in result.output
    assert "Warm up" in result.output


def test_unknown_profile_exits_with_config_error(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli.app, ["phases", "--profile", "nope"])

    assert result.exit_code == 2
    assert "Unknown profile" in result.output


def test_log_level_option(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli.app, ["--log-level", "debug", "phases"])

    assert result.exit_code == 0, result.output
    assert get_logger().level == logging.DEBUG


def test_invalid_log_level_is_rejected(cli_runner: CliRunner) -> None:
    result = cli_runner.invoke(cli.app, ["--log-level", "chatty", "phases"])

    assert result.exit_code != 0
