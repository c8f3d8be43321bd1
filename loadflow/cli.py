"""Typer based command line entry points for LoadFlow."""

from __future__ import annotations

import asyncio
import json
import os
from pathlib import Path
from typing import Optional, Sequence

import typer

from loadflow.config import LoginFlowConfig, load_login_flow_config
from loadflow.core.errors import BrowserError, LoadFlowError
from loadflow.core.logger import get_logger, set_level
from loadflow.core.profiles import (
    PASSWORD_ENV,
    USERNAME_ENV,
    load_credentials,
    load_profile,
    resolve_target_url,
)
from loadflow.harness.phases import describe_phases, total_arrivals, total_duration
from loadflow.services.login_flow import (
    Credentials,
    FlowError,
    FlowReport,
    LoggingMetricsSink,
    LoginFlowRunner,
    NullStepReporter,
    TracingStepReporter,
)

app = typer.Typer(help="SLCM login load test utilities.")


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        help="Set global logging level (e.g. DEBUG/INFO/WARNING).",
    ),
) -> None:
    """Configure global CLI behaviour before executing commands."""

    try:
        set_level(log_level)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


async def _run_journey(
    config: LoginFlowConfig,
    credentials: Credentials,
    base_url: str,
    *,
    headless: bool,
    browser_args: Sequence[str],
    trace: bool,
) -> FlowReport:
    from browser.playwright_flow import PlaywrightFlow

    async with PlaywrightFlow(headless=headless, browser_args=browser_args, trace=trace) as flow:
        steps = TracingStepReporter(flow.context.tracing) if trace else NullStepReporter()
        runner = LoginFlowRunner(config, metrics=LoggingMetricsSink(credentials.user_id), steps=steps)
        return await runner.execute(flow.page, credentials, base_url)


@app.command("run")
def cli_run(
    profile: Optional[str] = typer.Option(None, "--profile", help="Profile name from profiles.yaml"),
    target: Optional[str] = typer.Option(None, "--target", help="Override the target base URL"),
    headless: Optional[bool] = typer.Option(None, "--headless/--headed", help="Run browser headless or headed"),
    trace: Optional[bool] = typer.Option(None, "--trace/--no-trace", help="Record a Playwright trace"),
    selectors: Optional[Path] = typer.Option(None, "--selectors", help="Override login selector YAML file"),
) -> None:
    """Run one login journey in a local browser and print its metrics."""

    logger = get_logger()
    try:
        prof = load_profile(profile)
        config = load_login_flow_config(selectors)
        credentials = load_credentials()
    except LoadFlowError as exc:
        logger.error("cli.run config_error: %s", exc)
        typer.secho(f"Unable to load configuration: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    base_url = resolve_target_url(target, prof)
    try:
        report = asyncio.run(
            _run_journey(
                config,
                credentials,
                base_url,
                headless=prof.headless if headless is None else headless,
                browser_args=prof.browser_args,
                trace=prof.trace if trace is None else trace,
            )
        )
    except FlowError as exc:
        logger.error("cli.run flow_failed step=%s: %s", exc.step, exc, extra={"user_id": credentials.user_id})
        typer.secho(f"Login journey failed at '{exc.step}': {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    except BrowserError as exc:
        logger.error("cli.run browser_error: %s", exc, exc_info=True)
        typer.secho(f"Browser error: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    typer.echo(json.dumps(report.as_dict(), ensure_ascii=False, indent=2))


@app.command("show-config")
def cli_show_config(
    profile: Optional[str] = typer.Option(None, "--profile", help="Profile name from profiles.yaml"),
    selectors: Optional[Path] = typer.Option(None, "--selectors", help="Override login selector YAML file"),
) -> None:
    """Print the resolved profile and selectors (password masked)."""

    try:
        prof = load_profile(profile)
        config = load_login_flow_config(selectors)
    except LoadFlowError as exc:
        typer.secho(f"Unable to load configuration: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    payload = {
        "profile": prof.name,
        "target": prof.target,
        "headless": prof.headless,
        "browser_args": list(prof.browser_args),
        "trace": prof.trace,
        "credentials": {
            "username": os.getenv(USERNAME_ENV) or None,
            "password": "***" if os.getenv(PASSWORD_ENV) else None,
        },
        "sso_host": config.sso.host,
        "app_url_pattern": config.app_pattern(prof.target).pattern,
        "selectors": {
            "login_link": config.login_link,
            "username": config.username_selector,
            "password": config.password_selector,
            "submit_button": config.submit_button,
        },
        "timeouts_ms": config.timeouts.model_dump(),
    }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("phases")
def cli_phases(
    profile: Optional[str] = typer.Option(None, "--profile", help="Profile name from profiles.yaml"),
) -> None:
    """Print the arrival plan of a profile."""

    try:
        prof = load_profile(profile)
    except LoadFlowError as exc:
        typer.secho(f"Unable to load configuration: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=2) from exc

    typer.echo(f"Profile {prof.name}: {total_duration(prof.phases)}s, {total_arrivals(prof.phases)} journeys")
    for line in describe_phases(prof.phases):
        typer.echo(line)


if __name__ == "__main__":
    app()
