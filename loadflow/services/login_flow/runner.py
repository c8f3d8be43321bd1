"""Login journey state machine.

The journey is linear: ``START`` -> ``HOMEPAGE_LOADED`` -> ``ON_SSO_PAGE`` ->
``CREDENTIALS_FILLED`` -> ``LOGIN_VERIFIED``. Each non-terminal state has one
handler that performs its browser actions and returns the next state. Any
failure aborts the whole journey; Playwright errors are wrapped in the
step-specific ``FlowError`` subclass before they propagate.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator

from playwright.async_api import Error as PlaywrightError, Page

from loadflow.config import LoginFlowConfig, load_login_flow_config
from loadflow.core.logger import get_logger

from .errors import (
    CredentialFillError,
    FlowError,
    LoginVerificationError,
    NavigationError,
    RedirectError,
)
from .models import (
    DASHBOARD_LOAD_TIME,
    LOGIN_DURATION,
    SSO_REDIRECT_TIME,
    Credentials,
    FlowContext,
    FlowReport,
    FlowState,
    Metric,
)
from .reporting import FlowLogger, MetricsSink, NullStepReporter, RecordingMetricsSink, StepReporter


Clock = Callable[[], float]

STEP_NAMES: dict[FlowState, str] = {
    FlowState.START: "Navigate to SLCM homepage",
    FlowState.HOMEPAGE_LOADED: "Click login and redirect to SSO",
    FlowState.ON_SSO_PAGE: "Fill login credentials",
    FlowState.CREDENTIALS_FILLED: "Submit login and verify success",
}


@dataclass(slots=True)
class _FlowSession:
    """Per-invocation state; never shared between journeys."""

    page: Page
    credentials: Credentials
    context: FlowContext
    sink: MetricsSink
    clock: Clock
    metrics: list[Metric] = field(default_factory=list)

    def elapsed_ms(self, since: float) -> float:
        return max(0.0, (self.clock() - since) * 1000.0)

    def emit(self, name: str, since: float) -> Metric:
        metric = Metric(name=name, value=self.elapsed_ms(since))
        self.metrics.append(metric)
        self.sink.emit(metric)
        return metric


@contextmanager
def _translate(error_cls: type[FlowError], step: str, message: str) -> Iterator[None]:
    try:
        yield
    except PlaywrightError as exc:
        raise error_cls(step, message, cause=exc) from exc


class LoginFlowRunner:
    """Drive one virtual user through homepage -> SSO -> sign in.

    The runner holds configuration and collaborators only, so one instance
    can serve many concurrent journeys.

    Args:
        config: Selectors, SSO host and timeouts; loaded from the bundled
            selector file when omitted.
        metrics: Default metrics sink for journeys that do not pass one.
        steps: Default step reporter.
        logger: Application logger used by the per-journey ``FlowLogger``.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        config: LoginFlowConfig | None = None,
        *,
        metrics: MetricsSink | None = None,
        steps: StepReporter | None = None,
        logger: logging.Logger | None = None,
        clock: Clock = time.perf_counter,
    ) -> None:
        self.config = config or load_login_flow_config()
        self.metrics = metrics
        self.steps = steps or NullStepReporter()
        self.logger = logger or get_logger()
        self.clock = clock
        self._handlers: dict[FlowState, Callable[[_FlowSession], Awaitable[FlowState]]] = {
            FlowState.START: self._navigate_home,
            FlowState.HOMEPAGE_LOADED: self._redirect_to_sso,
            FlowState.ON_SSO_PAGE: self._fill_credentials,
            FlowState.CREDENTIALS_FILLED: self._submit_login,
        }

    async def run(self, page: Page, credentials: Credentials, base_url: str) -> list[Metric]:
        """Run the journey and return its metrics in emission order."""

        report = await self.execute(page, credentials, base_url)
        return report.metrics

    async def execute(
        self,
        page: Page,
        credentials: Credentials,
        base_url: str,
        *,
        metrics: MetricsSink | None = None,
        steps: StepReporter | None = None,
    ) -> FlowReport:
        """Run the journey and return the final state with its metrics.

        Raises:
            FlowError: A step failed; metrics emitted before the failing step
                have already reached the sink.
        """

        flow_log = FlowLogger(credentials.user_id, self.logger)
        reporter = steps or self.steps
        session = _FlowSession(
            page=page,
            credentials=credentials,
            context=FlowContext(base_url=base_url, start_time=self.clock()),
            sink=metrics or self.metrics or RecordingMetricsSink(),
            clock=self.clock,
        )

        flow_log.flow_started(base_url)
        state = FlowState.START
        try:
            while state is not FlowState.LOGIN_VERIFIED:
                state = await self._run_step(state, session, reporter, flow_log)
            total = session.emit(DASHBOARD_LOAD_TIME, session.context.start_time)
        except Exception as exc:
            flow_log.flow_failed(exc)
            raise
        flow_log.flow_completed(total.value)
        return FlowReport(user_id=credentials.user_id, state=state, metrics=list(session.metrics))

    async def _run_step(
        self,
        state: FlowState,
        session: _FlowSession,
        reporter: StepReporter,
        flow_log: FlowLogger,
    ) -> FlowState:
        step = STEP_NAMES[state]
        handler = self._handlers[state]
        flow_log.step_started(step)
        started = self.clock()
        try:
            async with reporter.step(step):
                next_state = await handler(session)
        except Exception as exc:
            flow_log.step_failed(step, exc)
            raise
        flow_log.step_succeeded(step, session.elapsed_ms(started), url=session.page.url)
        return next_state

    # ------------------------------------------------------------------
    # State handlers
    async def _navigate_home(self, session: _FlowSession) -> FlowState:
        page = session.page
        step = STEP_NAMES[FlowState.START]
        with _translate(NavigationError, step, f"homepage {session.context.base_url} did not load"):
            await page.goto(
                session.context.base_url,
                wait_until="domcontentloaded",
                timeout=self.config.timeouts.navigation,
            )
            await page.wait_for_load_state("networkidle")
        return FlowState.HOMEPAGE_LOADED

    async def _redirect_to_sso(self, session: _FlowSession) -> FlowState:
        page = session.page
        cfg = self.config
        step = STEP_NAMES[FlowState.HOMEPAGE_LOADED]
        click_started = self.clock()
        with _translate(RedirectError, step, f"login control {cfg.login_link!r} not found"):
            await page.click(cfg.login_link, timeout=cfg.timeouts.login_click)
        with _translate(RedirectError, step, f"no redirect to SSO host {cfg.sso.host}"):
            await page.wait_for_load_state("domcontentloaded")
            await page.wait_for_load_state("networkidle")
            await page.wait_for_url(cfg.sso_pattern(), timeout=cfg.timeouts.sso_redirect)
        session.emit(SSO_REDIRECT_TIME, click_started)
        return FlowState.ON_SSO_PAGE

    async def _fill_credentials(self, session: _FlowSession) -> FlowState:
        page = session.page
        cfg = self.config
        step = STEP_NAMES[FlowState.ON_SSO_PAGE]
        username_input = page.locator(cfg.username_selector).first
        password_input = page.locator(cfg.password_selector).first

        # Both inputs must be visible before either is filled.
        with _translate(CredentialFillError, step, "username input not visible"):
            await username_input.wait_for(state="visible", timeout=cfg.timeouts.credential_visible)
        with _translate(CredentialFillError, step, "password input not visible"):
            await password_input.wait_for(state="visible", timeout=cfg.timeouts.credential_visible)
        with _translate(CredentialFillError, step, "could not fill credentials"):
            await username_input.fill(session.credentials.username)
            await password_input.fill(session.credentials.password)
        return FlowState.CREDENTIALS_FILLED

    async def _submit_login(self, session: _FlowSession) -> FlowState:
        page = session.page
        cfg = self.config
        step = STEP_NAMES[FlowState.CREDENTIALS_FILLED]
        submit_started = self.clock()
        with _translate(LoginVerificationError, step, f"submit control {cfg.submit_button!r} not found"):
            await page.click(cfg.submit_button, timeout=cfg.timeouts.submit_click)
        try:
            await page.wait_for_load_state("domcontentloaded")
            await page.wait_for_load_state("networkidle")
            await page.wait_for_url(
                cfg.app_pattern(session.context.base_url),
                timeout=cfg.timeouts.login_verification,
            )
        except PlaywrightError as exc:
            if cfg.is_sso_url(page.url):
                raise LoginVerificationError(step, f"still on SSO page {page.url}", cause=exc) from exc
            raise LoginVerificationError(step, f"application not reached, at {page.url}", cause=exc) from exc

        # An SSO URL can match the application pattern through its service= parameter.
        current_url = page.url
        if cfg.is_sso_url(current_url):
            raise LoginVerificationError(
                step, f"still on SSO page {current_url}, authentication might have failed"
            )
        session.emit(LOGIN_DURATION, submit_started)
        return FlowState.LOGIN_VERIFIED
