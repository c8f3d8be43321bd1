"""Locust entry point for the SLCM login load test.

Run with ``locust -f loadflow/locustfile.py --headless``. The load profile is
chosen with ``LOADFLOW_PROFILE`` (default ``poc``); each arrival runs the
login journey once in its own browser context and then stops.
"""

from __future__ import annotations

from functools import lru_cache

from locust import LoadTestShape, constant, events, task
from locust.exception import StopUser
from locust_plugins.users.playwright import PageWithRetry, PlaywrightUser, pw

from loadflow.config import load_login_flow_config
from loadflow.core.logger import get_logger
from loadflow.core.profiles import load_credentials, load_profile
from loadflow.harness.phases import ArrivalPlan, describe_phases, total_arrivals
from loadflow.services.login_flow import (
    METRIC_NAMES,
    Credentials,
    FanoutMetricsSink,
    LocustMetricsSink,
    LocustStepReporter,
    LoggingMetricsSink,
    LoginFlowRunner,
)

LOGGER = get_logger()
PROFILE = load_profile()
RUNNER = LoginFlowRunner(load_login_flow_config(), logger=LOGGER)
ARRIVALS = ArrivalPlan(PROFILE.phases)


@lru_cache(maxsize=1)
def _credentials() -> Credentials:
    return load_credentials()


class SlcmLoginUser(PlaywrightUser):
    """One arrival: a fresh browser context running the journey once."""

    host = PROFILE.target
    headless = PROFILE.headless
    wait_time = constant(0)

    def on_stop(self) -> None:
        ARRIVALS.record_finished()

    @pw
    async def login_journey(self, page: PageWithRetry) -> None:
        await self.run_journey(page)

    async def run_journey(self, page: PageWithRetry) -> None:
        # Runs on the sub-user copies made in PlaywrightUser.__init__; nothing set in on_start exists here.
        credentials = _credentials()
        base_url = (self.host or PROFILE.target).rstrip("/")
        context = {"user": credentials.user_id, "profile": PROFILE.name}
        metrics = FanoutMetricsSink(
            LocustMetricsSink(self.environment.events, context=context),
            LoggingMetricsSink(credentials.user_id, LOGGER),
        )
        steps = LocustStepReporter(self.environment.events, context=context)
        await RUNNER.execute(page, credentials, base_url, metrics=metrics, steps=steps)

    @task
    def single_journey(self) -> None:
        self.login_journey()
        raise StopUser()


class PhaseShape(LoadTestShape):
    """Replays the profile's arrival-rate phases."""

    plan = ARRIVALS

    def reset_time(self):
        super().reset_time()
        self.plan.reset()

    def tick(self):
        return self.plan.tick(self.get_run_time(), self.get_current_user_count())


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    LOGGER.info(
        "loadtest.start profile=%s target=%s headless=%s arrivals=%d",
        PROFILE.name,
        PROFILE.target,
        PROFILE.headless,
        total_arrivals(PROFILE.phases),
    )
    for line in describe_phases(PROFILE.phases):
        LOGGER.info("loadtest.phase %s", line)


@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    stats = environment.stats
    for name in METRIC_NAMES:
        entry = stats.get(name, "customStat")
        if not entry.num_requests:
            LOGGER.info("loadtest.summary %s no samples", name)
            continue
        LOGGER.info(
            "loadtest.summary %s count=%d avg=%.0fms p95=%.0fms max=%.0fms",
            name,
            entry.num_requests,
            entry.avg_response_time,
            entry.get_response_time_percentile(0.95),
            entry.max_response_time,
        )
    LOGGER.info(
        "loadtest.summary journeys_failed=%d of %d requests",
        stats.total.num_failures,
        stats.total.num_requests,
    )


__all__ = ["PhaseShape", "SlcmLoginUser"]
