from __future__ import annotations

import copy
import importlib
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import gevent
import pytest
from locust import User, constant, task
from locust.env import Environment
from locust.exception import StopUser
from locust.runners import STATE_STOPPED

from loadflow.core.profiles import Phase
from loadflow.harness.phases import ArrivalPlan
from loadflow.services.login_flow import Credentials, Metric


@pytest.fixture
def locustfile():
    module = importlib.import_module("loadflow.locustfile")
    module._credentials.cache_clear()
    module.ARRIVALS.reset()
    yield module
    module._credentials.cache_clear()
    module.ARRIVALS.reset()


def _bare_user(locustfile):
    # Skip PlaywrightUser.__init__, which launches a browser.
    user = object.__new__(locustfile.SlcmLoginUser)
    user.environment = SimpleNamespace(events=MagicMock())
    return user


async def test_journey_on_sub_user_copy_gets_credentials(locustfile, monkeypatch):
    monkeypatch.setenv("SLCM_USERNAME", "alice")
    monkeypatch.setenv("SLCM_PASSWORD", "secret")
    execute = AsyncMock()
    monkeypatch.setattr(locustfile, "RUNNER", SimpleNamespace(execute=execute))
    parent = _bare_user(locustfile)
    # locust-plugins copies the user into sub-users before on_start runs.
    sub_user = copy.copy(parent)
    parent.on_start()
    page = MagicMock()

    await sub_user.run_journey(page)

    execute.assert_awaited_once()
    args, kwargs = execute.await_args
    assert args == (page, Credentials(username="alice", password="secret"), locustfile.PROFILE.target)
    assert set(kwargs) == {"metrics", "steps"}


async def test_journey_metrics_reach_locust_events(locustfile, monkeypatch):
    monkeypatch.setenv("SLCM_USERNAME", "alice")
    monkeypatch.setenv("SLCM_PASSWORD", "secret")
    captured = {}

    async def fake_execute(page, credentials, base_url, *, metrics, steps):
        captured["metrics"] = metrics

    monkeypatch.setattr(locustfile, "RUNNER", SimpleNamespace(execute=fake_execute))
    user = _bare_user(locustfile)

    await user.run_journey(MagicMock())
    captured["metrics"].emit(Metric("login_duration", 12.0))

    kwargs = user.environment.events.request.fire.call_args.kwargs
    assert kwargs["request_type"] == "customStat"
    assert kwargs["name"] == "login_duration"
    assert kwargs["context"] == {"user": "alice", "profile": locustfile.PROFILE.name}


def test_stopped_user_counts_as_finished(locustfile):
    _bare_user(locustfile).on_stop()

    assert locustfile.ARRIVALS.finished == 1


def test_phase_shape_starts_each_arrival_once(locustfile):
    plan = ArrivalPlan((Phase(duration=3, arrival_rate=2),))
    started = []

    class OneShotUser(User):
        wait_time = constant(0)

        def on_start(self):
            started.append(self)

        def on_stop(self):
            plan.record_finished()

        @task
        def journey(self):
            gevent.sleep(0.5)
            raise StopUser()

    shape = locustfile.PhaseShape()
    shape.plan = plan
    env = Environment(user_classes=[OneShotUser], shape_class=shape)
    runner = env.create_local_runner()

    runner.start_shape()
    for _ in range(150):
        if runner.state == STATE_STOPPED:
            break
        gevent.sleep(0.1)
    state = runner.state
    runner.quit()

    assert state == STATE_STOPPED
    assert len(started) == 6
