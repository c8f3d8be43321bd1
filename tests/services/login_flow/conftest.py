from __future__ import annotations

import logging

import pytest

from fake_browser import FakeClock
from loadflow.config import SsoSettings, load_login_flow_config
from loadflow.services.login_flow import Credentials, LoginFlowRunner, RecordingMetricsSink


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def flow_config():
    config = load_login_flow_config()
    return config.model_copy(update={"sso": SsoSettings(host="login.example-sso.test")})


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(username="alice", password="secret")


@pytest.fixture
def sink() -> RecordingMetricsSink:
    return RecordingMetricsSink()


@pytest.fixture
def test_logger() -> logging.Logger:
    logger = logging.getLogger("tests.login_flow")
    logger.setLevel(logging.DEBUG)
    logger.propagate = True
    return logger


@pytest.fixture
def runner(flow_config, sink, clock, test_logger) -> LoginFlowRunner:
    return LoginFlowRunner(flow_config, metrics=sink, clock=clock, logger=test_logger)
