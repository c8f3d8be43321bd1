"""Value types for the login journey."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


UNKNOWN_USER = "unknown"


@dataclass(frozen=True, slots=True)
class Credentials:
    """Username/password pair for one virtual user."""

    username: str
    password: str = field(repr=False)

    @property
    def user_id(self) -> str:
        return self.username or UNKNOWN_USER

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class FlowContext:
    """Immutable facts about one flow invocation."""

    base_url: str
    start_time: float


@dataclass(frozen=True, slots=True)
class Metric:
    """A named duration in milliseconds."""

    name: str
    value: float


class FlowState(str, Enum):
    """States of the login journey, in the order they are reached."""

    START = "start"
    HOMEPAGE_LOADED = "homepage_loaded"
    ON_SSO_PAGE = "on_sso_page"
    CREDENTIALS_FILLED = "credentials_filled"
    LOGIN_VERIFIED = "login_verified"


@dataclass(slots=True)
class FlowReport:
    """Outcome of a completed journey."""

    user_id: str
    state: FlowState
    metrics: list[Metric]

    def as_dict(self) -> dict[str, object]:
        return {
            "user": self.user_id,
            "state": self.state.value,
            "metrics": {metric.name: round(metric.value, 1) for metric in self.metrics},
        }


SSO_REDIRECT_TIME = "sso_redirect_time"
LOGIN_DURATION = "login_duration"
DASHBOARD_LOAD_TIME = "dashboard_load_time"
METRIC_NAMES = (SSO_REDIRECT_TIME, LOGIN_DURATION, DASHBOARD_LOAD_TIME)
