"""Login journey for the SLCM load test."""

from .errors import (
    CredentialFillError,
    FlowError,
    LoginVerificationError,
    NavigationError,
    RedirectError,
)
from .models import Credentials, FlowContext, FlowReport, FlowState, Metric, METRIC_NAMES
from .reporting import (
    FanoutMetricsSink,
    FlowLogger,
    LocustMetricsSink,
    LocustStepReporter,
    LoggingMetricsSink,
    MetricsSink,
    NullStepReporter,
    RecordingMetricsSink,
    StepReporter,
    TracingStepReporter,
)
from .runner import LoginFlowRunner, STEP_NAMES


__all__ = [
    "CredentialFillError",
    "Credentials",
    "FanoutMetricsSink",
    "FlowContext",
    "FlowError",
    "FlowLogger",
    "FlowReport",
    "FlowState",
    "LocustMetricsSink",
    "LocustStepReporter",
    "LoggingMetricsSink",
    "LoginFlowRunner",
    "LoginVerificationError",
    "METRIC_NAMES",
    "Metric",
    "MetricsSink",
    "NavigationError",
    "NullStepReporter",
    "RecordingMetricsSink",
    "RedirectError",
    "STEP_NAMES",
    "StepReporter",
    "TracingStepReporter",
]
