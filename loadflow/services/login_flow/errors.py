"""Failures of the login journey, one class per step."""

from __future__ import annotations

from loadflow.core.errors import BrowserError

from .models import FlowState


class FlowError(BrowserError):
    """Raised when a step of the login journey fails.

    Attributes:
        step: Human readable step name.
        state: State the flow was in when the step failed.
        cause: Underlying exception (timeout, Playwright error) or ``None``
            for explicit mismatches.
    """

    state: FlowState = FlowState.START

    def __init__(self, step: str, message: str, *, cause: BaseException | None = None) -> None:
        detail = f"{step}: {message}"
        if cause is not None:
            detail = f"{detail} ({type(cause).__name__}: {cause})"
        super().__init__(detail)
        self.step = step
        self.cause = cause


class NavigationError(FlowError):
    """Homepage did not load in time."""

    state = FlowState.START


class RedirectError(FlowError):
    """The Login control or the SSO redirect failed."""

    state = FlowState.HOMEPAGE_LOADED


class CredentialFillError(FlowError):
    """A credential input never became visible or could not be filled."""

    state = FlowState.ON_SSO_PAGE


class LoginVerificationError(FlowError):
    """Sign-in did not land back on the application."""

    state = FlowState.CREDENTIALS_FILLED


__all__ = [
    "CredentialFillError",
    "FlowError",
    "LoginVerificationError",
    "NavigationError",
    "RedirectError",
]
