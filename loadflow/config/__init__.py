"""Configuration helpers for LoadFlow runtime files.

Provides the loader for the login-flow selector YAML: element selectors, the
SSO host to expect after clicking "Login", the application URL pattern to
expect after signing in, and per-step timeouts in milliseconds.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict
from urllib.parse import urlsplit

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from loadflow.core.errors import ConfigError


CONFIG_DIR = Path(__file__).resolve().parent
DEFAULT_LOGIN_SELECTOR_PATH = CONFIG_DIR / "selectors" / "slcm_login.yaml"


class SelectorValidationError(ConfigError):
    """Raised when a selector configuration fails validation."""


class InputSelectors(BaseModel):
    """Candidate selectors for the SSO form inputs; the first match wins."""

    model_config = ConfigDict(extra="forbid")

    username: list[str] = Field(min_length=1)
    password: list[str] = Field(min_length=1)

    @field_validator("username", "password")
    @classmethod
    def _no_blank(cls, value: list[str]) -> list[str]:
        cleaned = [item.strip() for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("at least one non-empty selector is required")
        return cleaned


class SsoSettings(BaseModel):
    """Where the identity provider lives."""

    model_config = ConfigDict(extra="forbid")

    host: str
    url_pattern: str | None = None

    @field_validator("host")
    @classmethod
    def _lower_host(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("sso.host must not be empty")
        return value


class FlowTimeouts(BaseModel):
    """Per-step timeouts in milliseconds."""

    model_config = ConfigDict(extra="forbid")

    navigation: int = Field(default=30_000, gt=0)
    login_click: int = Field(default=10_000, gt=0)
    sso_redirect: int = Field(default=10_000, gt=0)
    credential_visible: int = Field(default=10_000, gt=0)
    submit_click: int = Field(default=10_000, gt=0)
    login_verification: int = Field(default=15_000, gt=0)


class LoginFlowConfig(BaseModel):
    """Complete login-flow selector file model."""

    model_config = ConfigDict(extra="forbid")

    login_link: str = "text=Login"
    submit_button: str = 'button:has-text("Sign In")'
    inputs: InputSelectors
    sso: SsoSettings
    app_url_pattern: str | None = None
    timeouts: FlowTimeouts = Field(default_factory=FlowTimeouts)

    @property
    def username_selector(self) -> str:
        return ", ".join(self.inputs.username)

    @property
    def password_selector(self) -> str:
        return ", ".join(self.inputs.password)

    def sso_pattern(self) -> re.Pattern[str]:
        return re.compile(self.sso.url_pattern or re.escape(self.sso.host))

    def app_pattern(self, base_url: str) -> re.Pattern[str]:
        """Pattern for the post-login location; defaults to the base URL host."""

        if self.app_url_pattern:
            return re.compile(self.app_url_pattern)
        host = urlsplit(base_url).hostname
        if not host:
            raise ConfigError(f"Cannot derive application host from URL: {base_url}")
        return re.compile(re.escape(host))

    def is_sso_url(self, url: str) -> bool:
        """True when ``url``'s host is the SSO host (or one of its subdomains)."""

        host = (urlsplit(url).hostname or "").lower()
        return host == self.sso.host or host.endswith("." + self.sso.host)


def load_login_flow_config(path: str | Path | None = None) -> LoginFlowConfig:
    """Load and validate the login-flow selector file."""

    selectors_path = Path(path) if path else DEFAULT_LOGIN_SELECTOR_PATH
    raw = _load_yaml(selectors_path)
    try:
        config = LoginFlowConfig.model_validate(raw)
    except ValidationError as exc:
        raise SelectorValidationError(f"Invalid selector file {selectors_path}: {exc}") from exc
    for label, pattern in (("sso.url_pattern", config.sso.url_pattern), ("app_url_pattern", config.app_url_pattern)):
        if pattern is None:
            continue
        try:
            re.compile(pattern)
        except re.error as exc:
            raise SelectorValidationError(f"{label} is not a valid regular expression: {exc}") from exc
    return config


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Selector file not found: {path}")
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ConfigError("Selector configuration must be a mapping")
    return data


__all__ = [
    "DEFAULT_LOGIN_SELECTOR_PATH",
    "FlowTimeouts",
    "InputSelectors",
    "LoginFlowConfig",
    "SelectorValidationError",
    "SsoSettings",
    "load_login_flow_config",
]
