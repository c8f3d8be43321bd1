from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

import yaml
from dotenv import load_dotenv

from .errors import ConfigError, CredentialsError

if TYPE_CHECKING:
    from loadflow.services.login_flow.models import Credentials


load_dotenv(override=False)

DEFAULT_TARGET_URL = "https://slcm.pusilkom.com"
DEFAULT_PROFILE = "poc"
DEFAULT_BROWSER_ARGS = ("--no-sandbox", "--disable-setuid-sandbox")

TARGET_URL_ENV = "TARGET_URL"
USERNAME_ENV = "SLCM_USERNAME"
PASSWORD_ENV = "SLCM_PASSWORD"
HEADLESS_ENV = "IS_HEADLESS"
PROFILE_ENV = "LOADFLOW_PROFILE"
ROOT_ENV = "LOADFLOW_ROOT"

PROFILE_KEYS = frozenset({"target", "phases", "headless", "browser_args", "trace"})


@dataclass(frozen=True)
class Phase:
    """A load phase with a constant arrival rate.

    Attributes:
        duration: Phase length in seconds.
        arrival_rate: New virtual users started per second.
        name: Human readable label.
    """

    duration: int
    arrival_rate: float
    name: str = ""


@dataclass
class LoadProfile:
    """A named load profile from profiles.yaml.

    Attributes:
        name: Profile key.
        target: Base URL of the application under test.
        phases: Ordered load phases.
        headless: Launch the browser without a window.
        browser_args: Extra Chromium command line flags.
        trace: Record a Playwright trace for each journey.
    """

    name: str
    target: str
    phases: tuple[Phase, ...]
    headless: bool = True
    browser_args: tuple[str, ...] = DEFAULT_BROWSER_ARGS
    trace: bool = False

    @property
    def total_duration(self) -> int:
        return sum(phase.duration for phase in self.phases)


def _project_root() -> Path:
    env = os.getenv(ROOT_ENV)
    if env:
        return Path(env)
    # In source layout, this file is under <root>/loadflow/core
    return Path(__file__).resolve().parents[2]


def _config_dir() -> Path:
    return _project_root() / "loadflow" / "config"


def _work_dir() -> Path:
    return _project_root() / "loadflow" / "work"


def ensure_work_dirs() -> dict[str, Path]:
    base = _work_dir()
    logs = base / "logs"
    shot = logs / "shot"
    trace = logs / "trace"
    for p in (logs, shot, trace):
        p.mkdir(parents=True, exist_ok=True)
    return {"logs": logs, "shot": shot, "trace": trace}


def env_headless(default: bool = True) -> bool:
    """Headless unless ``IS_HEADLESS`` is explicitly ``false``."""

    raw = os.getenv(HEADLESS_ENV)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() != "false"


def resolve_target_url(explicit: str | None = None, profile: LoadProfile | None = None) -> str:
    """Pick the target URL: explicit value, then ``TARGET_URL``, then the profile."""

    for candidate in (explicit, os.getenv(TARGET_URL_ENV), profile.target if profile else None):
        if candidate and candidate.strip():
            return candidate.strip().rstrip("/")
    return DEFAULT_TARGET_URL


def load_credentials(*, required: bool = True) -> Credentials:
    """Read virtual user credentials from ``SLCM_USERNAME`` / ``SLCM_PASSWORD``."""

    # login_flow imports core.logger, which imports this module.
    from loadflow.services.login_flow.models import Credentials

    username = (os.getenv(USERNAME_ENV) or "").strip()
    password = os.getenv(PASSWORD_ENV) or ""
    if required and not (username and password):
        raise CredentialsError(f"Set {USERNAME_ENV} and {PASSWORD_ENV} (environment or .env)")
    return Credentials(username=username, password=password)


def load_profiles(path: str | Path | None = None) -> dict[str, LoadProfile]:
    """Load load profiles from config/profiles.yaml.

    Returns a dict of profile-key -> LoadProfile.
    """
    cfg_path = Path(path) if path else _config_dir() / "profiles.yaml"
    if not cfg_path.exists():
        raise ConfigError(f"profiles.yaml not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    profiles_raw = data.get("profiles", {})
    if not profiles_raw:
        raise ConfigError("profiles.yaml defines no profiles")
    defaults = data.get("defaults") or {}
    profiles: dict[str, LoadProfile] = {}
    for key, p in profiles_raw.items():
        merged = {**defaults, **(p or {})}
        unknown = sorted(set(merged) - PROFILE_KEYS)
        if unknown:
            raise ConfigError(f"Profile {key} has unknown keys: {', '.join(unknown)}")
        try:
            prof = LoadProfile(
                name=key,
                target=_expand_env(merged.get("target", DEFAULT_TARGET_URL)),
                phases=tuple(_build_phase(item) for item in merged.get("phases", [])),
                headless=bool(merged.get("headless", True)),
                browser_args=tuple(str(arg) for arg in merged.get("browser_args", DEFAULT_BROWSER_ARGS)),
                trace=bool(merged.get("trace", False)),
            )
        except ConfigError:
            raise
        except Exception as e:  # noqa: BLE001
            raise ConfigError(f"Invalid profile {key}: {e}") from e
        if not prof.phases:
            raise ConfigError(f"Profile {key} defines no phases")
        profiles[key] = prof
    return profiles


def load_profile(name: str | None = None, path: str | Path | None = None) -> LoadProfile:
    """Return one profile, applying the ``TARGET_URL`` and ``IS_HEADLESS`` overrides."""

    key = name or os.getenv(PROFILE_ENV) or DEFAULT_PROFILE
    profiles = load_profiles(path)
    if key not in profiles:
        raise ConfigError(f"Unknown profile '{key}', available: {', '.join(sorted(profiles))}")
    profile = profiles[key]
    profile.target = resolve_target_url(profile=profile)
    profile.headless = env_headless(profile.headless)
    return profile


def _build_phase(item: Mapping[str, Any]) -> Phase:
    if not isinstance(item, Mapping):
        raise ConfigError("phase entries must be mappings")
    duration = int(item.get("duration", 0))
    arrival_rate = float(item.get("arrival_rate", item.get("arrivalRate", 0)))
    if duration <= 0:
        raise ConfigError(f"phase duration must be positive: {duration}")
    if arrival_rate <= 0:
        raise ConfigError(f"phase arrival_rate must be positive: {arrival_rate}")
    return Phase(duration=duration, arrival_rate=arrival_rate, name=str(item.get("name", "")))


def _expand_env(value: Any) -> Any:
    if isinstance(value, str):
        expanded = os.path.expandvars(value)
        if "${" in value and "}" in value and expanded == value:
            raise ConfigError(f"Environment variable not set for value: {value}")
        return expanded
    return value
