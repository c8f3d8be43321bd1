from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import loadflow.core.logger as core_logger
from loadflow.core import profiles


@pytest.fixture(autouse=True)
def _isolated_logging(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep log files out of the project workspace and reset handlers per test."""

    monkeypatch.setattr(core_logger, "_work_dir", lambda: tmp_path / "work")
    monkeypatch.setattr(core_logger, "_LOGGER", None, raising=False)
    yield
    app_logger = logging.getLogger("loadflow")
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch):
    """Tests must not depend on the developer's .env values."""

    for key in (
        profiles.TARGET_URL_ENV,
        profiles.USERNAME_ENV,
        profiles.PASSWORD_ENV,
        profiles.HEADLESS_ENV,
        profiles.PROFILE_ENV,
        profiles.ROOT_ENV,
    ):
        monkeypatch.delenv(key, raising=False)
