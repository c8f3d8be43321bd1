from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from playwright.async_api import Error as PlaywrightError

import browser.playwright_flow as flow_module
from browser.playwright_flow import PlaywrightFlow
from loadflow.core.errors import BrowserError


def _fake_playwright(monkeypatch: pytest.MonkeyPatch, *, launch_error: Exception | None = None):
    page = MagicMock()
    page.screenshot = AsyncMock()

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    context.tracing.start = AsyncMock()
    context.tracing.stop = AsyncMock()

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(side_effect=launch_error, return_value=browser)
    playwright.stop = AsyncMock()

    starter = SimpleNamespace(start=AsyncMock(return_value=playwright))
    monkeypatch.setattr(flow_module, "async_playwright", lambda: starter)
    return SimpleNamespace(playwright=playwright, browser=browser, context=context, page=page)


def _flow(tmp_path, **kwargs) -> PlaywrightFlow:
    return PlaywrightFlow(screenshots_dir=tmp_path / "shot", trace_dir=tmp_path / "trace", **kwargs)


async def test_launches_with_headless_and_args(monkeypatch, tmp_path):
    fake = _fake_playwright(monkeypatch)

    async with _flow(tmp_path, headless=False, browser_args=["--no-sandbox"]) as flow:
        assert flow.page is fake.page
        assert flow.browser_channel == "chromium"

    fake.playwright.chromium.launch.assert_awaited_once_with(headless=False, args=["--no-sandbox"])
    fake.context.set_default_timeout.assert_called_once_with(30_000)
    fake.context.tracing.start.assert_not_awaited()
    fake.context.close.assert_awaited_once()
    fake.browser.close.assert_awaited_once()
    fake.playwright.stop.assert_awaited_once()


async def test_trace_exported_on_success(monkeypatch, tmp_path):
    fake = _fake_playwright(monkeypatch)
    flow = _flow(tmp_path, trace=True)

    async with flow:
        pass

    fake.context.tracing.start.assert_awaited_once()
    path = fake.context.tracing.stop.await_args.kwargs["path"]
    assert path.startswith(str(tmp_path / "trace"))
    assert flow.last_trace is not None
    fake.page.screenshot.assert_not_awaited()


async def test_failure_captures_screenshot_and_propagates(monkeypatch, tmp_path):
    fake = _fake_playwright(monkeypatch)
    flow = _flow(tmp_path)

    with pytest.raises(RuntimeError, match="boom"):
        async with flow:
            raise RuntimeError("boom")

    fake.page.screenshot.assert_awaited_once()
    assert flow.last_screenshot is not None
    assert flow.last_screenshot.parent == tmp_path / "shot"
    fake.context.close.assert_awaited_once()


async def test_launch_failure_raises_browser_error(monkeypatch, tmp_path):
    fake = _fake_playwright(monkeypatch, launch_error=PlaywrightError("Executable doesn't exist"))

    with pytest.raises(BrowserError, match="playwright install"):
        async with _flow(tmp_path):
            pass

    assert fake.playwright.chromium.launch.await_count == 3
    fake.playwright.stop.assert_awaited_once()


def test_page_requires_ready_flow(tmp_path):
    with pytest.raises(BrowserError):
        _ = _flow(tmp_path).page
