"""Playwright lifecycle helper for running a journey outside Locust.

This module launches Chromium with the profile's headless and sandbox flags,
opens a fresh context and page, optionally records a Playwright trace, and
captures failure artefacts (full-page screenshot plus trace archive) when the
wrapped block raises. Exceptions are never suppressed.
"""

from __future__ import annotations

import time
from pathlib import Path
from types import TracebackType
from typing import Sequence

from playwright.async_api import (
    Browser,
    BrowserContext,
    Error as PlaywrightError,
    Page,
    Playwright,
    async_playwright,
)

from loadflow.core.errors import BrowserError
from loadflow.core.logger import get_logger
from loadflow.core.profiles import DEFAULT_BROWSER_ARGS, ensure_work_dirs


class PlaywrightFlow:
    """Owns the Playwright, browser, context and page of one local journey.

    Use as ``async with PlaywrightFlow(...) as flow: page = flow.page``.
    """

    def __init__(
        self,
        *,
        headless: bool = True,
        browser_args: Sequence[str] = DEFAULT_BROWSER_ARGS,
        trace: bool = False,
        screenshots_dir: Path | None = None,
        trace_dir: Path | None = None,
        default_timeout_ms: int = 30_000,
    ) -> None:
        self.logger = get_logger()
        self.headless = headless
        self.browser_args = list(browser_args)
        self.trace = trace
        if screenshots_dir is None or trace_dir is None:
            work_dirs = ensure_work_dirs()
            screenshots_dir = screenshots_dir or work_dirs["shot"]
            trace_dir = trace_dir or work_dirs["trace"]
        self.screenshots_dir = screenshots_dir
        self.trace_dir = trace_dir
        for directory in (self.screenshots_dir, self.trace_dir):
            directory.mkdir(parents=True, exist_ok=True)
        self.default_timeout_ms = default_timeout_ms

        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._page: Page | None = None
        self._tracing_active = False
        self._browser_channel: str | None = None

        self.last_screenshot: Path | None = None
        self.last_trace: Path | None = None

    # ------------------------------------------------------------------
    # Lifecycle helpers
    async def __aenter__(self) -> "PlaywrightFlow":
        await self.ensure_ready()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        _tb: TracebackType | None,
    ) -> bool:
        try:
            if exc is not None:
                self.logger.error("Playwright flow failed: %s", exc)
                await self._record_failure_artifacts("failure")
            elif self._tracing_active:
                await self._export_trace("journey")
        finally:
            await self.close()
        # Do not suppress exceptions
        return False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise BrowserError("Playwright page not initialised")
        return self._page

    @property
    def context(self) -> BrowserContext:
        if self._context is None:
            raise BrowserError("Playwright context not initialised")
        return self._context

    @property
    def browser_channel(self) -> str | None:
        return self._browser_channel

    async def ensure_ready(self) -> Page:
        """Ensure the browser context and page are initialised."""
        if self._page is not None:
            return self._page

        try:
            self._playwright = await async_playwright().start()
        except Exception as exc:  # noqa: BLE001
            raise BrowserError("Playwright failed to start, run: python -m playwright install chromium") from exc

        try:
            browser = await self._launch_browser(self._playwright)
        except BrowserError:
            await self.close()
            raise
        context = await browser.new_context()
        context.set_default_timeout(self.default_timeout_ms)
        if self.trace:
            try:
                await context.tracing.start(screenshots=True, snapshots=True, sources=True)
                self._tracing_active = True
            except PlaywrightError:
                self.logger.warning("Could not start tracing", exc_info=True)
        page = await context.new_page()

        self._browser = browser
        self._context = context
        self._page = page
        return page

    async def close(self) -> None:
        """Release Playwright resources."""
        if self._context is not None:
            try:
                await self._context.close()
            except PlaywrightError:
                self.logger.warning("Closing BrowserContext failed", exc_info=True)
        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError:
                self.logger.warning("Closing Browser failed", exc_info=True)
        if self._playwright is not None:
            try:
                await self._playwright.stop()
            except PlaywrightError:
                self.logger.warning("Stopping Playwright failed", exc_info=True)

        self._context = None
        self._browser = None
        self._playwright = None
        self._page = None
        self._tracing_active = False

    # ------------------------------------------------------------------
    # Internal helpers
    async def _launch_browser(self, playwright: Playwright) -> Browser:
        attempts: list[tuple[str | None, str]] = [
            (None, "chromium"),
            ("chrome", "chrome"),
            ("msedge", "msedge"),
        ]
        last_exc: PlaywrightError | None = None
        for channel, label in attempts:
            try:
                if channel is None:
                    browser = await playwright.chromium.launch(headless=self.headless, args=self.browser_args)
                else:
                    browser = await playwright.chromium.launch(
                        headless=self.headless, args=self.browser_args, channel=channel
                    )
                self._browser_channel = label
                self.logger.info("Launched %s headless=%s args=%s", label, self.headless, " ".join(self.browser_args))
                return browser
            except PlaywrightError as exc:
                last_exc = exc
                continue
        raise BrowserError(
            "Cannot launch Chromium, run: python -m playwright install chromium"
        ) from last_exc

    async def _export_trace(self, label: str) -> Path | None:
        context = self._context
        if context is None or not self._tracing_active:
            return None
        trace_path = self.trace_dir / f"{label}_{time.strftime('%Y%m%d-%H%M%S')}.zip"
        try:
            await context.tracing.stop(path=str(trace_path))
            self.logger.info("Playwright trace exported: %s", trace_path)
            self.last_trace = trace_path
            return trace_path
        except PlaywrightError:
            self.logger.warning("Exporting trace failed", exc_info=True)
            return None
        finally:
            self._tracing_active = False

    async def _record_failure_artifacts(self, label: str) -> None:
        timestamp = time.strftime("%Y%m%d-%H%M%S")
        page = self._page

        if page is not None:
            snap_path = self.screenshots_dir / f"{label}_{timestamp}.png"
            try:
                await page.screenshot(path=str(snap_path), full_page=True)
                self.logger.info("Failure screenshot saved: %s", snap_path)
                self.last_screenshot = snap_path
            except PlaywrightError:
                self.logger.warning("Screenshot failed", exc_info=True)

        await self._export_trace(label)
