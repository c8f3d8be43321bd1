"""Browser automation helpers built on Playwright."""

from .playwright_flow import PlaywrightFlow

__all__ = ["PlaywrightFlow"]
