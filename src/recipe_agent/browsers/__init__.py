"""
Browsers module - Playwright implementation of the page driver.
"""

from recipe_agent.browsers.playwright_driver import PlaywrightBrowser, PlaywrightPageDriver

__all__ = ["PlaywrightBrowser", "PlaywrightPageDriver"]
