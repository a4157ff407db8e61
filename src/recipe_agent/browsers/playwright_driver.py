"""
Playwright Driver - IPageDriver over Playwright's async API.

Provides:
- PlaywrightBrowser: launch/close and page creation
- PlaywrightPageDriver: the page operations the recipe interpreter needs
- An in-page serializer that turns the DOM into compact text for the LLM
"""

import logging
from typing import Any, List, Optional

from recipe_agent.config.settings import BrowserSettings
from recipe_agent.exceptions import (
    BrowserError,
    BrowserLaunchError,
    ElementNotFoundError,
    NavigationError,
)
from recipe_agent.interfaces.page import DOMSnapshot, IPageDriver, ListItem, PageState
from recipe_agent.recipe.element_ref import ElementRef, IndexedElement

logger = logging.getLogger(__name__)


# =============================================================================
# IN-PAGE SCRIPTS
# =============================================================================

# One line per element: indentation by depth, tag, id, classes, useful
# attributes and a short text excerpt. Invisible subtrees and noise tags are
# skipped.
SERIALIZE_DOM_JS = """
(maxLines) => {
    const SKIP = new Set(['script', 'style', 'noscript', 'svg', 'path', 'meta', 'link', 'head', 'iframe']);
    const ATTRS = ['role', 'aria-label', 'name', 'type', 'placeholder', 'href'];
    const lines = [];

    const ownText = (el) => {
        let text = '';
        for (const node of el.childNodes) {
            if (node.nodeType === Node.TEXT_NODE) text += node.textContent;
        }
        return text.replace(/\\s+/g, ' ').trim().slice(0, 60);
    };

    const describe = (el, depth) => {
        const parts = [el.tagName.toLowerCase()];
        if (el.id) parts.push('#' + el.id);
        const classes = (typeof el.className === 'string' ? el.className : '')
            .split(/\\s+/).filter(c => c && c.length < 40).slice(0, 4);
        if (classes.length) parts.push('.' + classes.join('.'));
        for (const attr of el.attributes) {
            if (attr.name.startsWith('data-') && attr.value.length < 60) {
                parts.push(`[${attr.name}="${attr.value}"]`);
            }
        }
        for (const name of ATTRS) {
            const value = el.getAttribute(name);
            if (value) parts.push(`[${name}="${value.slice(0, 80)}"]`);
        }
        const text = ownText(el);
        if (text) parts.push(`"${text}"`);
        return '  '.repeat(depth) + parts.join('');
    };

    const walk = (el, depth) => {
        if (lines.length >= maxLines) return;
        const tag = el.tagName.toLowerCase();
        if (SKIP.has(tag)) return;
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden') return;
        lines.push(describe(el, depth));
        for (const child of el.children) walk(child, depth + 1);
    };

    if (document.body) walk(document.body, 0);
    return lines.join('\\n');
}
"""

PAGE_STATE_JS = """
() => ({
    scrollY: window.scrollY,
    scrollHeight: document.documentElement.scrollHeight,
    viewportHeight: window.visualViewport ? window.visualViewport.height : window.innerHeight,
})
"""

QUERY_ITEMS_JS = """
(elements, [idSelector, idAttribute]) => elements.map((el, index) => {
    const inner = idSelector ? el.querySelector(idSelector) : null;
    const source = inner || el;
    let dataId = null;
    for (const attr of el.attributes) {
        if (attr.name.startsWith('data-') && attr.name.endsWith('id') && attr.value) {
            dataId = attr.value;
            break;
        }
    }
    const link = source.closest('a') || source.querySelector('a');
    return {
        index,
        text: (el.innerText || el.textContent || '').trim(),
        href: source.getAttribute('href') || (link ? link.getAttribute('href') : null),
        dataId,
        attribute: idAttribute ? (source.getAttribute(idAttribute) || el.getAttribute(idAttribute)) : null,
    };
})
"""

SCROLL_BY_PAGE_JS = """
([selector, direction]) => {
    const el = selector ? document.querySelector(selector) : null;
    if (el) {
        el.scrollBy(0, direction * el.clientHeight);
    } else {
        window.scrollBy(0, direction * (window.visualViewport ? window.visualViewport.height : window.innerHeight));
    }
}
"""

SCROLL_TO_PERCENT_JS = """
(percent) => {
    const viewport = window.visualViewport ? window.visualViewport.height : window.innerHeight;
    const top = (document.documentElement.scrollHeight - viewport) * (percent / 100);
    window.scrollTo({top, left: window.scrollX});
}
"""


class PlaywrightPageDriver(IPageDriver):
    """
    IPageDriver backed by a Playwright Page.

    Example:
        >>> browser = PlaywrightBrowser()
        >>> await browser.launch()
        >>> driver = await browser.new_page()
        >>> await driver.navigate_to("https://example.com/jobs")
    """

    def __init__(self, page: Any, timeout_ms: int = 30000, max_snapshot_lines: int = 1500):
        """
        Args:
            page: Playwright Page object
            timeout_ms: Timeout for navigation and actions
            max_snapshot_lines: Cap on serialized DOM lines
        """
        self._page = page
        self._timeout_ms = timeout_ms
        self._max_snapshot_lines = max_snapshot_lines

    @property
    def url(self) -> str:
        return self._page.url

    def _locator(self, ref: ElementRef) -> Any:
        locator = self._page.locator(ref.selector)
        if isinstance(ref, IndexedElement):
            return locator.nth(ref.index)
        return locator.first

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    async def navigate_to(self, url: str) -> None:
        try:
            await self._page.goto(url, timeout=self._timeout_ms, wait_until="domcontentloaded")
        except Exception as e:
            raise NavigationError(f"Failed to navigate to {url}: {e}", url=url)

    async def go_back(self) -> None:
        try:
            await self._page.go_back(timeout=self._timeout_ms, wait_until="domcontentloaded")
        except Exception as e:
            raise NavigationError(f"Failed to go back: {e}", url=self.url)

    async def refresh(self) -> None:
        try:
            await self._page.reload(timeout=self._timeout_ms, wait_until="domcontentloaded")
        except Exception as e:
            raise NavigationError(f"Failed to reload: {e}", url=self.url)

    # =========================================================================
    # ACTIONS
    # =========================================================================

    async def click(self, ref: ElementRef) -> bool:
        locator = self._locator(ref)
        if await locator.count() == 0:
            return False
        await locator.scroll_into_view_if_needed(timeout=self._timeout_ms)
        await locator.click(timeout=self._timeout_ms)
        return True

    async def input_text(self, ref: ElementRef, text: str) -> None:
        locator = self._locator(ref)
        if await locator.count() == 0:
            raise ElementNotFoundError(f"Element not found: {ref.describe()}", ref.selector)
        await locator.fill(text, timeout=self._timeout_ms)

    async def select_option(self, ref: ElementRef, option: str) -> bool:
        locator = self._locator(ref)
        if await locator.count() == 0:
            raise ElementNotFoundError(f"Element not found: {ref.describe()}", ref.selector)
        for attempt in ({"label": option}, {"value": option}):
            try:
                await locator.select_option(timeout=self._timeout_ms, **attempt)
                return True
            except Exception as e:
                logger.debug(f"select_option {attempt} on {ref.describe()} failed: {e}")
        return False

    async def is_checked(self, ref: ElementRef) -> bool:
        locator = self._locator(ref)
        if await locator.count() == 0:
            raise ElementNotFoundError(f"Element not found: {ref.describe()}", ref.selector)
        return await locator.is_checked(timeout=self._timeout_ms)

    async def send_keys(self, keys: str) -> None:
        await self._page.keyboard.press(keys)

    # =========================================================================
    # SCROLLING
    # =========================================================================

    async def scroll_to_next_page(self, container: Optional[str] = None) -> None:
        await self._page.evaluate(SCROLL_BY_PAGE_JS, [container, 1])

    async def scroll_to_previous_page(self, container: Optional[str] = None) -> None:
        await self._page.evaluate(SCROLL_BY_PAGE_JS, [container, -1])

    async def scroll_to_percent(self, percent: float) -> None:
        await self._page.evaluate(SCROLL_TO_PERCENT_JS, percent)

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def selector_exists(self, selector: str) -> bool:
        try:
            return await self._page.locator(selector).count() > 0
        except Exception as e:
            # Invalid selectors count as "not there"
            logger.debug(f"selector_exists({selector}) failed: {e}")
            return False

    async def is_visible(self, selector: str) -> bool:
        try:
            return await self._page.locator(selector).first.is_visible()
        except Exception as e:
            logger.debug(f"is_visible({selector}) failed: {e}")
            return False

    async def count_selector(self, selector: str) -> int:
        try:
            return await self._page.locator(selector).count()
        except Exception as e:
            logger.debug(f"count_selector({selector}) failed: {e}")
            return 0

    async def query_selector_all(
        self,
        selector: str,
        id_selector: Optional[str] = None,
        id_attribute: Optional[str] = None,
    ) -> List[ListItem]:
        raw = await self._page.eval_on_selector_all(selector, QUERY_ITEMS_JS, [id_selector, id_attribute])
        return [
            ListItem(
                index=entry["index"],
                text=entry.get("text") or "",
                href=entry.get("href"),
                data_id=entry.get("dataId"),
                attribute=entry.get("attribute"),
            )
            for entry in raw
        ]

    async def get_text_from_selector(self, selector: str) -> List[str]:
        try:
            return await self._page.locator(selector).all_inner_texts()
        except Exception as e:
            logger.debug(f"get_text_from_selector({selector}) failed: {e}")
            return []

    async def get_state(self) -> PageState:
        geometry = await self._page.evaluate(PAGE_STATE_JS)
        tree = await self._page.evaluate(SERIALIZE_DOM_JS, self._max_snapshot_lines)
        return PageState(
            url=self.url,
            title=await self._page.title(),
            scroll_y=geometry["scrollY"],
            scroll_height=geometry["scrollHeight"],
            viewport_height=geometry["viewportHeight"],
            element_tree=tree,
        )

    async def get_dom_snapshot(self) -> DOMSnapshot:
        elements = await self._page.evaluate(SERIALIZE_DOM_JS, self._max_snapshot_lines)
        try:
            visible_text = await self._page.locator("body").inner_text(timeout=self._timeout_ms)
        except Exception as e:
            logger.debug(f"Could not read body text: {e}")
            visible_text = None
        return DOMSnapshot(
            url=self.url,
            title=await self._page.title(),
            elements=elements,
            visible_text=visible_text,
        )


class PlaywrightBrowser:
    """
    Owns the Playwright process, browser and context.

    Example:
        >>> browser = PlaywrightBrowser(settings.browser)
        >>> await browser.launch()
        >>> driver = await browser.new_page()
        >>> await browser.close()
    """

    def __init__(self, settings: Optional[BrowserSettings] = None):
        self._settings = settings or BrowserSettings()
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    @property
    def is_connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def launch(self, headless: Optional[bool] = None) -> None:
        """Start Playwright and launch the configured browser engine."""
        s = self._settings
        headless = s.headless if headless is None else headless

        try:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            launcher = getattr(self._playwright, s.browser_type)
            self._browser = await launcher.launch(headless=headless)
        except Exception as e:
            await self.close()
            raise BrowserLaunchError(f"Failed to launch browser: {e}")

        logger.info(f"Launched {s.browser_type} browser (headless={headless})")

    async def new_page(self) -> PlaywrightPageDriver:
        """Open a page in the shared context."""
        if not self._browser:
            raise BrowserError("Browser not launched. Call launch() first.")

        s = self._settings
        if not self._context:
            options: dict = {"viewport": {"width": s.viewport_width, "height": s.viewport_height}}
            if s.user_agent:
                options["user_agent"] = s.user_agent
            self._context = await self._browser.new_context(**options)

        page = await self._context.new_page()
        page.set_default_timeout(s.timeout_ms)
        return PlaywrightPageDriver(page, timeout_ms=s.timeout_ms)

    async def close(self) -> None:
        """Close the context and browser and stop Playwright."""
        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        logger.info("Browser closed")

    async def __aenter__(self) -> "PlaywrightBrowser":
        await self.launch()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
