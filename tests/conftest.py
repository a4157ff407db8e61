"""
Pytest configuration and fixtures.
"""

from typing import Any, Callable, Dict, List, Optional

import pytest

from recipe_agent.config import BindingSettings, ExecutorSettings, Settings
from recipe_agent.interfaces.llm import ILLMProvider, LLMResponse, Message, Usage
from recipe_agent.interfaces.page import DOMSnapshot, IPageDriver, ListItem, PageState
from recipe_agent.recipe.bindings import PageBindings
from recipe_agent.recipe.element_ref import IndexedElement

JOBS_URL = "https://jobs.example.com/search?q=python"

DEFAULT_DOM = """body
  div.search-page
    ul.job-list
      li.job-card[data-id="job-0"] "Job 0 title"
      li.job-card[data-id="job-1"] "Job 1 title"
    div.job-details "Details"
"""

TEST_BINDINGS: Dict[str, Any] = {
    "id": "test_jobs",
    "urlPattern": "jobs.example.com",
    "LIST": ".job-list",
    "LIST_ITEM": ".job-card",
    "DETAILS_PANEL": ".job-details",
    "DETAILS_CONTENT": [".job-details"],
    "ITEM_ID": {"from": "data"},
    "PAGE_LOADED": {"exists": "body"},
    "LIST_LOADED": {"exists": ".job-card"},
    "DETAILS_LOADED": {"exists": ".job-details"},
    "NO_MORE_ITEMS": {"exists": ".no-results"},
    "SCROLL_BEHAVIOR": "infinite",
    "CLICK_BEHAVIOR": "shows_panel",
}


# =============================================================================
# MOCK CLASSES
# =============================================================================

def make_items(count: int, start: int = 0) -> List[Dict[str, str]]:
    """Job cards job-<n> with a title and a details text each."""
    return [
        {
            "id": f"job-{i}",
            "text": f"Job {i} title",
            "details": f"Details for job {i}",
            "href": f"/jobs/view/{1000 + i}",
        }
        for i in range(start, start + count)
    ]


class MockPageDriver(IPageDriver):
    """
    In-memory list/detail page.

    `visible` cards out of `items` are rendered under `list_item`; clicking a
    card shows its details under `details`. Scrolling (or clicking a selector
    in `reveal_on_click`) renders `reveal` more cards. Other selectors exist
    when `selectors` gives them a count.
    """

    def __init__(
        self,
        items: Optional[List[Dict[str, str]]] = None,
        visible: Optional[int] = None,
        reveal: int = 0,
        selectors: Optional[Dict[str, int]] = None,
        reveal_on_click: Optional[List[str]] = None,
        list_item: str = ".job-card",
        details: str = ".job-details",
        url: str = JOBS_URL,
        scroll_height: int = 3000,
        viewport_height: int = 1000,
        dom: str = DEFAULT_DOM,
    ):
        self.items = list(items or [])
        self.visible = len(self.items) if visible is None else visible
        self.reveal = reveal
        self.selectors = {".job-list": 1, **(selectors or {})}
        self.reveal_on_click = set(reveal_on_click or [])
        self.list_item = list_item
        self.details = details
        self._url = url
        self.scroll_height = scroll_height
        self.viewport_height = viewport_height
        self.dom = dom

        self.active: Optional[int] = None
        self.scroll_y = 0
        self.scrolls = 0
        self.clicks: List[str] = []
        self.navigations: List[str] = []
        self.typed: List[tuple] = []
        self.keys: List[str] = []
        self.checked: Dict[str, bool] = {}
        self.snapshots = 0

    def _count(self, selector: str) -> int:
        if selector == self.list_item:
            return self.visible
        if selector == self.details:
            return 1 if self.active is not None else 0
        if selector == "body":
            return 1
        return self.selectors.get(selector, 0)

    def _reveal(self) -> None:
        self.visible = min(len(self.items), self.visible + self.reveal)

    @property
    def url(self) -> str:
        return self._url

    async def navigate_to(self, url: str) -> None:
        self.navigations.append(url)
        self._url = url

    async def go_back(self) -> None:
        self.navigations.append("back")

    async def refresh(self) -> None:
        self.navigations.append("refresh")

    async def click(self, ref) -> bool:
        if isinstance(ref, IndexedElement) and ref.selector == self.list_item:
            if ref.index >= self.visible:
                return False
            self.active = ref.index
            self.clicks.append(f"{ref.selector}[{ref.index}]")
            return True

        if self._count(ref.selector) == 0:
            return False
        self.clicks.append(ref.selector)
        self.checked[ref.selector] = not self.checked.get(ref.selector, False)
        if ref.selector in self.reveal_on_click:
            self._reveal()
        return True

    async def input_text(self, ref, text: str) -> None:
        self.typed.append((ref.selector, text))

    async def select_option(self, ref, option: str) -> bool:
        return option != "missing"

    async def is_checked(self, ref) -> bool:
        return self.checked.get(ref.selector, False)

    async def send_keys(self, keys: str) -> None:
        self.keys.append(keys)

    async def scroll_to_next_page(self, container: Optional[str] = None) -> None:
        self.scrolls += 1
        self.scroll_y = min(self.scroll_y + self.viewport_height, self.scroll_height - self.viewport_height)
        self._reveal()

    async def scroll_to_previous_page(self, container: Optional[str] = None) -> None:
        self.scroll_y = max(0, self.scroll_y - self.viewport_height)

    async def scroll_to_percent(self, percent: float) -> None:
        self.scroll_y = (self.scroll_height - self.viewport_height) * percent / 100

    async def selector_exists(self, selector: str) -> bool:
        return self._count(selector) > 0

    async def is_visible(self, selector: str) -> bool:
        return self._count(selector) > 0

    async def count_selector(self, selector: str) -> int:
        return self._count(selector)

    async def query_selector_all(self, selector, id_selector=None, id_attribute=None) -> List[ListItem]:
        if selector != self.list_item:
            return []
        return [
            ListItem(index=i, text=item["text"], href=item.get("href"), data_id=item.get("id"))
            for i, item in enumerate(self.items[: self.visible])
        ]

    async def get_text_from_selector(self, selector: str) -> List[str]:
        if selector == self.details and self.active is not None:
            return [self.items[self.active]["details"]]
        return []

    async def get_state(self) -> PageState:
        return PageState(
            url=self._url,
            title="Jobs",
            scroll_y=self.scroll_y,
            scroll_height=self.scroll_height,
            viewport_height=self.viewport_height,
            element_tree=self.dom,
        )

    async def get_dom_snapshot(self) -> DOMSnapshot:
        self.snapshots += 1
        return DOMSnapshot(url=self._url, title="Jobs", elements=self.dom)


class MockLLM(ILLMProvider):
    """Returns queued replies in order and records every conversation."""

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [])
        self.calls: List[List[Message]] = []

    @property
    def name(self) -> str:
        return "mock"

    @property
    def default_model(self) -> str:
        return "mock-model"

    async def complete(self, messages, model=None, temperature=0.0, max_tokens=None, **kwargs) -> LLMResponse:
        self.calls.append(list(messages))
        if not self.responses:
            raise AssertionError("MockLLM has no reply queued")
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(content=reply, model=model or self.default_model, usage=Usage(total_tokens=10))


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def executor_settings() -> ExecutorSettings:
    """Interpreter settings with millisecond waits."""
    return ExecutorSettings(
        poll_interval_ms=1,
        wait_timeout_ms=30,
        loading_timeout_ms=10,
        inline_details_wait_ms=0,
        details_settle_ms=0,
        extract_retries=2,
        extract_retry_delay_ms=0,
        max_repeat_iterations=10,
        no_new_items_limit=2,
    )


@pytest.fixture
def settings(executor_settings, tmp_path) -> Settings:
    """Settings with fast waits and a throwaway bindings file."""
    return Settings(
        executor=executor_settings,
        bindings=BindingSettings(store_path=str(tmp_path / "bindings.json")),
    )


@pytest.fixture
def make_bindings() -> Callable[..., PageBindings]:
    """Factory for the test site's bindings, with wire-key overrides."""
    def factory(**overrides: Any) -> PageBindings:
        return PageBindings.from_dict({**TEST_BINDINGS, **overrides})
    return factory


@pytest.fixture
def page_factory() -> Callable[..., MockPageDriver]:
    """Factory for MockPageDriver; `count` builds that many job cards."""
    def factory(count: int = 3, **kwargs: Any) -> MockPageDriver:
        kwargs.setdefault("items", make_items(count))
        return MockPageDriver(**kwargs)
    return factory


@pytest.fixture
def llm_factory() -> Callable[..., MockLLM]:
    def factory(*responses: Any) -> MockLLM:
        return MockLLM(list(responses))
    return factory
