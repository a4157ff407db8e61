"""
Page Driver Interface - the engine's only view of the live page.

The recipe interpreter never touches the DOM. Every click, query, scroll
and wait goes through an IPageDriver, which is implemented over Playwright
in `recipe_agent.browsers` and by simple in-memory fakes in tests.

Element addressing uses ElementRef (see `recipe_agent.recipe.element_ref`):
either a bare selector or "the index-th match of a selector".
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from recipe_agent.recipe.element_ref import ElementRef


@dataclass
class ListItem:
    """
    One match returned by query_selector_all.
    
    Attributes:
        index: Position among the matches of the queried selector
        text: Visible text of the element
        href: href of the element itself or of the id-selector match inside it
        data_id: A data-* identifier (data-id, data-job-id, ...) if present
        attribute: Value of the requested id attribute, if one was asked for
    """
    index: int
    text: str = ""
    href: Optional[str] = None
    data_id: Optional[str] = None
    attribute: Optional[str] = None


@dataclass
class PageState:
    """Scroll geometry and a serialized element tree of the current page."""
    url: str
    title: str = ""
    scroll_y: float = 0
    scroll_height: float = 0
    viewport_height: float = 0
    element_tree: str = ""


@dataclass
class DOMSnapshot:
    """
    Text form of a page handed to the LLM for binding discovery.
    
    Attributes:
        url: Page URL
        title: Page title
        elements: Serialized element tree (selectors, tags, text)
        visible_text: Optional plain visible text
    """
    url: str
    title: str = ""
    elements: str = ""
    visible_text: Optional[str] = None


class IPageDriver(ABC):
    """Abstract interface over one live browser page."""

    @property
    @abstractmethod
    def url(self) -> str:
        """Current page URL."""
        ...

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    @abstractmethod
    async def navigate_to(self, url: str) -> None:
        """Load a URL. Raises NavigationError on failure."""
        ...

    @abstractmethod
    async def go_back(self) -> None:
        """Go back one history entry."""
        ...

    @abstractmethod
    async def refresh(self) -> None:
        """Reload the current page."""
        ...

    # =========================================================================
    # ACTIONS
    # =========================================================================

    @abstractmethod
    async def click(self, ref: "ElementRef") -> bool:
        """Click the referenced element. Returns False if it does not exist."""
        ...

    @abstractmethod
    async def input_text(self, ref: "ElementRef", text: str) -> None:
        """Type text into the referenced element."""
        ...

    @abstractmethod
    async def select_option(self, ref: "ElementRef", option: str) -> bool:
        """Pick an option (by label or value) in a dropdown."""
        ...

    @abstractmethod
    async def is_checked(self, ref: "ElementRef") -> bool:
        """Checked state of a checkbox or toggle."""
        ...

    @abstractmethod
    async def send_keys(self, keys: str) -> None:
        """Press keys on the focused element ('Enter', 'Control+a', ...)."""
        ...

    # =========================================================================
    # SCROLLING
    # =========================================================================

    @abstractmethod
    async def scroll_to_next_page(self, container: Optional[str] = None) -> None:
        """Scroll one viewport down, inside container if given."""
        ...

    @abstractmethod
    async def scroll_to_previous_page(self, container: Optional[str] = None) -> None:
        """Scroll one viewport up, inside container if given."""
        ...

    @abstractmethod
    async def scroll_to_percent(self, percent: float) -> None:
        """Scroll the page to a percentage of its height (0 = top, 100 = bottom)."""
        ...

    # =========================================================================
    # QUERIES
    # =========================================================================

    @abstractmethod
    async def selector_exists(self, selector: str) -> bool:
        ...

    @abstractmethod
    async def is_visible(self, selector: str) -> bool:
        ...

    @abstractmethod
    async def count_selector(self, selector: str) -> int:
        ...

    @abstractmethod
    async def query_selector_all(
        self,
        selector: str,
        id_selector: Optional[str] = None,
        id_attribute: Optional[str] = None,
    ) -> List[ListItem]:
        """
        Describe every element matching selector.
        
        Args:
            selector: Selector for the elements
            id_selector: Optional inner selector whose href/attribute is reported
            id_attribute: Optional attribute name to report as ListItem.attribute
        """
        ...

    @abstractmethod
    async def get_text_from_selector(self, selector: str) -> List[str]:
        """Text of every element matching selector."""
        ...

    @abstractmethod
    async def get_state(self) -> PageState:
        ...

    @abstractmethod
    async def get_dom_snapshot(self) -> DOMSnapshot:
        ...
