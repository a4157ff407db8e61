"""
Prompt Templates - LLM prompts for binding discovery and repair.

Both prompts ask for a single JSON object and nothing else. The reply is
still parsed defensively (see navigator.extract_json_object), since models
wrap JSON in prose or code fences anyway.
"""

import json
from dataclasses import dataclass
from typing import Any, Tuple

# =============================================================================
# DISCOVERY PROMPT
# =============================================================================

DISCOVERY_SYSTEM = """You analyze job search pages and map their layout to CSS selectors for an automation engine.

RULES:
1. Output ONLY one JSON object, with no markdown and no explanation
2. Use ONLY selectors that appear in the provided DOM
3. Prefer stable hooks: data attributes ([data-job-id], [data-occludable-job-id]), ids, then class names
4. Copy class names exactly: class="jobs-list" becomes ".jobs-list"
5. LIST and LIST_ITEM are REQUIRED and must never be empty strings

PAGE LAYOUT:
Most job boards show a scrollable LIST of repeating job cards and, next to it,
a DETAILS PANEL that fills in when a card is clicked. Header and navigation
links (Home, Jobs, Messaging, ...) are NOT the job list.

- LIST: the container holding every job card
- LIST_ITEM: one repeating job card inside LIST
- DETAILS_PANEL: where full details appear after a click (null if cards expand inline)
- DETAILS_CONTENT: selectors for the pieces inside the details panel

OUTPUT SHAPE:
{
  "LIST": ".jobs-list",
  "LIST_ITEM": ".jobs-list > li[data-job-id]",
  "DETAILS_PANEL": ".job-details or null",
  "DETAILS_CONTENT": [".job-title", ".company-name", ".job-description"],
  "SCROLL_CONTAINER": "selector if the list scrolls on its own, else null",
  "NEXT_PAGE_BUTTON": "pagination next button, or null",
  "LOAD_MORE_BUTTON": "load more button, or null",
  "SEARCH_BOX": "keyword search input, or null",
  "PAGE_LOADED": {"exists": "same selector as LIST"},
  "LIST_LOADED": {"exists": "same selector as LIST_ITEM"},
  "DETAILS_LOADED": {"exists": "selector present once details are rendered"},
  "NO_MORE_ITEMS": {"exists": "selector of the 'no results' message"},
  "ITEM_ID": {"from": "data", "attribute": "data-job-id"},
  "SCROLL_BEHAVIOR": "infinite | paginated | load_more_button | static",
  "CLICK_BEHAVIOR": "shows_panel | navigates | expands | inline",
  "ELEMENTS": {"applyButton": "selector", "saveButton": "selector"}
}

ITEM_ID "from" is one of: "href" (with "selector" for the link and a regex "pattern"
whose first group is the id), "attribute" (with "attribute"), "data", or "text"."""

DISCOVERY_USER = """Map this job search page to selectors.

URL: {url}
TITLE: {title}

DOM ELEMENTS:
{elements}
{visible_text}
Focus on the main job listing area, not the site header.
Output ONLY the JSON object."""

# =============================================================================
# REPAIR PROMPT
# =============================================================================

FIX_SYSTEM = """You repair one broken binding of a web automation engine.

A command failed because a selector or page-state condition no longer matches
the page. Find the correct value in the current DOM.

RULES:
1. Output ONLY one JSON object whose single key is the binding name
2. Use ONLY selectors that appear in the DOM
3. Selector bindings take a string; conditions take {"exists": "selector"};
   DETAILS_CONTENT takes a list of selectors; ELEMENTS and FILTERS take an object of names
4. If nothing in the DOM fits, output {}"""

FIX_USER = """A command failed. Fix the binding.

COMMAND: {command}
BINDING: {binding}
CURRENT VALUE: {current_value}
ERROR: {error}

CURRENT DOM:
{dom_context}

What should {binding} be instead? Output JSON like:
{{"{binding}": <new value>}}"""


@dataclass
class PromptBuilder:
    """
    Build discovery and repair prompts.

    Handles:
    - Template substitution
    - Truncating DOM text to the configured budgets
    """

    max_snapshot_chars: int = 30000
    max_repair_context_chars: int = 5000

    def build_discovery(
        self,
        url: str,
        title: str,
        elements: str,
        visible_text: str | None = None,
    ) -> Tuple[str, str]:
        """Build the (system, user) pair for binding discovery."""
        text_block = ""
        if visible_text:
            text_block = f"\nVISIBLE TEXT (excerpt):\n{visible_text[:2000]}\n"

        user_prompt = DISCOVERY_USER.format(
            url=url,
            title=title or "(untitled)",
            elements=elements[: self.max_snapshot_chars],
            visible_text=text_block,
        )
        return DISCOVERY_SYSTEM, user_prompt

    def build_fix(
        self,
        command: Any,
        binding: str,
        current_value: Any,
        error: str,
        dom_context: str,
    ) -> Tuple[str, str]:
        """Build the (system, user) pair for repairing one binding."""
        if hasattr(command, "model_dump"):
            command = command.model_dump(by_alias=True, exclude_none=True)

        user_prompt = FIX_USER.format(
            command=json.dumps(command),
            binding=binding,
            current_value=json.dumps(current_value),
            error=error,
            dom_context=dom_context[: self.max_repair_context_chars] or "(unavailable)",
        )
        return FIX_SYSTEM, user_prompt


# Convenience pairs
DISCOVERY_PROMPT = (DISCOVERY_SYSTEM, DISCOVERY_USER)
FIX_PROMPT = (FIX_SYSTEM, FIX_USER)
