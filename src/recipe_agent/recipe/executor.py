"""
Recipe Executor - interprets a recipe against a live page.

Walks a recipe's commands in order, resolving each one to page-driver
operations through the site's bindings. Flow-control commands recurse
into their bodies. When a top-level command fails with a selector-shaped
error, the executor asks a registered repair handler for a patch to the
binding the command depends on, merges it and retries that command once.

Whatever happens, the result carries every item collected so far.

Example:
    >>> executor = RecipeExecutor(page, bindings)
    >>> executor.set_binding_error_handler(navigator.repair_handler)
    >>> result = await executor.execute(recipe)
    >>> print(len(result.items), result.stats.items_processed)
"""

import asyncio
import hashlib
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from recipe_agent.config.settings import ExecutorSettings
from recipe_agent.exceptions import (
    BindingMissingError,
    CommandError,
    ElementNotFoundError,
    UnknownCommandError,
    WaitTimeoutError,
)
from recipe_agent.interfaces.page import IPageDriver, ListItem
from recipe_agent.recipe.bindings import (
    AllOfState,
    AnyOfState,
    CountAtLeastState,
    CountChangedState,
    ExistsState,
    GoneState,
    ItemIdExtractor,
    PageBindings,
    StateCondition,
    UrlContainsState,
    UrlMatchesState,
    VisibleState,
    merge_bindings,
)
from recipe_agent.recipe.commands import (
    AndCondition,
    AndUntil,
    CheckpointCountCommand,
    ClearCommand,
    ClickCommand,
    ClickIfExistsCommand,
    CollectedUntil,
    Command,
    Condition,
    ContinueCommand,
    EndCommand,
    ExistsCondition,
    ExtractDetailsCommand,
    ForEachItemCommand,
    GoBackCommand,
    GoToCommand,
    GoToFilterCommand,
    GoToItemCommand,
    IfCommand,
    ListEndCondition,
    MarkDoneCommand,
    MaxScrollsUntil,
    NewItemsCondition,
    NoMoreItemsUntil,
    NotCondition,
    OpenPageCommand,
    OrCondition,
    OrUntil,
    PageEndCondition,
    Recipe,
    RefreshCommand,
    RepeatCommand,
    SaveCommand,
    ScrollCommand,
    ScrollIfNotEndCommand,
    ScrollToCommand,
    SelectCommand,
    SetCheckedCommand,
    SubmitCommand,
    TypeCommand,
    UntilCondition,
    VisibleCondition,
    WaitCommand,
    WaitForCommand,
)
from recipe_agent.recipe.context import (
    CurrentItem,
    ExecutionContext,
    ExecutionStats,
    ExtractedItem,
)
from recipe_agent.recipe.element_ref import IndexedElement, Selector

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class CommandResult:
    """
    Outcome of one command.

    Attributes:
        success: Whether the command succeeded
        error: Error message on failure
        data: Command-specific output (e.g. {"clicked": False})
        repairable: Whether a binding repair could fix this failure
    """
    success: bool
    error: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    repairable: bool = False

    @classmethod
    def ok(cls, **data: Any) -> "CommandResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, repairable: bool = False) -> "CommandResult":
        return cls(success=False, error=error, repairable=repairable)


@dataclass
class ExecutionResult:
    """Outcome of a recipe run. `items` is populated even on failure."""
    success: bool
    items: List[ExtractedItem]
    stats: ExecutionStats
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "items": [item.to_dict() for item in self.items],
            "error": self.error,
            "stats": self.stats.to_dict(),
        }


@dataclass
class BindingFixRequest:
    """
    Everything a repair collaborator needs to patch one binding.

    Attributes:
        command: The command that failed
        binding: Wire key of the binding it depends on (e.g. LIST_LOADED)
        current_value: That binding's current value
        error: The failure message
        dom_context: Serialized element tree of the page at failure time
    """
    command: Command
    binding: str
    current_value: Any
    error: str
    dom_context: str = ""


RepairHandler = Callable[[BindingFixRequest], Awaitable[Optional[Mapping[str, Any]]]]


# =============================================================================
# ERROR CLASSIFICATION
# =============================================================================

BINDING_ERROR_PATTERNS = (
    "timeout",
    "waiting for",
    "not found",
    "no element",
    "selector",
    "cannot find",
    "does not exist",
    "not defined",
)


def is_binding_error(error: Optional[str]) -> bool:
    """Does an error message look like a selector/binding problem?"""
    if not error:
        return False
    text = error.lower()
    return any(pattern in text for pattern in BINDING_ERROR_PATTERNS)


_WAIT_FOR_BINDINGS = {
    "page": "PAGE_LOADED",
    "list": "LIST_LOADED",
    "listUpdate": "LIST_UPDATED",
    "details": "DETAILS_LOADED",
}

_GO_TO_BINDINGS = {
    "list": "LIST",
    "details": "DETAILS_PANEL",
    "searchBox": "SEARCH_BOX",
}


def binding_key_for(command: Command) -> Optional[str]:
    """Wire key of the binding a command depends on, if any."""
    if isinstance(command, WaitForCommand):
        return _WAIT_FOR_BINDINGS[command.target]
    if isinstance(command, GoToCommand):
        return _GO_TO_BINDINGS.get(command.name, "ELEMENTS")
    if isinstance(command, GoToFilterCommand):
        return "FILTERS"
    if isinstance(command, GoToItemCommand):
        return "LIST_ITEM"
    if isinstance(command, ExtractDetailsCommand):
        return "DETAILS_CONTENT"
    return None


# =============================================================================
# EXECUTOR
# =============================================================================

class RecipeExecutor:
    """
    Interpreter for recipes.

    One executor drives one page; commands run strictly one after another.
    Cancellation is cooperative: `should_stop` (and the recipe deadline) is
    checked between commands and at loop boundaries.
    """

    def __init__(
        self,
        page: IPageDriver,
        bindings: PageBindings,
        settings: Optional[ExecutorSettings] = None,
        repair_handler: Optional[RepairHandler] = None,
    ):
        self._page = page
        self._bindings = bindings
        self._settings = settings or ExecutorSettings()
        self._repair_handler = repair_handler
        self._context = ExecutionContext()
        self._max_items: Optional[int] = None
        self._deadline: Optional[float] = None
        self._timed_out = False

    @property
    def bindings(self) -> PageBindings:
        return self._bindings

    @property
    def context(self) -> ExecutionContext:
        return self._context

    def set_binding_error_handler(self, handler: Optional[RepairHandler]) -> None:
        """Register the collaborator asked to repair failing bindings."""
        self._repair_handler = handler

    def update_bindings(self, patch: Mapping[str, Any]) -> PageBindings:
        """Merge a partial patch into the live bindings."""
        self._bindings = merge_bindings(self._bindings, patch)
        logger.info(f"Bindings updated to version {self._bindings.version}: {sorted(patch)}")
        return self._bindings

    # =========================================================================
    # RUN
    # =========================================================================

    async def execute(self, recipe: Recipe) -> ExecutionResult:
        """
        Run a recipe from a fresh context.

        Returns:
            ExecutionResult with collected items, stats and the fatal error (if any)
        """
        self._context = ExecutionContext()
        self._max_items = recipe.config.max_items
        self._timed_out = False
        self._deadline = (
            time.monotonic() + recipe.config.timeout_ms / 1000
            if recipe.config.timeout_ms else None
        )
        ctx = self._context

        logger.info(f"Executing recipe '{recipe.name or recipe.id}' ({len(recipe.commands)} commands)")

        error: Optional[str] = None
        for command in recipe.commands:
            if self._should_stop():
                break

            result = await self.execute_command(command)
            if not result.success:
                result = await self._repair_and_retry(command, result)
            if not result.success:
                error = result.error
                logger.error(f"Recipe stopped at {command.type}: {error}")
                break

        if error is None and self._timed_out:
            error = f"Recipe timed out after {recipe.config.timeout_ms}ms"

        ctx.stats.duration_ms = ctx.elapsed_ms()
        logger.info(
            f"Recipe finished: {len(ctx.collected)} items, "
            f"{ctx.stats.commands_executed} commands, {ctx.stats.duration_ms:.0f}ms"
        )

        return ExecutionResult(
            success=error is None,
            items=list(ctx.collected),
            stats=ctx.stats,
            error=error,
        )

    async def execute_command(self, command: Command) -> CommandResult:
        """Run one command; every exception becomes a failed result."""
        self._context.stats.commands_executed += 1
        logger.debug(f"-> {command.type}")

        try:
            return await self._dispatch(command)
        except (ElementNotFoundError, BindingMissingError, WaitTimeoutError) as e:
            return CommandResult.fail(e.message, repairable=True)
        except UnknownCommandError as e:
            return CommandResult.fail(e.message)
        except CommandError as e:
            return CommandResult.fail(e.message)
        except Exception as e:
            message = str(e) or type(e).__name__
            return CommandResult.fail(message, repairable=is_binding_error(message))

    def _should_stop(self) -> bool:
        ctx = self._context
        if ctx.should_stop:
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            logger.warning("Recipe deadline reached, stopping")
            ctx.should_stop = True
            self._timed_out = True
            return True
        return False

    async def _repair_and_retry(self, command: Command, failed: CommandResult) -> CommandResult:
        key = binding_key_for(command)
        if not failed.repairable or key is None or self._repair_handler is None:
            return failed

        logger.warning(f"{command.type} failed ({failed.error}), requesting a fix for {key}")
        request = BindingFixRequest(
            command=command,
            binding=key,
            current_value=self._bindings.get_value(key),
            error=failed.error or "",
            dom_context=await self._dom_context(),
        )

        try:
            fixes = await self._repair_handler(request)
        except Exception as e:
            logger.error(f"Binding repair for {key} raised: {e}")
            return failed

        if not fixes:
            logger.info(f"No fix available for {key}")
            return failed

        try:
            self.update_bindings(fixes)
        except ValidationError as e:
            logger.error(f"Rejected invalid fix for {key}: {e}")
            return failed
        self._context.stats.binding_fixes += 1

        retried = await self.execute_command(command)
        if retried.success:
            logger.info(f"{command.type} succeeded after fixing {key}")
            return retried
        return CommandResult.fail(f"Command failed after fix: {retried.error}")

    async def _dom_context(self) -> str:
        try:
            state = await self._page.get_state()
        except Exception as e:
            logger.warning(f"Could not capture page state for repair: {e}")
            return ""
        return state.element_tree

    # =========================================================================
    # DISPATCH
    # =========================================================================

    async def _dispatch(self, command: Command) -> CommandResult:
        page = self._page
        ctx = self._context

        # Navigation
        if isinstance(command, OpenPageCommand):
            await page.navigate_to(command.url)
            return CommandResult.ok(url=command.url)
        elif isinstance(command, GoBackCommand):
            await page.go_back()
            return CommandResult.ok()
        elif isinstance(command, RefreshCommand):
            await page.refresh()
            return CommandResult.ok()

        # Waiting
        elif isinstance(command, WaitForCommand):
            return await self._wait_for(command.target)
        elif isinstance(command, WaitCommand):
            await asyncio.sleep(command.seconds)
            return CommandResult.ok()

        # Focus
        elif isinstance(command, GoToCommand):
            return await self._focus(self._focus_selector(command.name))
        elif isinstance(command, GoToFilterCommand):
            spec = self._bindings.filters.get(command.name)
            if spec is None:
                raise BindingMissingError(
                    f'Filter "{command.name}" not defined in FILTERS bindings', "FILTERS", command.type
                )
            return await self._focus(spec.selector)
        elif isinstance(command, GoToItemCommand):
            return await self._go_to_item(command.which)

        # Actions
        elif isinstance(command, TypeCommand):
            await page.input_text(self._require_focus("TYPE"), command.text)
            return CommandResult.ok()
        elif isinstance(command, SubmitCommand):
            await page.send_keys("Enter")
            return CommandResult.ok()
        elif isinstance(command, ClickCommand):
            return await self._click()
        elif isinstance(command, ClickIfExistsCommand):
            return await self._click_if_exists(command.name)
        elif isinstance(command, SelectCommand):
            if not await page.select_option(self._require_focus("SELECT"), command.option):
                raise CommandError(f'Option "{command.option}" not available', command.type)
            return CommandResult.ok(option=command.option)
        elif isinstance(command, ClearCommand):
            await page.send_keys("Control+a")
            await page.send_keys("Backspace")
            return CommandResult.ok()
        elif isinstance(command, SetCheckedCommand):
            ref = self._require_focus("SET_CHECKED")
            changed = await page.is_checked(ref) != command.checked
            if changed:
                await page.click(ref)
            return CommandResult.ok(changed=changed)

        # Scrolling
        elif isinstance(command, ScrollCommand):
            await self._scroll(command.target, command.direction)
            return CommandResult.ok()
        elif isinstance(command, ScrollIfNotEndCommand):
            if await self._at_page_end():
                return CommandResult.ok(scrolled=False)
            await self._scroll(command.target, "down")
            return CommandResult.ok(scrolled=True)
        elif isinstance(command, ScrollToCommand):
            ctx.stats.scrolls_performed += 1
            await page.scroll_to_percent(command.percent)
            return CommandResult.ok()

        # Data
        elif isinstance(command, ExtractDetailsCommand):
            return await self._extract_details(command.selectors)
        elif isinstance(command, SaveCommand):
            return self._save(command.save_as)
        elif isinstance(command, MarkDoneCommand):
            return self._mark_done()

        # Flow control
        elif isinstance(command, ForEachItemCommand):
            return await self._for_each_item(command)
        elif isinstance(command, IfCommand):
            return await self._if(command)
        elif isinstance(command, RepeatCommand):
            return await self._repeat(command)
        elif isinstance(command, CheckpointCountCommand):
            ctx.checkpoint_item_count = await self._count_items()
            return CommandResult.ok(count=ctx.checkpoint_item_count)
        elif isinstance(command, ContinueCommand):
            ctx.should_continue = True
            return CommandResult.ok()
        elif isinstance(command, EndCommand):
            ctx.should_stop = True
            return CommandResult.ok()

        raise UnknownCommandError(getattr(command, "type", type(command).__name__))

    # =========================================================================
    # WAITING
    # =========================================================================

    async def _wait_for(self, target: str) -> CommandResult:
        b = self._bindings
        s = self._settings

        if target == "page":
            await self._wait_until(b.page_loaded or ExistsState(exists="body"))
        elif target == "list":
            await self._wait_until(b.list_loaded or ExistsState(exists=self._require_list_item()))
        elif target == "listUpdate":
            await self._wait_until(b.list_updated or CountChangedState(count_changed=self._require_list_item()))
        elif target == "details":
            if b.click_behavior == "inline":
                await asyncio.sleep(s.inline_details_wait_ms / 1000)
                return CommandResult.ok(skipped=True)
            if b.loading is not None:
                gone = await self._poll(self._negate(b.loading), s.loading_timeout_ms)
                if not gone:
                    logger.warning("Loading indicator still present, continuing")
            await self._wait_until(b.details_loaded or ExistsState(exists=b.details_panel or "body"))
            await asyncio.sleep(s.details_settle_ms / 1000)
        else:
            raise CommandError(f"Unknown wait target: {target}", "WAIT_FOR")

        return CommandResult.ok(target=target)

    def _negate(self, condition: StateCondition) -> Callable[[], Awaitable[bool]]:
        async def check() -> bool:
            return not await self._check_state(condition)
        return check

    async def _poll(self, check: Callable[[], Awaitable[bool]], timeout_ms: int) -> bool:
        """Re-run check every poll interval until it holds or time runs out."""
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            if await check():
                return True
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(self._settings.poll_interval_ms / 1000)

    async def _wait_until(self, condition: StateCondition, timeout_ms: Optional[int] = None) -> None:
        timeout_ms = timeout_ms or self._settings.wait_timeout_ms

        async def check() -> bool:
            return await self._check_state(condition)

        if await self._poll(check, timeout_ms):
            return

        described = json.dumps(condition.model_dump(by_alias=True))
        logger.warning(f"Timeout waiting for condition: {described}")
        raise WaitTimeoutError(f"Timeout waiting for condition: {described}", timeout_ms, described)

    async def _check_state(self, condition: StateCondition) -> bool:
        page = self._page

        if isinstance(condition, ExistsState):
            return await page.selector_exists(condition.exists)
        elif isinstance(condition, VisibleState):
            return await page.is_visible(condition.visible)
        elif isinstance(condition, GoneState):
            return not await page.selector_exists(condition.gone)
        elif isinstance(condition, CountChangedState):
            count = await page.count_selector(condition.count_changed)
            return count != self._context.checkpoint_item_count
        elif isinstance(condition, CountAtLeastState):
            threshold = condition.count_at_least
            return await page.count_selector(threshold.selector) >= threshold.count
        elif isinstance(condition, UrlContainsState):
            return condition.url_contains in page.url
        elif isinstance(condition, UrlMatchesState):
            return re.search(condition.url_matches, page.url) is not None
        elif isinstance(condition, AllOfState):
            for part in condition.all_of:
                if not await self._check_state(part):
                    return False
            return True
        elif isinstance(condition, AnyOfState):
            for part in condition.any_of:
                if await self._check_state(part):
                    return True
            return False

        raise TypeError(f"Unhandled state condition: {condition!r}")

    # =========================================================================
    # FOCUS AND ACTIONS
    # =========================================================================

    def _focus_selector(self, name: str) -> str:
        b = self._bindings
        if name == "searchBox":
            if not b.search_box:
                raise BindingMissingError("SEARCH_BOX not defined in bindings", "SEARCH_BOX", "GO_TO")
            return b.search_box
        if name == "list":
            if not b.list_container:
                raise BindingMissingError("LIST not defined in bindings", "LIST", "GO_TO")
            return b.list_container
        if name == "details":
            if not b.details_panel:
                raise BindingMissingError("DETAILS_PANEL not defined in bindings", "DETAILS_PANEL", "GO_TO")
            return b.details_panel

        selector = b.elements.get(name)
        if not selector:
            raise BindingMissingError(f'Element "{name}" not defined in ELEMENTS bindings', "ELEMENTS", "GO_TO")
        return selector

    async def _focus(self, selector: str) -> CommandResult:
        if not await self._page.selector_exists(selector):
            raise ElementNotFoundError(f"Element not found: {selector}", selector)
        self._context.focus = Selector(selector)
        return CommandResult.ok(selector=selector)

    def _require_focus(self, action: str):
        if self._context.focus is None:
            raise CommandError(f"No element focused for {action}", action)
        return self._context.focus

    async def _click(self) -> CommandResult:
        ctx = self._context
        ref = self._require_focus("CLICK")

        on_item = ctx.current_item is not None and ref == ctx.current_item.ref
        if on_item and self._bindings.click_behavior == "inline":
            return CommandResult.ok(clicked=False, reason="inline")

        if not await self._page.click(ref):
            raise ElementNotFoundError(f"Element not found: {ref.describe()}", ref.selector)
        return CommandResult.ok(clicked=True)

    async def _click_if_exists(self, name: str) -> CommandResult:
        selector = self.resolve_binding_name(name)
        if not selector:
            logger.debug(f"CLICK_IF_EXISTS: {name} is not bound")
            return CommandResult.ok(clicked=False)
        if not await self._page.selector_exists(selector):
            return CommandResult.ok(clicked=False)

        clicked = await self._page.click(Selector(selector))
        return CommandResult.ok(clicked=clicked)

    def resolve_binding_name(self, name: str) -> Optional[str]:
        """Selector for a built-in binding name or a named element, if bound."""
        b = self._bindings
        builtin = {
            "nextPageButton": b.next_page_button,
            "loadMoreButton": b.load_more_button,
            "list": b.list_container,
            "listItem": b.list_item,
            "detailsPanel": b.details_panel,
            "searchBox": b.search_box,
            "searchSubmit": b.search_submit,
            "closeDetailsButton": b.close_details_button,
        }
        if name in builtin:
            return builtin[name] or None
        if name in b.elements:
            return b.elements[name] or None
        if name in b.filters:
            return b.filters[name].selector
        return None

    # =========================================================================
    # SCROLLING
    # =========================================================================

    async def _scroll(self, target: str, direction: str) -> None:
        self._context.stats.scrolls_performed += 1
        container = self._bindings.scroll_container if target == "list" else None
        if direction == "down":
            await self._page.scroll_to_next_page(container)
        else:
            await self._page.scroll_to_previous_page(container)

    async def _at_page_end(self) -> bool:
        state = await self._page.get_state()
        threshold = self._settings.page_end_threshold_px
        return state.scroll_y + state.viewport_height >= state.scroll_height - threshold

    # =========================================================================
    # ITEMS
    # =========================================================================

    def _require_list_item(self) -> str:
        if not self._bindings.list_item.strip():
            raise BindingMissingError("LIST_ITEM not defined in bindings", "LIST_ITEM")
        return self._bindings.list_item

    async def _count_items(self) -> int:
        if not self._bindings.list_item.strip():
            return 0
        return await self._page.count_selector(self._bindings.list_item)

    async def _query_items(self) -> List[ListItem]:
        extractor = self._bindings.item_id
        return await self._page.query_selector_all(
            self._require_list_item(),
            id_selector=extractor.selector if extractor else None,
            id_attribute=extractor.attribute if extractor and extractor.source == "attribute" else None,
        )

    def item_id(self, item: ListItem) -> str:
        """
        Stable id for a list item according to ITEM_ID.

        Falls back to the item's data id, then to a hash of its text, so the
        same element yields the same id across queries.
        """
        rule = self._bindings.item_id or ItemIdExtractor()

        candidate: Optional[str] = None
        if rule.source == "data":
            candidate = item.data_id
        elif rule.source == "attribute":
            candidate = item.attribute or item.data_id
        elif rule.source == "href":
            candidate = _match(item.href, rule.pattern)
        elif rule.source == "text":
            candidate = _match(item.text.strip(), rule.pattern)

        if candidate:
            return candidate
        if item.data_id:
            return item.data_id

        text = " ".join(item.text.split())
        if text:
            fallback = "item_" + hashlib.sha1(text.encode("utf-8")).hexdigest()[:12]
        else:
            fallback = f"item_{item.index}"
        logger.warning(f"ITEM_ID ({rule.source}) unresolved for item {item.index}, using {fallback}")
        return fallback

    def _to_current(self, item: ListItem) -> CurrentItem:
        return CurrentItem(
            id=self.item_id(item),
            index=item.index,
            ref=IndexedElement(self._bindings.list_item, item.index),
            text=item.text,
            href=item.href,
        )

    async def _go_to_item(self, which: str) -> CommandResult:
        ctx = self._context
        items = await self._query_items()
        if not items:
            raise ElementNotFoundError("No items found in list", self._bindings.list_item)

        if which == "current":
            if ctx.current_item is None:
                raise CommandError("No current item", "GO_TO_ITEM")
            ctx.focus = ctx.current_item.ref
            return CommandResult.ok(id=ctx.current_item.id, index=ctx.current_item.index)

        if which == "first":
            chosen = self._to_current(items[0])
        elif which == "next":
            position = ctx.current_index + 1
            if position >= len(items):
                raise CommandError("No more items in list", "GO_TO_ITEM")
            chosen = self._to_current(items[position])
        else:
            candidates = (self._to_current(item) for item in items)
            chosen = next((c for c in candidates if not ctx.is_processed(c.id)), None)
            if chosen is None:
                raise CommandError("No unprocessed items", "GO_TO_ITEM")

        ctx.set_current_item(chosen)
        return CommandResult.ok(id=chosen.id, index=chosen.index)

    # =========================================================================
    # DATA
    # =========================================================================

    async def _extract_details(self, selectors: Optional[List[str]]) -> CommandResult:
        ctx = self._context
        b = self._bindings
        s = self._settings

        if selectors:
            groups = [list(selectors)]
        elif b.click_behavior == "inline":
            groups = []
        else:
            # DETAILS_CONTENT pieces first, then the whole panel
            groups = [g for g in (list(b.details_content), [b.details_panel] if b.details_panel else []) if g]

        content = ""
        if groups:
            for attempt in range(s.extract_retries):
                content = await self._read_first_group(groups)
                if content:
                    break
                if attempt < s.extract_retries - 1:
                    await asyncio.sleep(s.extract_retry_delay_ms / 1000)

        if not content and ctx.current_item is not None:
            content = ctx.current_item.text.strip()

        if not content:
            selector = groups[0][0] if groups else b.list_item
            raise ElementNotFoundError("No content extracted", selector)

        ctx.extracted_content = content
        return CommandResult.ok(contentLength=len(content))

    async def _read_first_group(self, groups: List[List[str]]) -> str:
        for group in groups:
            texts: List[str] = []
            for selector in group:
                texts.extend(await self._page.get_text_from_selector(selector))
            content = "\n".join(t.strip() for t in texts if t and t.strip())
            if content:
                return content
        return ""

    def _save(self, label: str) -> CommandResult:
        ctx = self._context
        if ctx.current_item is None or not ctx.extracted_content:
            raise CommandError("No current item or content to save", "SAVE")

        ctx.collected.append(ExtractedItem(id=ctx.current_item.id, content=ctx.extracted_content, label=label))

        if self._max_items and len(ctx.collected) >= self._max_items:
            logger.info(f"Collected {len(ctx.collected)} items, reached maxItems")
            ctx.should_stop = True

        return CommandResult.ok(count=len(ctx.collected))

    def _mark_done(self) -> CommandResult:
        ctx = self._context
        if ctx.current_item is None:
            raise CommandError("No current item to mark done", "MARK_DONE")

        if ctx.current_item.id not in ctx.processed_ids:
            ctx.processed_ids.add(ctx.current_item.id)
            ctx.stats.items_processed += 1
        return CommandResult.ok(id=ctx.current_item.id)

    # =========================================================================
    # FLOW CONTROL
    # =========================================================================

    async def _for_each_item(self, command: ForEachItemCommand) -> CommandResult:
        ctx = self._context
        items = await self._query_items()
        if not items:
            logger.warning("FOR_EACH_ITEM_IN_LIST found no items")
            return CommandResult.ok(handled=0, skipped=0)

        handled = 0
        skipped = 0
        for item in items:
            if self._should_stop():
                break

            current = self._to_current(item)
            if command.skip_processed and ctx.is_processed(current.id):
                skipped += 1
                continue

            ctx.set_current_item(current)
            ctx.should_continue = False

            for sub in command.body:
                if ctx.should_stop or ctx.should_continue:
                    break
                result = await self.execute_command(sub)
                if not result.success:
                    logger.warning(f"Item {current.id}: {sub.type} failed: {result.error}")
                    break

            handled += 1
            if handled % self._settings.progress_every == 0:
                logger.info(f"Progress: {handled}/{len(items)} items, {len(ctx.collected)} collected")

        ctx.should_continue = False
        return CommandResult.ok(handled=handled, skipped=skipped)

    async def _if(self, command: IfCommand) -> CommandResult:
        ctx = self._context
        taken = await self.evaluate(command.condition)
        branch = command.then if taken else command.else_

        for sub in branch:
            if ctx.should_stop or ctx.should_continue:
                break
            result = await self.execute_command(sub)
            if not result.success:
                return result

        return CommandResult.ok(branch="then" if taken else "else")

    async def _repeat(self, command: RepeatCommand) -> CommandResult:
        ctx = self._context
        cap = self._settings.max_repeat_iterations
        # MAX_SCROLLS counts only the scrolls made inside this loop
        scrolls_at_start = ctx.stats.scrolls_performed

        for iteration in range(1, cap + 1):
            if self._should_stop():
                return CommandResult.ok(iterations=iteration - 1)

            count_before = await self._count_items()
            collected_before = len(ctx.collected)

            for sub in command.body:
                if self._should_stop():
                    break
                result = await self.execute_command(sub)
                if not result.success:
                    logger.debug(f"REPEAT iteration {iteration}: {sub.type} failed: {result.error}")

            progressed = (
                await self._count_items() > count_before
                or len(ctx.collected) > collected_before
            )
            ctx.no_new_items_count = 0 if progressed else ctx.no_new_items_count + 1

            if await self._check_until(command.until, scrolls_at_start):
                logger.info(f"REPEAT finished after {iteration} iterations")
                return CommandResult.ok(iterations=iteration)
            if await self._no_more_items():
                logger.info(f"REPEAT stopped after {iteration} iterations: no more items")
                return CommandResult.ok(iterations=iteration)

        logger.warning(f"REPEAT reached the safety cap of {cap} iterations")
        return CommandResult.ok(iterations=cap, capped=True)

    async def _no_more_items(self) -> bool:
        condition = self._bindings.no_more_items
        return condition is not None and await self._check_state(condition)

    async def _check_until(self, condition: UntilCondition, scrolls_at_start: int = 0) -> bool:
        ctx = self._context

        if isinstance(condition, CollectedUntil):
            return len(ctx.collected) >= condition.count
        elif isinstance(condition, NoMoreItemsUntil):
            if ctx.no_new_items_count >= self._settings.no_new_items_limit:
                return True
            return await self._no_more_items()
        elif isinstance(condition, MaxScrollsUntil):
            return ctx.stats.scrolls_performed - scrolls_at_start >= condition.count
        elif isinstance(condition, AndUntil):
            for part in condition.conditions:
                if not await self._check_until(part, scrolls_at_start):
                    return False
            return True
        elif isinstance(condition, OrUntil):
            for part in condition.conditions:
                if await self._check_until(part, scrolls_at_start):
                    return True
            return False

        raise TypeError(f"Unhandled until condition: {condition!r}")

    async def evaluate(self, condition: Condition) -> bool:
        """Evaluate an IF condition against the page and the run state."""
        if isinstance(condition, (ListEndCondition, PageEndCondition)):
            return await self._at_page_end()
        elif isinstance(condition, NewItemsCondition):
            return await self._count_items() > self._context.checkpoint_item_count
        elif isinstance(condition, ExistsCondition):
            selector = self.resolve_binding_name(condition.name)
            return bool(selector) and await self._page.selector_exists(selector)
        elif isinstance(condition, VisibleCondition):
            selector = self.resolve_binding_name(condition.name)
            return bool(selector) and await self._page.is_visible(selector)
        elif isinstance(condition, NotCondition):
            return not await self.evaluate(condition.condition)
        elif isinstance(condition, AndCondition):
            for part in condition.conditions:
                if not await self.evaluate(part):
                    return False
            return True
        elif isinstance(condition, OrCondition):
            for part in condition.conditions:
                if await self.evaluate(part):
                    return True
            return False

        raise TypeError(f"Unhandled condition: {condition!r}")


def _match(value: Optional[str], pattern: Optional[str]) -> Optional[str]:
    """First regex group of pattern in value, or value itself when there is no match."""
    if not value:
        return None
    if pattern:
        found = re.search(pattern, value)
        if found:
            return found.group(1) if found.groups() else found.group(0)
    return value
