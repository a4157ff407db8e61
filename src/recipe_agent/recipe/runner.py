"""
Recipe Runner - end-to-end run of a recipe on a site.

Handles:
- Reusing stored bindings when they are fresh and valid
- Discovering bindings from the live page otherwise
- Executing with LLM repair of failing bindings
- One retry with forced rediscovery after a binding-shaped failure
- Saving bindings after a successful run (optimistic version check)
- Optional structuring of collected items into JobData
"""

import asyncio
import logging
import time
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from recipe_agent.config.settings import Settings
from recipe_agent.exceptions import BindingDiscoveryError, StaleBindingsError
from recipe_agent.interfaces.page import DOMSnapshot, IPageDriver
from recipe_agent.recipe.bindings import PageBindings, validate_bindings
from recipe_agent.recipe.commands import OpenPageCommand, Recipe
from recipe_agent.recipe.context import ExtractedItem
from recipe_agent.recipe.executor import RecipeExecutor, is_binding_error
from recipe_agent.recipe.navigator import RecipeNavigator
from recipe_agent.recipe.store import BindingStore

if TYPE_CHECKING:
    from recipe_agent.extraction.job_extractor import JobData, JobExtractor

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

MAX_ATTEMPTS = 2
SNAPSHOT_ATTEMPTS = 3


@dataclass
class RunnerStats:
    """Counters summed over every attempt of a run."""
    duration_ms: float = 0
    attempts: int = 0
    commands_executed: int = 0
    items_processed: int = 0
    scrolls_performed: int = 0
    binding_fixes: int = 0


@dataclass
class RunnerResult:
    """Outcome of RecipeRunner.run."""
    success: bool
    items: List[ExtractedItem] = field(default_factory=list)
    jobs: List["JobData"] = field(default_factory=list)
    bindings: Optional[PageBindings] = None
    error: Optional[str] = None
    stats: RunnerStats = field(default_factory=RunnerStats)
    logs: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "items": [item.to_dict() for item in self.items],
            "jobs": [job.model_dump(by_alias=True) for job in self.jobs],
            "bindings": self.bindings.to_dict() if self.bindings else None,
            "error": self.error,
            "stats": asdict(self.stats),
        }


class RecipeRunner:
    """
    Ties navigator, executor, store and extractor together.

    Example:
        >>> runner = RecipeRunner(page, RecipeNavigator(llm), JsonFileBindingStore())
        >>> result = await runner.run(job_listing_extraction("https://example.com/jobs"))
    """

    def __init__(
        self,
        page: IPageDriver,
        navigator: RecipeNavigator,
        store: BindingStore,
        extractor: Optional["JobExtractor"] = None,
        settings: Optional[Settings] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self._page = page
        self._navigator = navigator
        self._store = store
        self._extractor = extractor
        self._settings = settings or Settings()
        self._on_progress = on_progress
        self._logs: List[str] = []

    def _progress(self, message: str) -> None:
        self._logs.append(message)
        logger.info(message)
        if self._on_progress:
            self._on_progress(message)

    async def run(self, recipe: Recipe, force_rediscover: bool = False) -> RunnerResult:
        """Run recipe, acquiring bindings first. Never raises for run failures."""
        started = time.time()
        self._logs = []
        stats = RunnerStats()
        result = RunnerResult(success=False, stats=stats, logs=self._logs)
        rediscover = force_rediscover

        for attempt in range(1, MAX_ATTEMPTS + 1):
            stats.attempts = attempt
            self._progress(f"Attempt {attempt}/{MAX_ATTEMPTS}: acquiring bindings")

            try:
                bindings, expected_version = await self._acquire_bindings(recipe, rediscover)
            except BindingDiscoveryError as e:
                result.error = e.message
                self._progress(f"Binding discovery failed: {e.message}")
                rediscover = True
                continue

            executor = RecipeExecutor(
                self._page,
                bindings,
                settings=self._settings.executor,
                repair_handler=self._navigator.repair_handler,
            )
            self._progress(f"Executing '{recipe.name or recipe.id}' with bindings {bindings.id} v{bindings.version}")
            outcome = await executor.execute(recipe)

            stats.commands_executed += outcome.stats.commands_executed
            stats.items_processed += outcome.stats.items_processed
            stats.scrolls_performed += outcome.stats.scrolls_performed
            stats.binding_fixes += outcome.stats.binding_fixes

            result.items = outcome.items
            result.bindings = executor.bindings
            result.error = outcome.error
            result.success = outcome.success

            if outcome.success:
                self._progress(f"Collected {len(outcome.items)} items")
                self._save(executor.bindings, expected_version)
                break

            self._progress(f"Run failed: {outcome.error}")
            if attempt < MAX_ATTEMPTS and not outcome.items and is_binding_error(outcome.error):
                self._progress("Failure looks binding-related, rediscovering")
                rediscover = True
                continue
            break

        if self._extractor and result.items:
            self._progress(f"Structuring {len(result.items)} items")
            result.jobs = await self._extractor.extract_many(result.items)

        stats.duration_ms = (time.time() - started) * 1000
        return result

    # =========================================================================
    # BINDINGS
    # =========================================================================

    def _start_url(self, recipe: Recipe) -> Optional[str]:
        for command in recipe.commands:
            if isinstance(command, OpenPageCommand):
                return command.url
        return None

    async def _acquire_bindings(self, recipe: Recipe, force: bool) -> Tuple[PageBindings, Optional[int]]:
        """
        Stored bindings if usable, otherwise freshly discovered ones.

        Returns:
            (bindings, version to expect in the store when saving)
        """
        url = self._start_url(recipe) or self._page.url
        stored = self._store.query(url)

        if stored is not None and not force:
            max_age = self._settings.bindings.max_age_hours
            validation = validate_bindings(stored)
            if stored.age_hours() > max_age:
                self._progress(f"Stored bindings {stored.id} are older than {max_age}h")
            elif not validation.valid:
                self._progress(f"Stored bindings {stored.id} are invalid: {'; '.join(validation.errors)}")
            else:
                self._progress(f"Using stored bindings {stored.id} v{stored.version}")
                return stored, stored.version

        snapshot = await self._snapshot(url)
        discovered = await self._navigator.discover_bindings(snapshot)
        if not discovered.success or discovered.bindings is None:
            raise BindingDiscoveryError(discovered.error or "Binding discovery failed")

        bindings = discovered.bindings
        if stored is not None:
            # Replace the stale record rather than adding a second one
            bindings = bindings.model_copy(update={"id": stored.id, "version": stored.version + 1})
            return bindings, stored.version
        return bindings, None

    async def _snapshot(self, url: str) -> DOMSnapshot:
        if url and self._page.url != url:
            await self._page.navigate_to(url)

        minimum = self._settings.bindings.min_snapshot_chars
        snapshot = await self._page.get_dom_snapshot()
        for _ in range(SNAPSHOT_ATTEMPTS - 1):
            if len(snapshot.elements.strip()) >= minimum:
                break
            await asyncio.sleep(1)
            snapshot = await self._page.get_dom_snapshot()
        return snapshot

    def _save(self, bindings: PageBindings, expected_version: Optional[int]) -> None:
        try:
            self._store.put(bindings, expected_version=expected_version)
        except StaleBindingsError as e:
            logger.warning(f"Not saving bindings: {e}")
            return
        self._progress(f"Saved bindings {bindings.id} v{bindings.version}")
