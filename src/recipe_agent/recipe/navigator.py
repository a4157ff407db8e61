"""
Recipe Navigator - LLM-driven binding discovery and repair.

Provides:
- discover_bindings: full PageBindings record from a DOM snapshot
- fix_binding: a one-key patch for a binding that stopped matching
- repair_handler: fix_binding in the shape RecipeExecutor expects
- extract_json_object: tolerant JSON extraction from model output

Model output is never trusted as-is: it goes through the same coercion,
defaults and validation as any other bindings record.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from recipe_agent.config.settings import BindingSettings
from recipe_agent.exceptions import LLMConnectionError, RateLimitError
from recipe_agent.interfaces.llm import ILLMProvider, Message
from recipe_agent.interfaces.page import DOMSnapshot
from recipe_agent.recipe.bindings import (
    PageBindings,
    coerce_binding_fields,
    finalize_bindings,
    validate_bindings,
)
from recipe_agent.recipe.executor import BindingFixRequest
from recipe_agent.recipe.prompts import PromptBuilder
from recipe_agent.utils.retry import RetryConfig, retry_async

logger = logging.getLogger(__name__)


@dataclass
class BindingDiscoveryResult:
    """Outcome of discover_bindings."""
    success: bool
    bindings: Optional[PageBindings] = None
    error: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class BindingFixResult:
    """Outcome of fix_binding. `fixes` is a wire-format partial patch."""
    success: bool
    fixes: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


def extract_json_object(text: str) -> Optional[Dict[str, Any]]:
    """
    Return the first balanced, parseable JSON object in text.

    Braces inside JSON strings are ignored, so prose before or after the
    object and code fences around it do not matter.
    """
    if not text:
        return None

    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False

        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue

            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    try:
                        value = json.loads(text[start:pos + 1])
                    except json.JSONDecodeError:
                        break
                    if isinstance(value, dict):
                        return value
                    break

        start = text.find("{", start + 1)

    return None


class RecipeNavigator:
    """
    Discovers and repairs bindings with an LLM.

    Example:
        >>> navigator = RecipeNavigator(provider)
        >>> result = await navigator.discover_bindings(await page.get_dom_snapshot())
        >>> if result.success:
        ...     executor = RecipeExecutor(page, result.bindings)
        ...     executor.set_binding_error_handler(navigator.repair_handler)
    """

    def __init__(
        self,
        llm: ILLMProvider,
        settings: Optional[BindingSettings] = None,
        model: Optional[str] = None,
        retry: Optional[RetryConfig] = None,
    ):
        """
        Args:
            llm: Text-generation provider
            settings: Snapshot size limits
            model: Model override passed to the provider
            retry: Retry policy for transient LLM failures
        """
        self._llm = llm
        self._settings = settings or BindingSettings()
        self._model = model
        self._retry = retry or RetryConfig(
            max_attempts=3,
            initial_delay_ms=1000,
            retry_on=(LLMConnectionError, RateLimitError),
        )
        self._prompts = PromptBuilder(
            max_snapshot_chars=self._settings.max_snapshot_chars,
            max_repair_context_chars=self._settings.max_repair_context_chars,
        )

        self._total_calls = 0
        self._failed_calls = 0
        self._total_tokens = 0

    # =========================================================================
    # DISCOVERY
    # =========================================================================

    async def discover_bindings(self, snapshot: Optional[DOMSnapshot]) -> BindingDiscoveryResult:
        """
        Infer a complete bindings record for the page in snapshot.

        Fails fast on a missing or tiny snapshot. Otherwise only an LLM
        failure, an unparsable reply or empty LIST/LIST_ITEM fail discovery;
        other gaps are filled with defaults and reported as warnings.
        """
        elements = (snapshot.elements or "").strip() if snapshot else ""
        if len(elements) < self._settings.min_snapshot_chars:
            logger.error("DOM snapshot is empty or too small")
            return BindingDiscoveryResult(
                success=False,
                error="DOM snapshot is empty - page may not be fully loaded",
            )

        logger.info(f"Discovering bindings for {snapshot.url} ({len(elements)} chars of DOM)")
        system, user = self._prompts.build_discovery(
            url=snapshot.url,
            title=snapshot.title,
            elements=elements,
            visible_text=snapshot.visible_text,
        )

        try:
            text = await self._call_llm(system, user)
        except Exception as e:
            logger.error(f"Binding discovery call failed: {e}")
            return BindingDiscoveryResult(success=False, error=f"LLM call failed: {e}")

        raw = extract_json_object(text)
        if raw is None:
            logger.error(f"No JSON object in discovery response: {text[:300]!r}")
            return BindingDiscoveryResult(success=False, error="No JSON found in LLM response")

        try:
            bindings = finalize_bindings(raw, snapshot.url)
        except ValidationError as e:
            return BindingDiscoveryResult(success=False, error=f"Discovered bindings are malformed: {e}")

        if not bindings.list_container or not bindings.list_item:
            return BindingDiscoveryResult(
                success=False,
                error="Discovery did not produce LIST and LIST_ITEM selectors",
            )

        validation = validate_bindings(bindings)
        warnings = validation.errors + validation.warnings
        for warning in warnings:
            logger.warning(f"Discovered bindings: {warning}")

        logger.info(f"Discovered bindings {bindings.id}: LIST={bindings.list_container} LIST_ITEM={bindings.list_item}")
        return BindingDiscoveryResult(success=True, bindings=bindings, warnings=warnings)

    # =========================================================================
    # REPAIR
    # =========================================================================

    async def fix_binding(self, request: BindingFixRequest) -> BindingFixResult:
        """
        Ask for a corrected value of request.binding.

        Only the requested key is taken from the reply. A reply that repeats
        the current value counts as no fix.
        """
        logger.info(f"Repairing {request.binding} after {request.command.type}: {request.error}")
        system, user = self._prompts.build_fix(
            command=request.command,
            binding=request.binding,
            current_value=request.current_value,
            error=request.error,
            dom_context=request.dom_context,
        )

        try:
            text = await self._call_llm(system, user)
        except Exception as e:
            logger.error(f"Binding repair call failed: {e}")
            return BindingFixResult(success=False, error=f"LLM call failed: {e}")

        raw = extract_json_object(text)
        if not raw:
            return BindingFixResult(success=False, error="No fix in LLM response")

        value = coerce_binding_fields(raw).get(request.binding)
        if value is None:
            return BindingFixResult(success=False, error=f"Response has no usable {request.binding}")
        if value == request.current_value:
            return BindingFixResult(success=False, error=f"Proposed {request.binding} is unchanged")

        # Every field has a default, so a one-key record checks the value's shape
        try:
            PageBindings.model_validate({request.binding: value})
        except ValidationError as e:
            logger.warning(f"Proposed {request.binding} is not valid: {e}")
            return BindingFixResult(success=False, error=f"Proposed {request.binding} is not valid")

        logger.info(f"Proposed {request.binding}: {value}")
        return BindingFixResult(success=True, fixes={request.binding: value})

    async def repair_handler(self, request: BindingFixRequest) -> Optional[Dict[str, Any]]:
        """Executor callback: the patch on success, None otherwise."""
        result = await self.fix_binding(request)
        return result.fixes if result.success else None

    # =========================================================================
    # LLM
    # =========================================================================

    async def _call_llm(self, system: str, user: str) -> str:
        messages = [Message.system(system), Message.user(user)]
        self._total_calls += 1
        try:
            response = await retry_async(
                self._llm.complete,
                self._retry,
                messages,
                model=self._model,
                temperature=0.0,
            )
        except Exception:
            self._failed_calls += 1
            raise

        self._total_tokens += response.usage.total_tokens
        return response.content

    def get_stats(self) -> Dict[str, Any]:
        """Call and token counters."""
        return {
            "total_calls": self._total_calls,
            "failed_calls": self._failed_calls,
            "total_tokens": self._total_tokens,
        }
