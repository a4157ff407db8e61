"""
Recipe module - the list/detail automation DSL and its interpreter.

Usage:
    from recipe_agent.recipe import RecipeExecutor, RecipeNavigator, job_listing_extraction

    recipe = job_listing_extraction("https://example.com/jobs", max_items=10)
    executor = RecipeExecutor(page, bindings)
    result = await executor.execute(recipe)
"""

from recipe_agent.recipe import builders
from recipe_agent.recipe.bindings import (
    EXAMPLE_BINDINGS,
    BindingValidation,
    FilterBinding,
    ItemIdExtractor,
    PageBindings,
    StateCondition,
    finalize_bindings,
    matches_url,
    merge_bindings,
    validate_bindings,
)
from recipe_agent.recipe.commands import (
    COMMAND_TYPES,
    Command,
    Condition,
    Recipe,
    RecipeConfig,
    UntilCondition,
    parse_commands,
    parse_recipe,
)
from recipe_agent.recipe.context import (
    CurrentItem,
    ExecutionContext,
    ExecutionStats,
    ExtractedItem,
)
from recipe_agent.recipe.element_ref import ElementRef, IndexedElement, Selector
from recipe_agent.recipe.executor import (
    BindingFixRequest,
    CommandResult,
    ExecutionResult,
    RecipeExecutor,
    is_binding_error,
)
from recipe_agent.recipe.navigator import (
    BindingDiscoveryResult,
    BindingFixResult,
    RecipeNavigator,
    extract_json_object,
)
from recipe_agent.recipe.runner import RecipeRunner, RunnerResult, RunnerStats
from recipe_agent.recipe.store import BindingStore, InMemoryBindingStore, JsonFileBindingStore
from recipe_agent.recipe.templates import job_listing_extraction, job_listing_with_search

__all__ = [
    # Commands
    "builders",
    "COMMAND_TYPES",
    "Command",
    "Condition",
    "UntilCondition",
    "Recipe",
    "RecipeConfig",
    "parse_commands",
    "parse_recipe",
    # Bindings
    "PageBindings",
    "StateCondition",
    "ItemIdExtractor",
    "FilterBinding",
    "BindingValidation",
    "validate_bindings",
    "finalize_bindings",
    "merge_bindings",
    "matches_url",
    "EXAMPLE_BINDINGS",
    # Elements
    "ElementRef",
    "Selector",
    "IndexedElement",
    # Execution
    "ExecutionContext",
    "ExecutionStats",
    "ExtractedItem",
    "CurrentItem",
    "RecipeExecutor",
    "CommandResult",
    "ExecutionResult",
    "BindingFixRequest",
    "is_binding_error",
    # Discovery and repair
    "RecipeNavigator",
    "BindingDiscoveryResult",
    "BindingFixResult",
    "extract_json_object",
    # Storage and runs
    "BindingStore",
    "InMemoryBindingStore",
    "JsonFileBindingStore",
    "RecipeRunner",
    "RunnerResult",
    "RunnerStats",
    # Templates
    "job_listing_extraction",
    "job_listing_with_search",
]
