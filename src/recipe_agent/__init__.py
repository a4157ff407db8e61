"""
Recipe Agent - LLM-assisted list/detail web automation.

Recipes describe a scraping workflow as a small command language
(open, wait, iterate items, extract, save, scroll, repeat). Site-specific
selectors live separately in bindings, which are discovered by an LLM from
the page itself and repaired when they stop matching.

Example:
    >>> from recipe_agent import RecipeRunner, job_listing_extraction
    >>> runner = RecipeRunner(page, navigator, store)
    >>> result = await runner.run(job_listing_extraction("https://example.com/jobs"))
"""

__version__ = "0.1.0"

from recipe_agent.config.settings import Settings
from recipe_agent.recipe import (
    PageBindings,
    Recipe,
    RecipeExecutor,
    RecipeNavigator,
    RecipeRunner,
    job_listing_extraction,
    job_listing_with_search,
    parse_recipe,
)

__all__ = [
    "Settings",
    "Recipe",
    "PageBindings",
    "RecipeExecutor",
    "RecipeNavigator",
    "RecipeRunner",
    "parse_recipe",
    "job_listing_extraction",
    "job_listing_with_search",
    "__version__",
]
