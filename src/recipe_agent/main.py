"""
Recipe Agent - CLI Entry Point.

Configuration Priority:
    1. CLI arguments (--model, --api-url, etc.)
    2. Environment variables (RECIPE_AGENT__LLM__MODEL, etc.)
    3. Config file (config.yaml)

Usage:
    recipe-agent run https://example.com/jobs --max-items 10
    recipe-agent run https://example.com/jobs --recipe recipe.json --visible
    recipe-agent validate-recipe recipe.json
    recipe-agent bindings list
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from recipe_agent import __version__
from recipe_agent.browsers import PlaywrightBrowser
from recipe_agent.config import get_settings, load_config
from recipe_agent.config.settings import Settings
from recipe_agent.exceptions import RecipeAgentError, RecipeValidationError
from recipe_agent.extraction import JobExtractor
from recipe_agent.llm import create_provider
from recipe_agent.recipe import (
    JsonFileBindingStore,
    Recipe,
    RecipeNavigator,
    RecipeRunner,
    RunnerResult,
    job_listing_extraction,
    parse_recipe,
    validate_bindings,
)
from recipe_agent.utils.logging import setup_logging

app = typer.Typer(
    name="recipe-agent",
    help="LLM-assisted list/detail web automation",
    add_completion=False,
)
bindings_app = typer.Typer(help="Inspect and clear stored bindings")
app.add_typer(bindings_app, name="bindings")

console = Console()
logger = logging.getLogger(__name__)


def _load_settings(config: Optional[str]) -> Settings:
    try:
        return load_config(config) if config else get_settings()
    except RecipeAgentError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)


def _read_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]✗ File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        console.print(f"[red]✗ {path} is not valid JSON: {e}[/red]")
        raise typer.Exit(1)


def _load_recipe(url: str, recipe_file: Optional[str], max_items: Optional[int]) -> Recipe:
    if not recipe_file:
        return job_listing_extraction(url, max_items=max_items or 20)

    try:
        recipe = parse_recipe(_read_json(Path(recipe_file)))
    except RecipeValidationError as e:
        console.print(f"[red]✗ Invalid recipe: {e.message}[/red]")
        raise typer.Exit(1)

    if max_items:
        config = recipe.config.model_copy(update={"max_items": max_items})
        recipe = recipe.model_copy(update={"config": config})
    return recipe


# =============================================================================
# RUN
# =============================================================================

@app.command()
def run(
    url: str = typer.Argument(..., help="Page with the list to extract"),
    recipe_file: Optional[str] = typer.Option(None, "--recipe", "-r", help="Recipe JSON file (default: job listing template)"),
    max_items: Optional[int] = typer.Option(None, "--max-items", "-n", help="Stop after this many items"),
    visible: bool = typer.Option(False, "--visible", "-v", help="Run with visible browser"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="LLM model (default: from config)"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="LLM API base URL (default: from config)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write the result as JSON to this file"),
    rediscover: bool = typer.Option(False, "--rediscover", help="Ignore stored bindings"),
    extract_jobs: bool = typer.Option(False, "--extract-jobs", help="Structure items into job records"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Config file path"),
    log_level: str = typer.Option("INFO", "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
):
    """
    Run a recipe against a page.

    Without --recipe the built-in job listing recipe is used.

    Examples:
        recipe-agent run https://example.com/jobs --max-items 5
        recipe-agent run https://example.com/jobs -r my_recipe.json -o jobs.json
    """
    setup_logging(level=log_level)

    settings = _load_settings(config)
    overrides: Dict[str, Any] = {}
    if model:
        overrides.setdefault("llm", {})["model"] = model
    if api_url:
        overrides.setdefault("llm", {})["base_url"] = api_url
    if visible:
        overrides["browser"] = {"headless": False}
    if overrides:
        settings = settings.merge_with(overrides)

    recipe = _load_recipe(url, recipe_file, max_items)

    console.print(Panel.fit(
        f"[bold blue]Recipe Agent[/bold blue]\n"
        f"[dim]URL:[/dim] {url}\n"
        f"[dim]Recipe:[/dim] {recipe.name or recipe.id} ({len(recipe.commands)} commands)\n"
        f"[dim]Model:[/dim] {settings.llm.model}",
        border_style="blue",
    ))

    try:
        result = asyncio.run(_run_async(url, recipe, settings, rediscover, extract_jobs))
    except RecipeAgentError as e:
        console.print(f"\n[red]Error: {e}[/red]")
        raise typer.Exit(1)

    _print_result(result)

    if output:
        Path(output).write_text(json.dumps(result.to_dict(), indent=2, default=str))
        console.print(f"[dim]Result written to {output}[/dim]")

    if not result.success:
        raise typer.Exit(1)


async def _run_async(
    url: str,
    recipe: Recipe,
    settings: Settings,
    rediscover: bool,
    extract_jobs: bool,
) -> RunnerResult:
    """Launch the browser, run the recipe and always clean up."""
    llm = create_provider(settings.llm)
    extractor_llm = create_provider(settings.llm, settings.llm.extractor_model) if extract_jobs else None
    browser = PlaywrightBrowser(settings.browser)

    try:
        if not await llm.health_check():
            console.print(f"[yellow]Warning: LLM API at {settings.llm.base_url} may not be available[/yellow]")

        await browser.launch()
        page = await browser.new_page()
        await page.navigate_to(url)

        runner = RecipeRunner(
            page=page,
            navigator=RecipeNavigator(llm, settings=settings.bindings),
            store=JsonFileBindingStore(settings.bindings.store_path),
            extractor=JobExtractor(extractor_llm) if extractor_llm else None,
            settings=settings,
            on_progress=lambda message: console.print(f"[dim]• {message}[/dim]"),
        )
        return await runner.run(recipe, force_rediscover=rediscover)
    finally:
        await browser.close()
        await llm.close()
        if extractor_llm:
            await extractor_llm.close()


def _print_result(result: RunnerResult) -> None:
    stats = result.stats
    if result.success:
        console.print(f"\n[green]✓ Success![/green] {len(result.items)} items")
    else:
        console.print(f"\n[red]✗ Failed[/red] {len(result.items)} items collected before the failure")
        if result.error:
            console.print(f"  Error: {result.error}")
    console.print(
        f"  Commands: {stats.commands_executed}  Scrolls: {stats.scrolls_performed}  "
        f"Fixes: {stats.binding_fixes}  Attempts: {stats.attempts}  Duration: {stats.duration_ms / 1000:.1f}s"
    )

    if result.jobs:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Title")
        table.add_column("Company")
        table.add_column("Location", style="dim")
        for job in result.jobs:
            table.add_row(job.title, job.company, job.location or "")
        console.print(table)
    elif result.items:
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("#", width=3)
        table.add_column("ID")
        table.add_column("Content", style="dim")
        for i, item in enumerate(result.items, 1):
            preview = " ".join(item.content.split())
            table.add_row(str(i), item.id, preview[:80] + ("..." if len(preview) > 80 else ""))
        console.print(table)


# =============================================================================
# VALIDATION
# =============================================================================

@app.command("validate-recipe")
def validate_recipe(
    file_path: str = typer.Argument(..., help="Recipe JSON file"),
):
    """Check that a recipe parses into known commands."""
    try:
        recipe = parse_recipe(_read_json(Path(file_path)))
    except RecipeValidationError as e:
        console.print(f"[red]✗ Invalid recipe: {e.message}[/red]")
        for error in e.details.get("errors", []):
            console.print(f"  - {error}")
        raise typer.Exit(1)

    console.print(f"[green]✓ Recipe '{recipe.name or recipe.id}' is valid[/green] ({len(recipe.commands)} commands)")


@app.command("validate-bindings")
def validate_bindings_file(
    file_path: str = typer.Argument(..., help="Bindings JSON file"),
):
    """Check a bindings record for required and recommended fields."""
    data = _read_json(Path(file_path))
    if not isinstance(data, dict):
        console.print("[red]✗ Bindings must be a JSON object[/red]")
        raise typer.Exit(1)

    validation = validate_bindings(data)
    for error in validation.errors:
        console.print(f"[red]  error[/red]   {error}")
    for warning in validation.warnings:
        console.print(f"[yellow]  warning[/yellow] {warning}")

    if not validation.valid:
        console.print("[red]✗ Bindings are invalid[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Bindings are valid[/green]")


# =============================================================================
# STORED BINDINGS
# =============================================================================

def _store(store_path: Optional[str]) -> JsonFileBindingStore:
    return JsonFileBindingStore(store_path or get_settings().bindings.store_path)


@bindings_app.command("list")
def bindings_list(
    store_path: Optional[str] = typer.Option(None, "--store", help="Bindings file (default: from config)"),
):
    """List stored bindings."""
    records = _store(store_path).all()
    if not records:
        console.print("[dim]No stored bindings[/dim]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID")
    table.add_column("URL pattern")
    table.add_column("Version", justify="right")
    table.add_column("Age", justify="right", style="dim")
    for record in sorted(records, key=lambda b: b.updated_at, reverse=True):
        table.add_row(record.id, record.url_pattern, str(record.version), f"{record.age_hours():.1f}h")
    console.print(table)


@bindings_app.command("clear")
def bindings_clear(
    url: Optional[str] = typer.Option(None, "--url", help="Only clear bindings matching this URL"),
    store_path: Optional[str] = typer.Option(None, "--store", help="Bindings file (default: from config)"),
):
    """Delete stored bindings (all of them, or those matching --url)."""
    store = _store(store_path)
    if url:
        removed = store.clear_for_url(url)
        console.print(f"[green]✓ Removed {removed} bindings for {url}[/green]")
    else:
        store.clear_all()
        console.print("[green]✓ Removed all stored bindings[/green]")


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]Recipe Agent[/bold] v{__version__}")


if __name__ == "__main__":
    app()
