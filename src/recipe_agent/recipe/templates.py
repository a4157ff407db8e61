"""
Recipe templates for list/detail job boards.

Both templates use the hybrid scroll/pagination loop: checkpoint the item
count, scroll, and only if no new items appeared try the load-more and
next-page buttons. The same recipe then works on infinite-scroll and
paginated sites.
"""

from typing import List

from recipe_agent.recipe import builders as cmd
from recipe_agent.recipe.commands import Command, Recipe


def _extraction_loop(max_items: int) -> List[Command]:
    return [
        cmd.repeat(
            [
                cmd.for_each_item([
                    cmd.click(),
                    cmd.wait_for("details"),
                    cmd.extract_details(),
                    cmd.save("job"),
                    cmd.mark_done(),
                ]),
                cmd.checkpoint_count(),
                cmd.scroll("list", "down"),
                cmd.wait(1.5),
                cmd.if_(
                    cmd.not_(cmd.new_items()),
                    then=[
                        cmd.click_if_exists("loadMoreButton"),
                        cmd.click_if_exists("nextPageButton"),
                        cmd.wait(2),
                    ],
                ),
            ],
            until=cmd.until_any(cmd.collected(max_items), cmd.no_more_items()),
        ),
        cmd.end(),
    ]


def job_listing_extraction(url: str, max_items: int = 20) -> Recipe:
    """Open a job list and collect up to max_items job details."""
    return cmd.recipe(
        "Job listing extraction",
        [
            cmd.open_page(url),
            cmd.wait_for("page"),
            cmd.wait_for("list"),
            *_extraction_loop(max_items),
        ],
        max_items=max_items,
        description=f"Collect up to {max_items} jobs from {url}",
    )


def job_listing_with_search(url: str, query: str, max_items: int = 20) -> Recipe:
    """Search for query first, then collect up to max_items results."""
    return cmd.recipe(
        "Job search extraction",
        [
            cmd.open_page(url),
            cmd.wait_for("page"),
            cmd.go_to("searchBox"),
            cmd.clear(),
            cmd.type_text(query),
            cmd.submit(),
            cmd.wait(2),
            cmd.wait_for("list"),
            *_extraction_loop(max_items),
        ],
        max_items=max_items,
        description=f'Search "{query}" on {url} and collect up to {max_items} jobs',
    )
