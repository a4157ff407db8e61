"""
Builders - short factory functions for writing recipes in Python.

    from recipe_agent.recipe import builders as cmd

    recipe = cmd.recipe("jobs", [
        cmd.open_page("https://example.com/jobs"),
        cmd.wait_for("list"),
        cmd.for_each_item([cmd.extract_details(), cmd.save("job"), cmd.mark_done()]),
    ])
"""

from typing import List, Optional, Sequence

from recipe_agent.recipe import commands as c

# Navigation

def open_page(url: str) -> c.OpenPageCommand:
    return c.OpenPageCommand(url=url)


def go_back() -> c.GoBackCommand:
    return c.GoBackCommand()


def refresh() -> c.RefreshCommand:
    return c.RefreshCommand()


# Waiting

def wait_for(target: c.WaitTarget) -> c.WaitForCommand:
    return c.WaitForCommand(target=target)


def wait(seconds: float) -> c.WaitCommand:
    return c.WaitCommand(seconds=seconds)


# Focus

def go_to(name: str) -> c.GoToCommand:
    return c.GoToCommand(name=name)


def go_to_filter(name: str) -> c.GoToFilterCommand:
    return c.GoToFilterCommand(name=name)


def go_to_item(which: str = "next") -> c.GoToItemCommand:
    return c.GoToItemCommand(which=which)


# Actions

def type_text(text: str) -> c.TypeCommand:
    return c.TypeCommand(text=text)


def submit() -> c.SubmitCommand:
    return c.SubmitCommand()


def click() -> c.ClickCommand:
    return c.ClickCommand()


def click_if_exists(name: str) -> c.ClickIfExistsCommand:
    return c.ClickIfExistsCommand(name=name)


def select(option: str) -> c.SelectCommand:
    return c.SelectCommand(option=option)


def clear() -> c.ClearCommand:
    return c.ClearCommand()


def set_checked(checked: bool = True) -> c.SetCheckedCommand:
    return c.SetCheckedCommand(checked=checked)


# Scrolling

def scroll(target: str = "list", direction: str = "down") -> c.ScrollCommand:
    return c.ScrollCommand(target=target, direction=direction)


def scroll_if_not_end(target: str = "list") -> c.ScrollIfNotEndCommand:
    return c.ScrollIfNotEndCommand(target=target)


def scroll_to_top() -> c.ScrollToCommand:
    return c.ScrollToCommand(percent=0)


def scroll_to_bottom() -> c.ScrollToCommand:
    return c.ScrollToCommand(percent=100)


# Data

def extract_details(selectors: Optional[List[str]] = None) -> c.ExtractDetailsCommand:
    return c.ExtractDetailsCommand(selectors=selectors)


def save(label: str = "item") -> c.SaveCommand:
    return c.SaveCommand(save_as=label)


def mark_done() -> c.MarkDoneCommand:
    return c.MarkDoneCommand()


# Flow control

def for_each_item(body: Sequence[c.Command], skip_processed: bool = True) -> c.ForEachItemCommand:
    return c.ForEachItemCommand(body=list(body), skip_processed=skip_processed)


def if_(
    condition: c.Condition,
    then: Sequence[c.Command],
    else_: Sequence[c.Command] = (),
) -> c.IfCommand:
    return c.IfCommand(condition=condition, then=list(then), else_=list(else_))


def repeat(body: Sequence[c.Command], until: c.UntilCondition) -> c.RepeatCommand:
    return c.RepeatCommand(body=list(body), until=until)


def checkpoint_count() -> c.CheckpointCountCommand:
    return c.CheckpointCountCommand()


def continue_() -> c.ContinueCommand:
    return c.ContinueCommand()


def end() -> c.EndCommand:
    return c.EndCommand()


# Conditions

def exists(name: str) -> c.ExistsCondition:
    return c.ExistsCondition(name=name)


def visible(name: str) -> c.VisibleCondition:
    return c.VisibleCondition(name=name)


def list_end() -> c.ListEndCondition:
    return c.ListEndCondition()


def page_end() -> c.PageEndCondition:
    return c.PageEndCondition()


def new_items() -> c.NewItemsCondition:
    return c.NewItemsCondition()


def not_(condition: c.Condition) -> c.NotCondition:
    return c.NotCondition(condition=condition)


def all_of(*conditions: c.Condition) -> c.AndCondition:
    return c.AndCondition(conditions=list(conditions))


def any_of(*conditions: c.Condition) -> c.OrCondition:
    return c.OrCondition(conditions=list(conditions))


# Until conditions

def collected(count: int) -> c.CollectedUntil:
    return c.CollectedUntil(count=count)


def no_more_items() -> c.NoMoreItemsUntil:
    return c.NoMoreItemsUntil()


def max_scrolls(count: int) -> c.MaxScrollsUntil:
    return c.MaxScrollsUntil(count=count)


def until_all(*conditions: c.UntilCondition) -> c.AndUntil:
    return c.AndUntil(conditions=list(conditions))


def until_any(*conditions: c.UntilCondition) -> c.OrUntil:
    return c.OrUntil(conditions=list(conditions))


# Recipe

def recipe(
    name: str,
    commands: Sequence[c.Command],
    max_items: Optional[int] = None,
    timeout_ms: Optional[int] = None,
    description: str = "",
) -> c.Recipe:
    return c.Recipe(
        name=name,
        description=description,
        commands=list(commands),
        config=c.RecipeConfig(max_items=max_items, timeout_ms=timeout_ms),
    )
