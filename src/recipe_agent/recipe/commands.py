"""
Command/Condition Model - the recipe DSL as immutable data.

Provides:
- Command: a closed set of tagged variants (navigation, waiting, focus,
  action, scrolling, data, flow control), discriminated on `type`
- Condition: recursive predicate tree for IF
- UntilCondition: loop-termination tree for REPEAT
- Recipe: an ordered command list plus run config
- Parsing helpers that accept the JSON produced by an upstream LLM

The JSON surface is fixed: `type` literals, `body` for nested blocks,
`skipProcessed`, `as`, `else`. A normalization pass rewrites the common
`commands`-instead-of-`body` mistake before validation.
"""

import json
import logging
import time
from typing import Annotated, Any, Dict, List, Literal, Optional, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from recipe_agent.exceptions import RecipeValidationError

logger = logging.getLogger(__name__)


class _Node(BaseModel):
    """Base for every DSL node: frozen, aliases accepted by name or by wire key."""
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


# =============================================================================
# CONDITIONS
# =============================================================================

class ExistsCondition(_Node):
    """A named binding resolves to an element on the page."""
    type: Literal["EXISTS"] = "EXISTS"
    name: str


class VisibleCondition(_Node):
    type: Literal["VISIBLE"] = "VISIBLE"
    name: str


class ListEndCondition(_Node):
    type: Literal["LIST_END"] = "LIST_END"


class PageEndCondition(_Node):
    type: Literal["PAGE_END"] = "PAGE_END"


class NewItemsCondition(_Node):
    """More list items than at the last CHECKPOINT_COUNT."""
    type: Literal["NEW_ITEMS"] = "NEW_ITEMS"


class NotCondition(_Node):
    type: Literal["NOT"] = "NOT"
    condition: "Condition"


class AndCondition(_Node):
    type: Literal["AND"] = "AND"
    conditions: List["Condition"]


class OrCondition(_Node):
    type: Literal["OR"] = "OR"
    conditions: List["Condition"]


Condition = Annotated[
    Union[
        ExistsCondition,
        VisibleCondition,
        ListEndCondition,
        PageEndCondition,
        NewItemsCondition,
        NotCondition,
        AndCondition,
        OrCondition,
    ],
    Field(discriminator="type"),
]


# =============================================================================
# UNTIL CONDITIONS (REPEAT only)
# =============================================================================

class CollectedUntil(_Node):
    """At least `count` items saved in this run."""
    type: Literal["COLLECTED"] = "COLLECTED"
    count: int = Field(ge=0)


class NoMoreItemsUntil(_Node):
    type: Literal["NO_MORE_ITEMS"] = "NO_MORE_ITEMS"


class MaxScrollsUntil(_Node):
    """At least `count` scroll operations performed in this run."""
    type: Literal["MAX_SCROLLS"] = "MAX_SCROLLS"
    count: int = Field(ge=0)


class AndUntil(_Node):
    type: Literal["AND"] = "AND"
    conditions: List["UntilCondition"]


class OrUntil(_Node):
    type: Literal["OR"] = "OR"
    conditions: List["UntilCondition"]


UntilCondition = Annotated[
    Union[CollectedUntil, NoMoreItemsUntil, MaxScrollsUntil, AndUntil, OrUntil],
    Field(discriminator="type"),
]


# =============================================================================
# COMMANDS
# =============================================================================

# Navigation

class OpenPageCommand(_Node):
    type: Literal["OPEN_PAGE"] = "OPEN_PAGE"
    url: str


class GoBackCommand(_Node):
    type: Literal["GO_BACK"] = "GO_BACK"


class RefreshCommand(_Node):
    type: Literal["REFRESH"] = "REFRESH"


# Waiting

WaitTarget = Literal["page", "list", "listUpdate", "details"]


class WaitForCommand(_Node):
    """Poll the binding's state predicate for `target` until it holds."""
    type: Literal["WAIT_FOR"] = "WAIT_FOR"
    target: WaitTarget


class WaitCommand(_Node):
    type: Literal["WAIT"] = "WAIT"
    seconds: float = Field(ge=0)


# Focus

class GoToCommand(_Node):
    """Focus `searchBox`, `list`, `details` or a named element."""
    type: Literal["GO_TO"] = "GO_TO"
    name: str


class GoToFilterCommand(_Node):
    type: Literal["GO_TO_FILTER"] = "GO_TO_FILTER"
    name: str


class GoToItemCommand(_Node):
    type: Literal["GO_TO_ITEM"] = "GO_TO_ITEM"
    which: Literal["first", "next", "current", "unprocessed"] = "next"


# Actions

class TypeCommand(_Node):
    type: Literal["TYPE"] = "TYPE"
    text: str


class SubmitCommand(_Node):
    type: Literal["SUBMIT"] = "SUBMIT"


class ClickCommand(_Node):
    type: Literal["CLICK"] = "CLICK"


class ClickIfExistsCommand(_Node):
    """Speculative click: an unbound name or a missing element is a no-op."""
    type: Literal["CLICK_IF_EXISTS"] = "CLICK_IF_EXISTS"
    name: str


class SelectCommand(_Node):
    type: Literal["SELECT"] = "SELECT"
    option: str


class ClearCommand(_Node):
    type: Literal["CLEAR"] = "CLEAR"


class SetCheckedCommand(_Node):
    type: Literal["SET_CHECKED"] = "SET_CHECKED"
    checked: bool = True


# Scrolling

class ScrollCommand(_Node):
    type: Literal["SCROLL"] = "SCROLL"
    target: Literal["list", "page"] = "list"
    direction: Literal["up", "down"] = "down"


class ScrollIfNotEndCommand(_Node):
    type: Literal["SCROLL_IF_NOT_END"] = "SCROLL_IF_NOT_END"
    target: Literal["list", "page"] = "list"


class ScrollToCommand(_Node):
    type: Literal["SCROLL_TO"] = "SCROLL_TO"
    percent: float = Field(ge=0, le=100)


# Data

class ExtractDetailsCommand(_Node):
    """Read details text; `selectors` overrides the bound details panel."""
    type: Literal["EXTRACT_DETAILS"] = "EXTRACT_DETAILS"
    selectors: Optional[List[str]] = None


class SaveCommand(_Node):
    type: Literal["SAVE"] = "SAVE"
    save_as: str = Field(default="item", alias="as")


class MarkDoneCommand(_Node):
    type: Literal["MARK_DONE"] = "MARK_DONE"


# Flow control

class ForEachItemCommand(_Node):
    type: Literal["FOR_EACH_ITEM_IN_LIST"] = "FOR_EACH_ITEM_IN_LIST"
    body: List["Command"] = Field(default_factory=list)
    skip_processed: bool = Field(default=True, alias="skipProcessed")


class IfCommand(_Node):
    type: Literal["IF"] = "IF"
    condition: Condition
    then: List["Command"] = Field(default_factory=list)
    else_: List["Command"] = Field(default_factory=list, alias="else")


class RepeatCommand(_Node):
    type: Literal["REPEAT"] = "REPEAT"
    body: List["Command"] = Field(default_factory=list)
    until: UntilCondition


class CheckpointCountCommand(_Node):
    type: Literal["CHECKPOINT_COUNT"] = "CHECKPOINT_COUNT"


class ContinueCommand(_Node):
    """Skip the rest of the current item's body."""
    type: Literal["CONTINUE"] = "CONTINUE"


class EndCommand(_Node):
    type: Literal["END"] = "END"


Command = Annotated[
    Union[
        OpenPageCommand,
        GoBackCommand,
        RefreshCommand,
        WaitForCommand,
        WaitCommand,
        GoToCommand,
        GoToFilterCommand,
        GoToItemCommand,
        TypeCommand,
        SubmitCommand,
        ClickCommand,
        ClickIfExistsCommand,
        SelectCommand,
        ClearCommand,
        SetCheckedCommand,
        ScrollCommand,
        ScrollIfNotEndCommand,
        ScrollToCommand,
        ExtractDetailsCommand,
        SaveCommand,
        MarkDoneCommand,
        ForEachItemCommand,
        IfCommand,
        RepeatCommand,
        CheckpointCountCommand,
        ContinueCommand,
        EndCommand,
    ],
    Field(discriminator="type"),
]

COMMAND_TYPES = frozenset(
    cls.model_fields["type"].default for cls in get_args(get_args(Command)[0])
)


# =============================================================================
# RECIPE
# =============================================================================

class RecipeConfig(_Node):
    """
    Run configuration.
    
    Attributes:
        max_items: Stop once this many items are saved
        timeout_ms: Cooperative deadline for the whole run
    """
    max_items: Optional[int] = Field(default=None, alias="maxItems", ge=1)
    timeout_ms: Optional[int] = Field(default=None, alias="timeout", ge=1)


class Recipe(_Node):
    """An ordered command sequence plus run configuration."""
    id: str = Field(default_factory=lambda: f"recipe_{int(time.time() * 1000)}")
    name: str = ""
    description: str = ""
    commands: List[Command] = Field(default_factory=list)
    config: RecipeConfig = Field(default_factory=RecipeConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Wire-format dictionary (aliases, no unset optionals)."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


for _model in (NotCondition, AndCondition, OrCondition, AndUntil, OrUntil,
               ForEachItemCommand, IfCommand, RepeatCommand, Recipe):
    _model.model_rebuild()

_COMMAND_LIST = TypeAdapter(List[Command])


# =============================================================================
# PARSING
# =============================================================================

_BLOCK_TYPES = ("FOR_EACH_ITEM_IN_LIST", "REPEAT")


def normalize_command_dicts(raw: Any) -> List[Any]:
    """
    Fix up LLM-authored command JSON before validation.
    
    - `commands` on a FOR_EACH_ITEM_IN_LIST or REPEAT becomes `body`
    - nested bodies and IF branches are normalized recursively
    - entries that are not objects become `WAIT 0.1`
    """
    if not isinstance(raw, list):
        return []
    
    normalized: List[Any] = []
    for entry in raw:
        if not isinstance(entry, dict):
            logger.warning(f"Replacing malformed command entry with WAIT: {entry!r}")
            normalized.append({"type": "WAIT", "seconds": 0.1})
            continue
        
        cmd = dict(entry)
        if cmd.get("type") in _BLOCK_TYPES:
            if "body" not in cmd and "commands" in cmd:
                cmd["body"] = cmd.pop("commands")
            cmd["body"] = normalize_command_dicts(cmd.get("body", []))
        elif cmd.get("type") == "IF":
            for branch in ("then", "else"):
                if branch in cmd:
                    cmd[branch] = normalize_command_dicts(cmd[branch])
        normalized.append(cmd)
    
    return normalized


def _summarize(error: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
        for err in error.errors()
    ]


def parse_commands(data: Any) -> List[Command]:
    """Normalize and validate a JSON command list."""
    try:
        return _COMMAND_LIST.validate_python(normalize_command_dicts(data))
    except ValidationError as e:
        errors = _summarize(e)
        raise RecipeValidationError(f"Invalid commands: {errors[0]}", {"errors": errors}) from e


def parse_recipe(data: Union[str, Dict[str, Any]]) -> Recipe:
    """
    Parse a recipe from a JSON string or an already-decoded dict.
    
    Raises:
        RecipeValidationError: Not JSON, not an object, or a command does not
            match any known variant
    """
    if isinstance(data, str):
        try:
            data = json.loads(data)
        except json.JSONDecodeError as e:
            raise RecipeValidationError(f"Recipe is not valid JSON: {e}") from e
    
    if not isinstance(data, dict):
        raise RecipeValidationError("Recipe must be a JSON object")
    
    payload = dict(data)
    payload["commands"] = normalize_command_dicts(payload.get("commands", []))
    
    try:
        return Recipe.model_validate(payload)
    except ValidationError as e:
        errors = _summarize(e)
        raise RecipeValidationError(f"Invalid recipe: {errors[0]}", {"errors": errors}) from e
