"""
Binding Model - where things are on a particular site.

Provides:
- PageBindings: per-site record mapping abstract roles (list, list item,
  details panel, named elements) to CSS selectors and state predicates
- StateCondition: recursive single-key predicates ({"exists": sel}, ...)
- ItemIdExtractor: how to derive a stable id for a list item
- validate_bindings: hard requirements (errors) and recommendations (warnings)
- coerce_binding_fields / finalize_bindings: the one normalization path
  shared by discovery and repair, with a single defaults table
- merge_bindings: apply a repair patch, bumping version and updatedAt

The wire format uses the upper-case role names (`LIST_ITEM`, `DETAILS_PANEL`)
that the discovery prompt asks the LLM for.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


# =============================================================================
# STATE CONDITIONS
# =============================================================================

class _State(BaseModel):
    # extra="forbid" makes exactly one variant accept a given single-key object
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class ExistsState(_State):
    exists: str


class VisibleState(_State):
    visible: str


class GoneState(_State):
    gone: str


class CountChangedState(_State):
    """Live count of selector differs from the last checkpoint count."""
    count_changed: str = Field(alias="countChanged")


class CountThreshold(_State):
    selector: str
    count: int = Field(ge=0)


class CountAtLeastState(_State):
    count_at_least: CountThreshold = Field(alias="countAtLeast")


class UrlContainsState(_State):
    url_contains: str = Field(alias="urlContains")


class UrlMatchesState(_State):
    url_matches: str = Field(alias="urlMatches")


class AllOfState(_State):
    all_of: List["StateCondition"] = Field(alias="and")


class AnyOfState(_State):
    any_of: List["StateCondition"] = Field(alias="or")


StateCondition = Union[
    ExistsState,
    VisibleState,
    GoneState,
    CountChangedState,
    CountAtLeastState,
    UrlContainsState,
    UrlMatchesState,
    AllOfState,
    AnyOfState,
]

AllOfState.model_rebuild()
AnyOfState.model_rebuild()

_STATE_ADAPTER = TypeAdapter(StateCondition)


# =============================================================================
# BINDING RECORD
# =============================================================================

class ItemIdExtractor(BaseModel):
    """
    Rule for deriving a list item's id.

    Attributes:
        source: Where the id comes from (wire key `from`)
        selector: Inner element carrying the href/attribute
        attribute: Attribute name for source="attribute"
        pattern: Regex whose first group is the id
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    source: Literal["href", "attribute", "text", "data"] = Field(default="href", alias="from")
    selector: Optional[str] = None
    attribute: Optional[str] = None
    pattern: Optional[str] = None


class FilterBinding(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    selector: str
    type: Literal["dropdown", "checkbox", "button", "input"] = "dropdown"
    options_selector: Optional[str] = Field(default=None, alias="optionsSelector")


ScrollBehavior = Literal["infinite", "paginated", "load_more_button", "static"]
ClickBehavior = Literal["shows_panel", "navigates", "expands", "inline"]
ReturnToList = Literal["go_back", "click_close", "none"]


class PageBindings(BaseModel):
    """
    Selectors and predicates for one site (or one page variant of it).

    Every field has an empty default so partial records (repair patches,
    half-finished LLM output) can be represented and validated. Records are
    immutable; repairs produce a new record through merge_bindings.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str = ""
    url_pattern: str = Field(default="", alias="urlPattern")
    version: int = 1
    updated_at: float = Field(default_factory=time.time, alias="updatedAt")

    # Search and list
    search_box: Optional[str] = Field(default=None, alias="SEARCH_BOX")
    search_submit: Optional[str] = Field(default=None, alias="SEARCH_SUBMIT")
    list_container: str = Field(default="", alias="LIST")
    list_item: str = Field(default="", alias="LIST_ITEM")
    list_item_active: Optional[str] = Field(default=None, alias="LIST_ITEM_ACTIVE")

    # Details
    details_panel: Optional[str] = Field(default=None, alias="DETAILS_PANEL")
    details_content: List[str] = Field(default_factory=list, alias="DETAILS_CONTENT")

    # Named controls
    filters: Dict[str, FilterBinding] = Field(default_factory=dict, alias="FILTERS")
    elements: Dict[str, str] = Field(default_factory=dict, alias="ELEMENTS")

    # Scrolling and pagination
    scroll_container: Optional[str] = Field(default=None, alias="SCROLL_CONTAINER")
    load_more_button: Optional[str] = Field(default=None, alias="LOAD_MORE_BUTTON")
    next_page_button: Optional[str] = Field(default=None, alias="NEXT_PAGE_BUTTON")

    # State predicates
    page_loaded: Optional[StateCondition] = Field(default=None, alias="PAGE_LOADED")
    list_loaded: Optional[StateCondition] = Field(default=None, alias="LIST_LOADED")
    list_updated: Optional[StateCondition] = Field(default=None, alias="LIST_UPDATED")
    details_loaded: Optional[StateCondition] = Field(default=None, alias="DETAILS_LOADED")
    no_more_items: Optional[StateCondition] = Field(default=None, alias="NO_MORE_ITEMS")
    list_empty: Optional[StateCondition] = Field(default=None, alias="LIST_EMPTY")
    loading: Optional[StateCondition] = Field(default=None, alias="LOADING")

    item_id: Optional[ItemIdExtractor] = Field(default=None, alias="ITEM_ID")

    # Behavior
    scroll_behavior: Optional[ScrollBehavior] = Field(default=None, alias="SCROLL_BEHAVIOR")
    click_behavior: Optional[ClickBehavior] = Field(default=None, alias="CLICK_BEHAVIOR")
    return_to_list: Optional[ReturnToList] = Field(default=None, alias="RETURN_TO_LIST")
    close_details_button: Optional[str] = Field(default=None, alias="CLOSE_DETAILS_BUTTON")

    def to_dict(self) -> Dict[str, Any]:
        """Wire-format dictionary, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PageBindings":
        return cls.model_validate(dict(data))

    def get_value(self, key: str) -> Any:
        """Current wire-format value of a binding key (None if unset)."""
        return self.to_dict().get(key)

    def age_hours(self, now: Optional[float] = None) -> float:
        return ((now or time.time()) - self.updated_at) / 3600

    def matches_url(self, url: str) -> bool:
        return matches_url(self, url)


_FIELD_ALIASES: Dict[str, str] = {
    name: (info.alias or name) for name, info in PageBindings.model_fields.items()
}
# Accept both wire keys and attribute names in raw input
_KEY_LOOKUP: Dict[str, str] = {**{a: a for a in _FIELD_ALIASES.values()}, **_FIELD_ALIASES}

META_KEYS = frozenset({"id", "urlPattern", "version", "updatedAt"})
CONDITION_KEYS = frozenset({
    "PAGE_LOADED", "LIST_LOADED", "LIST_UPDATED", "DETAILS_LOADED",
    "NO_MORE_ITEMS", "LIST_EMPTY", "LOADING",
})
BINDING_KEYS = frozenset(_FIELD_ALIASES.values()) - META_KEYS


# =============================================================================
# VALIDATION
# =============================================================================

@dataclass
class BindingValidation:
    """Outcome of validate_bindings."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def _blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def validate_bindings(partial: Union[PageBindings, Mapping[str, Any]]) -> BindingValidation:
    """
    Check a (possibly partial) bindings record.

    Missing hard requirements are errors and block use of the record.
    Missing recommended fields are warnings; the engine falls back to
    defaults for those.
    """
    data = partial.to_dict() if isinstance(partial, PageBindings) else coerce_binding_fields(partial)
    errors: List[str] = []
    warnings: List[str] = []

    if _blank(data.get("LIST")):
        errors.append("LIST selector is required")
    if _blank(data.get("LIST_ITEM")):
        errors.append("LIST_ITEM selector is required")

    details = data.get("DETAILS_CONTENT") or []
    if not any(not _blank(s) for s in details):
        errors.append("DETAILS_CONTENT selectors are required")

    if not data.get("ITEM_ID"):
        errors.append("ITEM_ID extractor is required")
    if not data.get("LIST_LOADED"):
        errors.append("LIST_LOADED condition is required")
    if not data.get("DETAILS_LOADED"):
        errors.append("DETAILS_LOADED condition is required")

    scroll = data.get("SCROLL_BEHAVIOR")
    if scroll == "load_more_button" and _blank(data.get("LOAD_MORE_BUTTON")):
        errors.append("LOAD_MORE_BUTTON required when SCROLL_BEHAVIOR is load_more_button")
    if scroll == "paginated" and _blank(data.get("NEXT_PAGE_BUTTON")):
        errors.append("NEXT_PAGE_BUTTON required when SCROLL_BEHAVIOR is paginated")
    if not scroll:
        warnings.append("SCROLL_BEHAVIOR not set, assuming infinite scroll")

    if data.get("CLICK_BEHAVIOR") == "navigates" and not data.get("RETURN_TO_LIST"):
        warnings.append("RETURN_TO_LIST recommended when CLICK_BEHAVIOR is navigates")
    if not data.get("NO_MORE_ITEMS"):
        warnings.append("NO_MORE_ITEMS condition not set, end of list will be inferred")
    if not data.get("PAGE_LOADED"):
        warnings.append("PAGE_LOADED condition not set")

    return BindingValidation(valid=not errors, errors=errors, warnings=warnings)


# =============================================================================
# NORMALIZATION
# =============================================================================

_ATTRIBUTE_NAME = re.compile(r"^[A-Za-z_][\w-]*$")


def coerce_condition(value: Any) -> Optional[Dict[str, Any]]:
    """
    Turn LLM output into a StateCondition dict, or None if it is unusable.

    A bare string is shorthand for {"exists": value}; {"selector": s} is
    read the same way.
    """
    if isinstance(value, str):
        return {"exists": value.strip()} if value.strip() else None
    if not isinstance(value, dict):
        return None

    value = dict(value)
    for key in ("and", "or", "all_of", "any_of"):
        if key in value and isinstance(value[key], list):
            value[key] = [c for c in (coerce_condition(v) for v in value[key]) if c]
    if "selector" in value and len(value) == 1:
        value = {"exists": value["selector"]}

    try:
        return _STATE_ADAPTER.dump_python(_STATE_ADAPTER.validate_python(value), by_alias=True)
    except ValidationError:
        logger.warning(f"Dropping unrecognized state condition: {value}")
        return None


def _coerce_item_id(value: Any) -> Optional[Dict[str, Any]]:
    if isinstance(value, str) and value.strip():
        value = value.strip()
        if _ATTRIBUTE_NAME.match(value):
            return {"from": "attribute", "attribute": value}
        return {"from": "href", "selector": value}
    if isinstance(value, dict):
        return dict(value)
    return None


def _coerce_filters(value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict):
        return {}
    filters: Dict[str, Any] = {}
    for name, spec in value.items():
        if isinstance(spec, str) and spec.strip():
            filters[name] = {"selector": spec.strip()}
        elif isinstance(spec, dict) and spec.get("selector"):
            filters[name] = dict(spec)
    return filters


def coerce_binding_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Normalize raw binding fields into wire-format values.

    Shared by discovery, repair and validation. Unknown keys and nulls are
    dropped; no defaults are applied here.
    """
    fields: Dict[str, Any] = {}

    for key, value in raw.items():
        wire = _KEY_LOOKUP.get(key)
        if wire is None:
            logger.debug(f"Ignoring unknown binding key: {key}")
            continue
        if value is None:
            continue

        if wire in CONDITION_KEYS:
            value = coerce_condition(value)
        elif wire == "ITEM_ID":
            value = _coerce_item_id(value)
        elif wire == "DETAILS_CONTENT":
            if isinstance(value, str):
                value = [value]
            value = [s.strip() for s in value if isinstance(s, str) and s.strip()] if isinstance(value, list) else None
        elif wire == "FILTERS":
            value = _coerce_filters(value)
        elif wire == "ELEMENTS":
            value = {k: v.strip() for k, v in value.items() if isinstance(v, str) and v.strip()} if isinstance(value, dict) else None
        elif isinstance(value, str):
            value = value.strip()

        if value is not None:
            fields[wire] = value

    return fields


# One entry per defaulted field; each receives the fields gathered so far
BINDING_DEFAULTS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "CLICK_BEHAVIOR": lambda b: "shows_panel" if b.get("DETAILS_PANEL") else "inline",
    "SCROLL_BEHAVIOR": lambda b: (
        "paginated" if b.get("NEXT_PAGE_BUTTON")
        else "load_more_button" if b.get("LOAD_MORE_BUTTON")
        else "infinite"
    ),
    "DETAILS_CONTENT": lambda b: [b["DETAILS_PANEL"]] if b.get("DETAILS_PANEL") else [],
    "PAGE_LOADED": lambda b: {"exists": "body"},
    "LIST_LOADED": lambda b: {"exists": b["LIST_ITEM"]} if b.get("LIST_ITEM") else None,
    "LIST_UPDATED": lambda b: {"countChanged": b["LIST_ITEM"]} if b.get("LIST_ITEM") else None,
    "DETAILS_LOADED": lambda b: {"exists": b.get("DETAILS_PANEL") or "body"},
    "NO_MORE_ITEMS": lambda b: {"exists": ".no-results"},
    "ITEM_ID": lambda b: {"from": "href", "selector": "a[href]", "pattern": r"/(\d+)"},
}


def url_hostname(url: str) -> str:
    return urlparse(url).hostname or url


def finalize_bindings(raw: Mapping[str, Any], url: str) -> PageBindings:
    """
    Build a complete PageBindings record from discovery output.

    Coerces the raw fields, fills every missing field from BINDING_DEFAULTS
    and stamps id, urlPattern, version and updatedAt.
    """
    fields = coerce_binding_fields(raw)

    for key, default in BINDING_DEFAULTS.items():
        if fields.get(key):
            continue
        value = default(fields)
        if value in (None, []):
            logger.warning(f"No value or default for {key}")
            continue
        logger.debug(f"Defaulting {key} to {value}")
        fields[key] = value

    now = time.time()
    fields["urlPattern"] = fields.get("urlPattern") or url_hostname(url)
    fields["id"] = fields.get("id") or f"bindings_{int(now * 1000)}"
    fields["version"] = 1
    fields["updatedAt"] = now

    return PageBindings.model_validate(fields)


def merge_bindings(existing: PageBindings, patch: Mapping[str, Any]) -> PageBindings:
    """
    Apply a partial patch to a record.

    Fields absent from the patch survive. FILTERS and ELEMENTS merge per
    name; DETAILS_CONTENT becomes an ordered union with the patch's
    selectors first. version increments and updatedAt refreshes.
    """
    fields = {k: v for k, v in coerce_binding_fields(patch).items() if k not in META_KEYS}
    merged = existing.to_dict()

    for key, value in fields.items():
        if key in ("FILTERS", "ELEMENTS"):
            merged[key] = {**merged.get(key, {}), **value}
        elif key == "DETAILS_CONTENT":
            merged[key] = list(dict.fromkeys(value + merged.get(key, [])))
        else:
            merged[key] = value

    merged["version"] = existing.version + 1
    merged["updatedAt"] = time.time()

    return PageBindings.model_validate(merged)


def matches_url(bindings: PageBindings, url: str) -> bool:
    """Substring match in either direction between url and urlPattern."""
    pattern = bindings.url_pattern
    if not pattern:
        return False
    host = url_hostname(url)
    return pattern in url or pattern in host or host in pattern


# =============================================================================
# EXAMPLES
# =============================================================================

EXAMPLE_BINDINGS: Dict[str, PageBindings] = {
    "linkedin_jobs": PageBindings.model_validate({
        "id": "linkedin_jobs_v1",
        "urlPattern": "linkedin.com/jobs",
        "SEARCH_BOX": ".jobs-search-box__text-input",
        "LIST": ".jobs-search-results-list",
        "LIST_ITEM": ".jobs-search-results__list-item",
        "LIST_ITEM_ACTIVE": ".jobs-search-results__list-item--active",
        "DETAILS_PANEL": ".jobs-details",
        "DETAILS_CONTENT": [".jobs-unified-top-card", ".jobs-description-content"],
        "ELEMENTS": {
            "sortDropdown": ".jobs-search-sort-button",
            "showResults": ".filter-show-results-button",
        },
        "SCROLL_CONTAINER": ".jobs-search-results-list",
        "PAGE_LOADED": {"exists": ".jobs-search-results-list"},
        "LIST_LOADED": {"exists": ".jobs-search-results__list-item"},
        "LIST_UPDATED": {"countChanged": ".jobs-search-results__list-item"},
        "DETAILS_LOADED": {"exists": ".jobs-description-content"},
        "NO_MORE_ITEMS": {"or": [
            {"exists": ".jobs-search-no-results"},
            {"exists": '.jobs-search-results__list-item[data-is-last="true"]'},
        ]},
        "LOADING": {"exists": ".jobs-search-results__loader"},
        "ITEM_ID": {"from": "href", "selector": 'a[href*="/jobs/view/"]', "pattern": r"/jobs/view/(\d+)"},
        "SCROLL_BEHAVIOR": "infinite",
        "CLICK_BEHAVIOR": "shows_panel",
    }),
    "indeed_jobs": PageBindings.model_validate({
        "id": "indeed_jobs_v1",
        "urlPattern": "indeed.com/jobs",
        "SEARCH_BOX": "#text-input-what",
        "LIST": ".jobsearch-ResultsList",
        "LIST_ITEM": ".job_seen_beacon",
        "DETAILS_PANEL": ".jobsearch-ViewJobLayout",
        "DETAILS_CONTENT": [".jobsearch-JobInfoHeader", ".jobsearch-JobComponent-description"],
        "ELEMENTS": {
            "sortDropdown": "#filter-dateposted",
            "findJobsButton": ".yosegi-InlineWhatWhere-primaryButton",
        },
        "PAGE_LOADED": {"exists": ".jobsearch-ResultsList"},
        "LIST_LOADED": {"exists": ".job_seen_beacon"},
        "LIST_UPDATED": {"countChanged": ".job_seen_beacon"},
        "DETAILS_LOADED": {"exists": ".jobsearch-JobComponent-description"},
        "NO_MORE_ITEMS": {"exists": ".jobsearch-NoResults"},
        "ITEM_ID": {"from": "attribute", "selector": "a[data-jk]", "attribute": "data-jk"},
        "SCROLL_BEHAVIOR": "paginated",
        "NEXT_PAGE_BUTTON": '[data-testid="pagination-page-next"]',
        "CLICK_BEHAVIOR": "shows_panel",
    }),
}
