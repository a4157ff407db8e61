"""
Tests for the binding model: validation, coercion, defaults and merging.
"""

import time

from recipe_agent.recipe.bindings import (
    EXAMPLE_BINDINGS,
    AnyOfState,
    ExistsState,
    PageBindings,
    coerce_binding_fields,
    coerce_condition,
    finalize_bindings,
    merge_bindings,
    validate_bindings,
)


class TestValidation:
    """Test validate_bindings."""

    def test_complete_record_is_valid(self, make_bindings):
        result = validate_bindings(make_bindings())

        assert result.valid
        assert result.errors == []

    def test_empty_record_lists_every_requirement(self):
        result = validate_bindings({})

        assert not result.valid
        assert result.errors == [
            "LIST selector is required",
            "LIST_ITEM selector is required",
            "DETAILS_CONTENT selectors are required",
            "ITEM_ID extractor is required",
            "LIST_LOADED condition is required",
            "DETAILS_LOADED condition is required",
        ]
        assert "SCROLL_BEHAVIOR not set, assuming infinite scroll" in result.warnings
        assert "PAGE_LOADED condition not set" in result.warnings

    def test_blank_selectors_count_as_missing(self, make_bindings):
        result = validate_bindings(make_bindings(LIST="  ", DETAILS_CONTENT=[""]))

        assert "LIST selector is required" in result.errors
        assert "DETAILS_CONTENT selectors are required" in result.errors

    def test_scroll_behavior_needs_its_button(self, make_bindings):
        paginated = validate_bindings(make_bindings(SCROLL_BEHAVIOR="paginated"))
        load_more = validate_bindings(make_bindings(SCROLL_BEHAVIOR="load_more_button"))

        assert paginated.errors == ["NEXT_PAGE_BUTTON required when SCROLL_BEHAVIOR is paginated"]
        assert load_more.errors == ["LOAD_MORE_BUTTON required when SCROLL_BEHAVIOR is load_more_button"]

    def test_navigating_click_warns_without_return(self, make_bindings):
        result = validate_bindings(make_bindings(CLICK_BEHAVIOR="navigates"))

        assert result.valid
        assert any("RETURN_TO_LIST" in w for w in result.warnings)

    def test_example_bindings_are_valid(self):
        for name, bindings in EXAMPLE_BINDINGS.items():
            assert validate_bindings(bindings).valid, name


class TestCoercion:
    """Test normalization of LLM-shaped binding values."""

    def test_condition_shorthands(self):
        assert coerce_condition(".card") == {"exists": ".card"}
        assert coerce_condition({"selector": ".card"}) == {"exists": ".card"}
        assert coerce_condition({"countChanged": ".card"}) == {"countChanged": ".card"}

    def test_nested_condition(self):
        value = coerce_condition({"or": [".a", {"gone": ".spinner"}, 7]})

        assert value == {"or": [{"exists": ".a"}, {"gone": ".spinner"}]}

    def test_unusable_conditions(self):
        assert coerce_condition("") is None
        assert coerce_condition(12) is None
        assert coerce_condition({"exists": ".a", "visible": ".b"}) is None

    def test_fields(self):
        fields = coerce_binding_fields({
            "LIST": " .list ",
            "DETAILS_CONTENT": ".panel",
            "ITEM_ID": "data-job-id",
            "FILTERS": {"remote": "#remote", "broken": 3},
            "ELEMENTS": {"apply": ".apply", "empty": ""},
            "DETAILS_LOADED": ".panel",
            "SEARCH_BOX": None,
            "NOT_A_BINDING": ".x",
        })

        assert fields == {
            "LIST": ".list",
            "DETAILS_CONTENT": [".panel"],
            "ITEM_ID": {"from": "attribute", "attribute": "data-job-id"},
            "FILTERS": {"remote": {"selector": "#remote"}},
            "ELEMENTS": {"apply": ".apply"},
            "DETAILS_LOADED": {"exists": ".panel"},
        }

    def test_item_id_selector_string(self):
        fields = coerce_binding_fields({"ITEM_ID": "a.job-link"})

        assert fields["ITEM_ID"] == {"from": "href", "selector": "a.job-link"}


class TestFinalize:
    """Test defaults applied to discovery output."""

    def test_minimal_discovery_gets_defaults(self):
        bindings = finalize_bindings(
            {"LIST": ".jobs", "LIST_ITEM": ".job", "DETAILS_PANEL": ".panel"},
            "https://jobs.example.com/search?q=x",
        )

        assert bindings.url_pattern == "jobs.example.com"
        assert bindings.id.startswith("bindings_")
        assert bindings.version == 1
        assert bindings.click_behavior == "shows_panel"
        assert bindings.scroll_behavior == "infinite"
        assert bindings.details_content == [".panel"]
        assert bindings.list_loaded == ExistsState(exists=".job")
        assert bindings.details_loaded == ExistsState(exists=".panel")
        assert bindings.item_id.source == "href"
        assert validate_bindings(bindings).valid

    def test_defaults_without_panel(self):
        bindings = finalize_bindings(
            {"LIST": ".jobs", "LIST_ITEM": ".job", "NEXT_PAGE_BUTTON": ".next"},
            "https://example.com/jobs",
        )

        assert bindings.click_behavior == "inline"
        assert bindings.scroll_behavior == "paginated"
        assert bindings.details_content == []
        assert bindings.details_loaded == ExistsState(exists="body")

    def test_given_values_are_kept(self):
        bindings = finalize_bindings(
            {"LIST": ".jobs", "LIST_ITEM": ".job", "NO_MORE_ITEMS": {"or": [".end", ".empty"]}},
            "https://example.com",
        )

        assert isinstance(bindings.no_more_items, AnyOfState)


class TestMerge:
    """Test merge_bindings."""

    def test_patch_replaces_key_and_bumps_version(self, make_bindings):
        original = make_bindings(updatedAt=time.time() - 3600)

        merged = merge_bindings(original, {"LIST_LOADED": ".new-card"})

        assert merged.version == original.version + 1
        assert merged.updated_at > original.updated_at
        assert merged.list_loaded == ExistsState(exists=".new-card")
        assert merged.list_item == original.list_item
        assert original.list_loaded == ExistsState(exists=".job-card")

    def test_named_maps_merge_per_name(self, make_bindings):
        original = make_bindings(ELEMENTS={"apply": ".apply", "save": ".save"})

        merged = merge_bindings(original, {"ELEMENTS": {"apply": ".apply-v2"}})

        assert merged.elements == {"apply": ".apply-v2", "save": ".save"}

    def test_details_content_union(self, make_bindings):
        original = make_bindings(DETAILS_CONTENT=[".a", ".b"])

        merged = merge_bindings(original, {"DETAILS_CONTENT": [".c", ".a"]})

        assert merged.details_content == [".c", ".a", ".b"]

    def test_meta_keys_ignored(self, make_bindings):
        original = make_bindings()

        merged = merge_bindings(original, {"id": "other", "version": 40})

        assert merged.id == original.id
        assert merged.version == 2


class TestRecord:
    """Test PageBindings helpers."""

    def test_round_trip_through_wire_format(self, make_bindings):
        bindings = make_bindings(FILTERS={"remote": {"selector": "#remote", "type": "checkbox"}})

        assert PageBindings.from_dict(bindings.to_dict()) == bindings

    def test_wire_format_omits_unset(self, make_bindings):
        data = make_bindings().to_dict()

        assert data["ITEM_ID"] == {"from": "data"}
        assert "SEARCH_BOX" not in data

    def test_matches_url(self, make_bindings):
        bindings = make_bindings()

        assert bindings.matches_url("https://jobs.example.com/search")
        assert not bindings.matches_url("https://example.org/jobs")
        assert not make_bindings(urlPattern="").matches_url("https://jobs.example.com")

    def test_age_hours(self, make_bindings):
        bindings = make_bindings(updatedAt=1000.0)

        assert bindings.age_hours(now=1000.0 + 7200) == 2
