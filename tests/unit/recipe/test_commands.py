"""
Tests for the recipe command model and parsing.
"""

import json

import pytest
from pydantic import ValidationError

from recipe_agent.exceptions import RecipeValidationError
from recipe_agent.recipe import builders as cmd
from recipe_agent.recipe.commands import (
    COMMAND_TYPES,
    ForEachItemCommand,
    IfCommand,
    NotCondition,
    OrUntil,
    RepeatCommand,
    WaitCommand,
    normalize_command_dicts,
    parse_commands,
    parse_recipe,
)


class TestCommandModel:
    """Test command construction and immutability."""

    def test_closed_set_of_types(self):
        assert len(COMMAND_TYPES) == 27
        assert {"OPEN_PAGE", "FOR_EACH_ITEM_IN_LIST", "CLICK_IF_EXISTS", "END"} <= COMMAND_TYPES

    def test_commands_are_frozen(self):
        command = cmd.go_to("searchBox")
        with pytest.raises(ValidationError):
            command.name = "list"

    def test_save_alias(self):
        """SAVE's label is `as` on the wire."""
        dumped = cmd.save("job").model_dump(by_alias=True)
        assert dumped == {"type": "SAVE", "as": "job"}

    def test_recipe_to_dict_uses_wire_names(self):
        recipe = cmd.recipe(
            "demo",
            [
                cmd.for_each_item([cmd.click()], skip_processed=False),
                cmd.if_(cmd.new_items(), then=[cmd.end()], else_=[cmd.scroll()]),
            ],
            max_items=5,
        )

        data = recipe.to_dict()

        assert data["config"] == {"maxItems": 5}
        assert data["commands"][0]["skipProcessed"] is False
        assert data["commands"][1]["else"] == [{"type": "SCROLL", "target": "list", "direction": "down"}]
        assert json.loads(recipe.to_json())["name"] == "demo"


class TestNormalization:
    """Test fix-ups applied to LLM-authored command JSON."""

    def test_commands_renamed_to_body(self):
        raw = [{"type": "REPEAT", "commands": [{"type": "SCROLL"}], "until": {"type": "MAX_SCROLLS", "count": 2}}]

        normalized = normalize_command_dicts(raw)

        assert normalized[0]["body"] == [{"type": "SCROLL"}]
        assert "commands" not in normalized[0]

    def test_non_object_entries_become_wait(self):
        normalized = normalize_command_dicts(["CLICK", {"type": "END"}])

        assert normalized == [{"type": "WAIT", "seconds": 0.1}, {"type": "END"}]

    def test_if_branches_are_normalized(self):
        raw = [{
            "type": "IF",
            "condition": {"type": "NEW_ITEMS"},
            "then": [{"type": "FOR_EACH_ITEM_IN_LIST", "commands": [{"type": "CLICK"}]}],
            "else": [42],
        }]

        normalized = normalize_command_dicts(raw)

        assert normalized[0]["then"][0]["body"] == [{"type": "CLICK"}]
        assert normalized[0]["else"] == [{"type": "WAIT", "seconds": 0.1}]

    def test_not_a_list(self):
        assert normalize_command_dicts({"type": "END"}) == []

    def test_input_is_not_mutated(self):
        raw = [{"type": "FOR_EACH_ITEM_IN_LIST", "commands": []}]
        normalize_command_dicts(raw)
        assert "commands" in raw[0]


class TestParsing:
    """Test parse_commands and parse_recipe."""

    def test_parse_nested_recipe(self):
        recipe = parse_recipe({
            "id": "r1",
            "name": "jobs",
            "commands": [
                {"type": "OPEN_PAGE", "url": "https://example.com"},
                {
                    "type": "REPEAT",
                    "commands": [
                        {"type": "FOR_EACH_ITEM_IN_LIST", "skipProcessed": False, "body": [
                            {"type": "SAVE", "as": "job"},
                        ]},
                    ],
                    "until": {"type": "OR", "conditions": [
                        {"type": "COLLECTED", "count": 5},
                        {"type": "NO_MORE_ITEMS"},
                    ]},
                },
                {"type": "IF", "condition": {"type": "NOT", "condition": {"type": "EXISTS", "name": "x"}}},
            ],
            "config": {"maxItems": 5, "timeout": 60000},
        })

        assert recipe.id == "r1"
        assert recipe.config.max_items == 5
        assert recipe.config.timeout_ms == 60000

        repeat = recipe.commands[1]
        assert isinstance(repeat, RepeatCommand)
        assert isinstance(repeat.until, OrUntil)
        loop = repeat.body[0]
        assert isinstance(loop, ForEachItemCommand)
        assert loop.skip_processed is False
        assert loop.body[0].save_as == "job"

        branch = recipe.commands[2]
        assert isinstance(branch, IfCommand)
        assert isinstance(branch.condition, NotCondition)
        assert branch.then == []

    def test_parse_json_string(self):
        recipe = parse_recipe('{"name": "x", "commands": [{"type": "WAIT", "seconds": 1}]}')

        assert isinstance(recipe.commands[0], WaitCommand)
        assert recipe.id.startswith("recipe_")

    def test_unknown_type_rejected(self):
        with pytest.raises(RecipeValidationError) as exc_info:
            parse_recipe({"commands": [{"type": "FLY"}]})

        assert exc_info.value.message.startswith("Invalid recipe")
        assert exc_info.value.details["errors"]

    def test_missing_field_rejected(self):
        with pytest.raises(RecipeValidationError):
            parse_commands([{"type": "OPEN_PAGE"}])

    def test_not_json(self):
        with pytest.raises(RecipeValidationError, match="not valid JSON"):
            parse_recipe("{not json")

    def test_not_an_object(self):
        with pytest.raises(RecipeValidationError, match="must be a JSON object"):
            parse_recipe("[1, 2]")

    def test_max_items_must_be_positive(self):
        with pytest.raises(RecipeValidationError):
            parse_recipe({"commands": [], "config": {"maxItems": 0}})
