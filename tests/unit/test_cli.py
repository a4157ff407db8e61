"""
Tests for the command line interface.
"""

import json

from typer.testing import CliRunner

from recipe_agent import __version__
from recipe_agent.main import app
from recipe_agent.recipe.store import JsonFileBindingStore
from recipe_agent.recipe.templates import job_listing_extraction

runner = CliRunner()


class TestValidateRecipe:
    """Test `validate-recipe`."""

    def test_valid_recipe(self, tmp_path):
        path = tmp_path / "recipe.json"
        path.write_text(job_listing_extraction("https://jobs.example.com").to_json())

        result = runner.invoke(app, ["validate-recipe", str(path)])

        assert result.exit_code == 0
        assert "is valid" in result.output

    def test_unknown_command(self, tmp_path):
        path = tmp_path / "recipe.json"
        path.write_text(json.dumps({"name": "bad", "commands": [{"type": "FLY"}]}))

        result = runner.invoke(app, ["validate-recipe", str(path)])

        assert result.exit_code == 1
        assert "Invalid recipe" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["validate-recipe", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_not_json(self, tmp_path):
        path = tmp_path / "recipe.json"
        path.write_text("{oops")

        result = runner.invoke(app, ["validate-recipe", str(path)])

        assert result.exit_code == 1


class TestValidateBindings:
    """Test `validate-bindings`."""

    def test_valid_bindings(self, tmp_path, make_bindings):
        path = tmp_path / "bindings.json"
        path.write_text(json.dumps(make_bindings().to_dict()))

        result = runner.invoke(app, ["validate-bindings", str(path)])

        assert result.exit_code == 0
        assert "Bindings are valid" in result.output

    def test_invalid_bindings(self, tmp_path):
        path = tmp_path / "bindings.json"
        path.write_text(json.dumps({"LIST": ".list"}))

        result = runner.invoke(app, ["validate-bindings", str(path)])

        assert result.exit_code == 1
        assert "LIST_ITEM selector is required" in result.output


class TestBindingsCommands:
    """Test `bindings list` and `bindings clear`."""

    def test_list_empty(self, tmp_path):
        result = runner.invoke(app, ["bindings", "list", "--store", str(tmp_path / "b.json")])

        assert result.exit_code == 0
        assert "No stored bindings" in result.output

    def test_list_and_clear(self, tmp_path, make_bindings):
        store_path = str(tmp_path / "b.json")
        store = JsonFileBindingStore(store_path)
        store.put(make_bindings())
        store.put(make_bindings(id="other", urlPattern="example.org"))

        listed = runner.invoke(app, ["bindings", "list", "--store", store_path])
        cleared = runner.invoke(app, ["bindings", "clear", "--url", "https://jobs.example.com", "--store", store_path])

        assert listed.exit_code == 0
        assert "test_jobs" in listed.output
        assert cleared.exit_code == 0
        assert [b.id for b in store.all()] == ["other"]

        runner.invoke(app, ["bindings", "clear", "--store", store_path])
        assert store.all() == []


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output
