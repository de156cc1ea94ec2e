"""
Integration tests for the shopping agent and the command line.

Plan -> grocery list -> check items, against a real temporary database.
"""

import json
from datetime import date

import pytest
from pantrypal.agents.shopping_agent import ShoppingAgent
from pantrypal.config import AppConfig
from pantrypal.data.sync import NullRemoteStore
from pantrypal.llm_provider import NullLLMProvider
from pantrypal.main import PantryPalAssistant, main
from pantrypal.planner import PlannerContext


@pytest.fixture
def shopping_agent(populated_db):
    return ShoppingAgent(populated_db)


class TestShoppingAgent:
    """Test grocery list generation through the agent."""

    def test_generate(self, shopping_agent, populated_db):
        result = shopping_agent.generate_grocery_list("2024-11-18")

        assert result["success"] is True
        assert result["sync"] is None
        assert result["progress"] == {"checked": 0, "total": 7, "percentage": 0}
        assert result["grocery_list"]["week_id"] == "2024-11-18"
        assert populated_db.load_grocery_list("2024-11-18") is not None

    def test_generate_without_plan(self, shopping_agent):
        result = shopping_agent.generate_grocery_list("2024-11-25")

        assert result["success"] is False
        assert "No recipes planned" in result["error"]

    def test_generate_with_empty_plan_keeps_existing_list(self, shopping_agent, populated_db, sample_plan):
        """An empty week does not overwrite the stored list."""
        shopping_agent.generate_grocery_list("2024-11-18")
        sample_plan.clear_meals()
        populated_db.save_planner(sample_plan)

        result = shopping_agent.generate_grocery_list("2024-11-18")

        assert result["success"] is False
        assert len(populated_db.load_grocery_list("2024-11-18").items) == 7

    def test_regenerate_resets_checks(self, shopping_agent):
        shopping_agent.generate_grocery_list("2024-11-18")
        shopping_agent.toggle_item("2024-11-18", 0, True)

        result = shopping_agent.generate_grocery_list("2024-11-18")

        assert result["progress"]["checked"] == 0

    def test_toggle_item(self, shopping_agent):
        shopping_agent.generate_grocery_list("2024-11-18")

        result = shopping_agent.toggle_item("2024-11-18", 3, True)

        assert result["success"] is True
        assert result["progress"] == {"checked": 1, "total": 7, "percentage": 14}

    def test_toggle_missing_item(self, shopping_agent):
        shopping_agent.generate_grocery_list("2024-11-18")

        assert shopping_agent.toggle_item("2024-11-18", 7, True)["success"] is False
        assert shopping_agent.toggle_item("2024-11-25", 0, True)["success"] is False

    def test_get_and_clear(self, shopping_agent):
        assert shopping_agent.get_grocery_list("2024-11-18")["success"] is False

        shopping_agent.generate_grocery_list("2024-11-18")
        assert shopping_agent.get_grocery_list("2024-11-18")["success"] is True

        assert shopping_agent.clear_grocery_list("2024-11-18")["success"] is True
        assert shopping_agent.get_progress("2024-11-18") == {"checked": 0, "total": 0, "percentage": 0}

    def test_format_shopping_list(self, shopping_agent):
        shopping_agent.generate_grocery_list("2024-11-18")
        shopping_agent.toggle_item("2024-11-18", 0, True)

        text = shopping_agent.format_shopping_list("2024-11-18")

        assert "Shopping List for Week of 2024-11-18" in text
        assert "Progress: 1/7 (14%)" in text
        assert "CANNED & JARRED" in text
        assert "  [0] ☑ Olive oil - 2 tbsp" in text
        assert "  [5] ☐ Tomatoes - 2 cups, 1 can" in text
        assert "  [6] ☐ Salt" in text

    def test_format_missing_list(self, shopping_agent):
        assert shopping_agent.format_shopping_list("2024-11-25") == "Grocery list not found."


class TestPantryPalAssistant:
    """Test the orchestrator with mirroring to a NullRemoteStore."""

    @pytest.fixture
    def assistant(self, temp_db_dir):
        remote = NullRemoteStore()
        assistant = PantryPalAssistant(
            AppConfig(db_dir=temp_db_dir, use_null_llm=True),
            remote=remote,
            llm=NullLLMProvider(response_text='{"recommendations": [{"title": "Risotto"}]}'),
        )
        yield assistant
        assistant.close()

    def test_plan_and_shop(self, assistant, sample_recipes):
        for recipe in sample_recipes:
            assistant.db.save_recipe(recipe)
        context = PlannerContext()
        monday = context.week_dates()[0].date_string

        assistant.set_meal(monday, "recipe-2", "local")
        result = assistant.create_grocery_list(context, "local")

        assert result["success"] is True
        assert len(result["grocery_list"]["items"]) == 4
        result["sync"].result(timeout=5)

    def test_set_meal_unknown_recipe(self, assistant):
        with pytest.raises(ValueError):
            assistant.set_meal("2024-11-18", "missing", "local")

    def test_set_meal_invalid_date(self, assistant, sample_recipes):
        assistant.db.save_recipe(sample_recipes[0])
        with pytest.raises(ValueError):
            assistant.set_meal("18/11/2024", "recipe-1", "local")

    @pytest.mark.parametrize("value", ["20241118", "2024-W47-1"])
    def test_set_meal_non_calendar_date_adds_no_slot(self, assistant, sample_recipes, value):
        """Compact and week-form dates are refused instead of becoming an eighth slot."""
        assistant.db.save_recipe(sample_recipes[0])

        with pytest.raises(ValueError):
            assistant.set_meal(value, "recipe-1", "local")

        assert assistant.db.load_planner("2024-11-18", user_id="local") is None

    def test_plan_keys_stay_canonical(self, assistant, sample_recipes):
        assistant.db.save_recipe(sample_recipes[0])

        assistant.set_meal("2024-11-18", "recipe-1", "local")
        plan = assistant.remove_meal("2024-11-19", "local")

        assert sorted(plan.meals) == [f"2024-11-{day}" for day in range(18, 25)]
        assert plan.meals["2024-11-18"].recipe_id == "recipe-1"

    def test_describe_plan(self, assistant, sample_recipes):
        assistant.db.save_recipe(sample_recipes[0])
        assistant.set_meal("2024-11-20", "recipe-1", "local")

        summary = assistant.describe_plan(PlannerContext(today=date(2024, 11, 20)), "local")

        assert summary["week_range"] == "Nov 18 - Nov 24, 2024"
        assert summary["days"][2]["recipe_title"] == "Tomato Spaghetti"
        assert summary["days"][0]["recipe_id"] is None

    def test_recommend(self, assistant, sample_recipes):
        assistant.db.save_recipe(sample_recipes[0])

        result = assistant.recommend("local")

        assert result["success"] is True
        assert result["recommendations"] == [{"title": "Risotto"}]


class TestCommandLine:
    """Test the pantrypal command."""

    @pytest.fixture(autouse=True)
    def null_llm(self, monkeypatch):
        monkeypatch.setenv("USE_NULL_LLM", "true")

    def run(self, temp_db_dir, *args):
        return main(["--db-dir", temp_db_dir, *args])

    def test_import_plan_and_grocery(self, temp_db_dir, tmp_path, sample_recipes, capsys):
        export = tmp_path / "recipes.json"
        export.write_text(json.dumps([r.to_dict() for r in sample_recipes]), encoding="utf-8")
        monday = PlannerContext().week_dates()[0].date_string

        assert self.run(temp_db_dir, "import", str(export)) == 0
        assert self.run(temp_db_dir, "plan-set", monday, "recipe-1") == 0
        assert self.run(temp_db_dir, "grocery") == 0
        assert self.run(temp_db_dir, "grocery-check", "0") == 0

        out = capsys.readouterr().out
        assert "Imported 2 recipes" in out
        assert "Spaghetti - 1 lb" in out
        assert "1/4 items (25%)" in out

    def test_grocery_without_plan_fails(self, temp_db_dir, capsys):
        assert self.run(temp_db_dir, "grocery") == 1
        assert "No recipes planned" in capsys.readouterr().out

    def test_plan_set_invalid_date(self, temp_db_dir, capsys):
        assert self.run(temp_db_dir, "plan-set", "someday", "recipe-1") == 1
        assert "Error" in capsys.readouterr().out

    def test_import_rejects_non_array(self, temp_db_dir, tmp_path, capsys):
        export = tmp_path / "bad.json"
        export.write_text('{"id": "x"}', encoding="utf-8")

        assert self.run(temp_db_dir, "import", str(export)) == 1

    def test_plan_show(self, temp_db_dir, capsys):
        assert self.run(temp_db_dir, "plan-show", "--offset", "1") == 0
        assert "Week of" in capsys.readouterr().out
