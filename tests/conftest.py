"""
Pytest configuration and shared fixtures.

Fixtures are reusable test setup that can be injected into tests.
"""

import pytest
import tempfile
import shutil
from datetime import date

from pantrypal.data.database import DatabaseInterface
from pantrypal.data.models import Recipe, WeeklyPlan
from pantrypal.planner import PlannerContext, initialize_planner


# Wednesday; its week runs Mon 2024-11-18 .. Sun 2024-11-24
TODAY = date(2024, 11, 20)
WEEK_ID = "2024-11-18"


@pytest.fixture
def temp_db_dir():
    """
    Create a temporary database directory for testing.

    This fixture is automatically cleaned up after each test.
    """
    temp_dir = tempfile.mkdtemp()
    yield temp_dir
    shutil.rmtree(temp_dir)


@pytest.fixture
def db(temp_db_dir):
    """
    Create a fresh DatabaseInterface for each test.

    Usage in tests:
        def test_something(db):
            db.save_recipe(...)
    """
    return DatabaseInterface(db_dir=temp_db_dir)


@pytest.fixture
def planner_context():
    """Planner context pinned to the week of 2024-11-18."""
    return PlannerContext(today=TODAY)


@pytest.fixture
def sample_recipes():
    """Two recipes that share diced tomatoes."""
    return [
        Recipe(
            id="recipe-1",
            title="Tomato Spaghetti",
            ingredients=[
                "2 cups diced tomatoes",
                "1 lb spaghetti",
                "3 cloves garlic, minced",
                "Salt to taste",
            ],
            steps=["Boil pasta", "Simmer sauce", "Combine"],
            cuisine_focus="Italian",
            meal_type="dinner",
            dietary_preference="vegetarian",
        ),
        Recipe(
            id="recipe-2",
            title="Chicken Salad",
            ingredients=[
                "1 lb chicken breast",
                "1 can diced tomatoes",
                "1 head lettuce",
                "2 tbsp olive oil",
            ],
            steps=["Grill chicken", "Toss salad"],
            cuisine_focus="American",
            meal_type="dinner",
            dietary_preference="none",
        ),
    ]


@pytest.fixture
def sample_plan(planner_context):
    """Week of 2024-11-18 with both sample recipes planned (recipe-1 twice)."""
    plan: WeeklyPlan = initialize_planner(planner_context)
    plan.set_meal("2024-11-18", "recipe-1")
    plan.set_meal("2024-11-19", "recipe-2")
    plan.set_meal("2024-11-21", "recipe-1")
    return plan


@pytest.fixture
def populated_db(db, sample_recipes, sample_plan):
    """Database holding the sample recipes and plan."""
    for recipe in sample_recipes:
        db.save_recipe(recipe)
    db.save_planner(sample_plan)
    return db
