"""
Tests for the Flask JSON API.

Uses the Flask test client against a temporary database and a
NullLLMProvider with a canned reply.
"""

import importlib
import json
import threading
import time

import pytest
from pantrypal.config import AppConfig
from pantrypal.data.database import LOCAL_USER
from pantrypal.llm_provider import NullLLMProvider
from pantrypal.main import PantryPalAssistant
from pantrypal.planner import PlannerContext
from pantrypal.web.app import app

web_app = importlib.import_module("pantrypal.web.app")


CANNED = json.dumps({
    "recommendations": [{"title": "Risotto", "why": "You like Italian"}],
    "insights": {"cookingStyle": "Comforting"},
})


@pytest.fixture
def assistant(temp_db_dir):
    assistant = PantryPalAssistant(
        AppConfig(db_dir=temp_db_dir, use_null_llm=True),
        llm=NullLLMProvider(response_text=CANNED),
    )
    yield assistant
    assistant.close()


@pytest.fixture
def client(assistant):
    """Create test client wired to a temporary assistant."""
    app.config['TESTING'] = True
    app.config['ASSISTANT'] = assistant
    with app.test_client() as client:
        yield client
    app.config['ASSISTANT'] = None


@pytest.fixture
def week():
    """Dates of the current week (the API's offset=0 week)."""
    return [day.date_string for day in PlannerContext().week_dates()]


def post_recipes(client, recipes):
    for recipe in recipes:
        response = client.post('/api/recipes', json=recipe.to_dict())
        assert response.status_code == 201


class TestHealth:
    def test_health(self, client):
        response = client.get('/health')

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"


class TestRecipeRoutes:
    """Test recipe endpoints."""

    def test_create_list_get_delete(self, client, sample_recipes):
        post_recipes(client, sample_recipes)

        listed = client.get('/api/recipes').get_json()
        assert {r["id"] for r in listed["recipes"]} == {"recipe-1", "recipe-2"}

        recipe = client.get('/api/recipes/recipe-1').get_json()["recipe"]
        assert recipe["title"] == "Tomato Spaghetti"

        assert client.delete('/api/recipes/recipe-1').status_code == 200
        assert client.get('/api/recipes/recipe-1').status_code == 404

    def test_create_generates_id(self, client):
        response = client.post('/api/recipes', json={"title": "Soup", "ingredients": ["1 onion"]})

        assert response.status_code == 201
        assert response.get_json()["recipe"]["id"].startswith("recipe-")

    def test_invalid_body(self, client):
        response = client.post('/api/recipes', data="not json", content_type="application/json")

        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_delete_unknown(self, client):
        assert client.delete('/api/recipes/missing').status_code == 404

    def test_users_are_isolated(self, client, sample_recipes):
        client.post('/api/recipes', json=sample_recipes[0].to_dict(), headers={"X-User-Id": "alice"})

        assert client.get('/api/recipes/recipe-1', headers={"X-User-Id": "alice"}).status_code == 200
        assert client.get('/api/recipes/recipe-1').status_code == 404


class TestCollectionRoutes:
    """Test collection endpoints."""

    def test_collection_lifecycle(self, client, sample_recipes):
        post_recipes(client, sample_recipes)

        created = client.post('/api/collections', json={"name": "Weeknight"})
        assert created.status_code == 201
        collection_id = created.get_json()["collection"]["id"]

        assigned = client.put('/api/recipes/recipe-2/collections', json={"collection_ids": [collection_id]})
        assert assigned.get_json()["recipe"]["collection_ids"] == [collection_id]

        in_collection = client.get(f'/api/collections/{collection_id}/recipes').get_json()
        assert [r["id"] for r in in_collection["recipes"]] == ["recipe-2"]

        renamed = client.patch(f'/api/collections/{collection_id}', json={"name": "Quick"})
        assert renamed.get_json()["collection"]["name"] == "Quick"

        assert client.delete(f'/api/collections/{collection_id}').status_code == 200
        recipe = client.get('/api/recipes/recipe-2').get_json()["recipe"]
        assert recipe["collection_ids"] == []

    def test_all_collection(self, client, sample_recipes):
        post_recipes(client, sample_recipes)
        recipes = client.get('/api/collections/all/recipes').get_json()["recipes"]
        assert len(recipes) == 2

    def test_blank_name(self, client):
        assert client.post('/api/collections', json={"name": "  "}).status_code == 400

    def test_unknown_collection(self, client):
        assert client.patch('/api/collections/missing', json={"name": "X"}).status_code == 404
        assert client.delete('/api/collections/missing').status_code == 404

    def test_assign_unknown_recipe(self, client):
        response = client.put('/api/recipes/missing/collections', json={"collection_ids": []})
        assert response.status_code == 404

    def test_assign_bad_ids(self, client, sample_recipes):
        post_recipes(client, sample_recipes)
        response = client.put('/api/recipes/recipe-1/collections', json={"collection_ids": "c1"})
        assert response.status_code == 400


class TestPlannerRoutes:
    """Test planner endpoints."""

    def test_empty_week(self, client):
        data = client.get('/api/planner').get_json()

        assert data["success"] is True
        assert len(data["days"]) == 7
        assert all(day["recipe_id"] is None for day in data["days"])

    def test_set_and_remove(self, client, sample_recipes, week):
        post_recipes(client, sample_recipes)

        response = client.put(f'/api/planner/{week[1]}', json={"recipe_id": "recipe-1"})
        assert response.status_code == 200

        days = client.get('/api/planner').get_json()["days"]
        assert days[1]["recipe_title"] == "Tomato Spaghetti"

        client.delete(f'/api/planner/{week[1]}')
        days = client.get('/api/planner').get_json()["days"]
        assert days[1]["recipe_id"] is None

    def test_offset(self, client, sample_recipes):
        post_recipes(client, sample_recipes)
        next_week = PlannerContext(week_offset=1).week_dates()

        client.put(f'/api/planner/{next_week[0].date_string}', json={"recipe_id": "recipe-2"})

        assert client.get('/api/planner').get_json()["days"][0]["recipe_id"] is None
        assert client.get('/api/planner?offset=1').get_json()["days"][0]["recipe_id"] == "recipe-2"

    def test_clear(self, client, sample_recipes, week):
        post_recipes(client, sample_recipes)
        client.put(f'/api/planner/{week[0]}', json={"recipe_id": "recipe-1"})

        response = client.post('/api/planner/clear')

        assert response.status_code == 200
        assert all(day["recipe_id"] is None for day in client.get('/api/planner').get_json()["days"])

    def test_invalid_date(self, client, sample_recipes):
        post_recipes(client, sample_recipes)
        response = client.put('/api/planner/not-a-date', json={"recipe_id": "recipe-1"})
        assert response.status_code == 400

    def test_compact_date_rejected(self, client, sample_recipes):
        post_recipes(client, sample_recipes)
        monday = PlannerContext().week_dates()[0].date_string.replace("-", "")

        assert client.put(f'/api/planner/{monday}', json={"recipe_id": "recipe-1"}).status_code == 400
        assert all(day["recipe_id"] is None for day in client.get('/api/planner').get_json()["days"])

    def test_unknown_recipe(self, client, week):
        response = client.put(f'/api/planner/{week[0]}', json={"recipe_id": "missing"})
        assert response.status_code == 404

    def test_missing_recipe_id(self, client, week):
        assert client.put(f'/api/planner/{week[0]}', json={}).status_code == 400


class TestGroceryRoutes:
    """Test grocery list endpoints."""

    def _plan_week(self, client, sample_recipes, week):
        post_recipes(client, sample_recipes)
        client.put(f'/api/planner/{week[0]}', json={"recipe_id": "recipe-1"})
        client.put(f'/api/planner/{week[2]}', json={"recipe_id": "recipe-2"})

    def test_generate_and_check(self, client, sample_recipes, week):
        self._plan_week(client, sample_recipes, week)

        response = client.post('/api/grocery')
        data = response.get_json()

        assert response.status_code == 200
        assert "sync" not in data
        assert data["progress"]["total"] == 7
        assert data["grocery_list"]["items"][0]["name"] == "Olive oil"

        checked = client.patch(f'/api/grocery/{week[0]}/items/0', json={"checked": True})
        assert checked.get_json()["progress"] == {"checked": 1, "total": 7, "percentage": 14}

        stored = client.get(f'/api/grocery/{week[0]}').get_json()
        assert stored["grocery_list"]["items"][0]["checked"] is True

    def test_generate_without_plan(self, client):
        response = client.post('/api/grocery')

        assert response.status_code == 400
        assert response.get_json()["success"] is False

    def test_item_out_of_range(self, client, sample_recipes, week):
        self._plan_week(client, sample_recipes, week)
        client.post('/api/grocery')

        response = client.patch(f'/api/grocery/{week[0]}/items/99', json={"checked": True})
        assert response.status_code == 404

    def test_checked_must_be_boolean(self, client, sample_recipes, week):
        self._plan_week(client, sample_recipes, week)
        client.post('/api/grocery')

        response = client.patch(f'/api/grocery/{week[0]}/items/0', json={"checked": "yes"})
        assert response.status_code == 400

    def test_clear(self, client, sample_recipes, week):
        self._plan_week(client, sample_recipes, week)
        client.post('/api/grocery')

        assert client.delete(f'/api/grocery/{week[0]}').status_code == 200
        assert client.get(f'/api/grocery/{week[0]}').status_code == 404

    def test_week_in_progress_returns_409(self, client, sample_recipes, week):
        self._plan_week(client, sample_recipes, week)
        key = (LOCAL_USER, week[0])
        web_app.generating_weeks.add(key)
        try:
            response = client.post('/api/grocery')
        finally:
            web_app.generating_weeks.discard(key)

        assert response.status_code == 409
        assert client.post('/api/grocery').status_code == 200

    def test_finished_generations_leave_no_entries(self, client, sample_recipes, week):
        """Each (user, week) is forgotten once its generation ends, success or not."""
        self._plan_week(client, sample_recipes, week)

        client.post('/api/grocery')
        client.post('/api/grocery?offset=1')
        for user in ("alice", "bob", "carol"):
            client.post('/api/grocery', headers={"X-User-Id": user})

        assert web_app.generating_weeks == set()


class TestRecommendationRoutes:
    """Test recommendation endpoint."""

    def test_from_saved_recipes(self, client, sample_recipes):
        post_recipes(client, sample_recipes)

        data = client.post('/api/recommendations', json={}).get_json()

        assert data["success"] is True
        assert data["recommendations"][0]["title"] == "Risotto"
        assert data["insights"]["cookingStyle"] == "Comforting"

    def test_from_posted_recipes(self, client, sample_recipes):
        body = {"recipes": [r.to_dict() for r in sample_recipes], "preferences": {"skill": "beginner"}}

        response = client.post('/api/recommendations', json=body)

        assert response.status_code == 200

    def test_recipes_must_be_list(self, client):
        response = client.post('/api/recommendations', json={"recipes": "lots"})
        assert response.status_code == 400

    def test_model_failure(self, client, assistant):
        assistant.recommendation_agent.llm = NullLLMProvider()

        response = client.post('/api/recommendations', json={})

        assert response.status_code == 502
        assert response.get_json()["success"] is False


class TestAssistantCreation:
    """Test lazy creation of the shared assistant."""

    def test_concurrent_first_requests_share_one_assistant(self, monkeypatch, temp_db_dir):
        created = []

        class SlowAssistant:
            def __init__(self, config):
                time.sleep(0.05)
                created.append(self)

        monkeypatch.setattr(web_app, "PantryPalAssistant", SlowAssistant)
        monkeypatch.setitem(app.config, "PANTRYPAL", AppConfig(db_dir=temp_db_dir, use_null_llm=True))
        monkeypatch.setitem(app.config, "ASSISTANT", None)

        start = threading.Barrier(4)
        seen = []

        def first_request():
            start.wait()
            seen.append(web_app.get_assistant())

        threads = [threading.Thread(target=first_request) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(created) == 1
        assert all(assistant is created[0] for assistant in seen)
