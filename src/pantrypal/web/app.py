#!/usr/bin/env python3
"""
Flask JSON API for PantryPal.

Exposes recipes, collections, the weekly planner, grocery lists and
recommendations to the browser front end. The user is identified by the
``X-User-Id`` header (``local`` when absent).
"""

import os
import logging
from logging.handlers import RotatingFileHandler
import threading
from datetime import datetime
from typing import Any, Dict, Set, Tuple

from flask import Flask, request, jsonify
from flask_cors import CORS

from ..config import AppConfig, LOG_FORMAT
from ..data.database import LOCAL_USER
from ..data.models import Recipe, generate_recipe_id
from ..main import PantryPalAssistant
from ..planner import PlannerContext

config = AppConfig.from_env()

# Setup logging with both console and file output
os.makedirs(config.log_dir, exist_ok=True)

logging.basicConfig(
    level=config.log_level,
    format=LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),  # Console output
        RotatingFileHandler(
            os.path.join(config.log_dir, 'app.log'),
            maxBytes=10*1024*1024,  # 10MB
            backupCount=5
        )
    ]
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.secret_key = config.secret_key
app.config["PANTRYPAL"] = config
app.config["ASSISTANT"] = None
CORS(app)

assistant_lock = threading.Lock()

# (user, week) pairs with a grocery list generation in progress
grocery_lock = threading.Lock()
generating_weeks: Set[Tuple[str, str]] = set()


def get_assistant() -> PantryPalAssistant:
    """The app's assistant, created on first use from app.config["PANTRYPAL"]."""
    assistant = app.config.get("ASSISTANT")
    if assistant is None:
        with assistant_lock:
            assistant = app.config.get("ASSISTANT")
            if assistant is None:
                assistant = PantryPalAssistant(app.config["PANTRYPAL"])
                app.config["ASSISTANT"] = assistant
    return assistant


def current_user() -> str:
    return request.headers.get("X-User-Id", "").strip() or LOCAL_USER


def json_body() -> Dict[str, Any]:
    """
    The request's JSON object body.

    Raises:
        ValueError: If the body is missing or not a JSON object
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def planner_context() -> PlannerContext:
    return PlannerContext(week_offset=request.args.get("offset", 0, type=int))


def error_response(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


@app.route('/health')
def health_check():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "timestamp": datetime.now().isoformat()}), 200


# ==================== Recipes ====================

@app.route('/api/recipes', methods=['GET'])
def api_list_recipes():
    """All recipes, most recently updated first."""
    try:
        recipes = get_assistant().db.load_recipes(current_user())
        return jsonify({"success": True, "recipes": [r.to_dict() for r in recipes]})
    except Exception as e:
        logger.error(f"Error loading recipes: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/recipes', methods=['POST'])
def api_save_recipe():
    """Create or replace a recipe. An id is generated when none is given."""
    try:
        data = json_body()
        data.setdefault("id", generate_recipe_id())
        recipe = Recipe.from_dict(data)
        get_assistant().db.save_recipe(recipe, user_id=current_user())
        return jsonify({"success": True, "recipe": recipe.to_dict()}), 201
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error saving recipe: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/recipes/<recipe_id>', methods=['GET'])
def api_get_recipe(recipe_id):
    try:
        recipe = get_assistant().db.get_recipe(recipe_id, user_id=current_user())
        if recipe is None:
            return error_response("Recipe not found", 404)
        return jsonify({"success": True, "recipe": recipe.to_dict()})
    except Exception as e:
        logger.error(f"Error loading recipe {recipe_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/recipes/<recipe_id>', methods=['DELETE'])
def api_delete_recipe(recipe_id):
    try:
        db = get_assistant().db
        user_id = current_user()
        if db.get_recipe(recipe_id, user_id=user_id) is None:
            return error_response("Recipe not found", 404)
        db.delete_recipe(recipe_id, user_id=user_id)
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error deleting recipe {recipe_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/recipes/<recipe_id>/collections', methods=['PUT'])
def api_assign_collections(recipe_id):
    """Replace the collections a recipe belongs to."""
    try:
        data = json_body()
        collection_ids = data.get("collection_ids")
        if not isinstance(collection_ids, list) or not all(isinstance(c, str) for c in collection_ids):
            return error_response("collection_ids must be a list of strings", 400)

        db = get_assistant().db
        user_id = current_user()
        if db.get_recipe(recipe_id, user_id=user_id) is None:
            return error_response("Recipe not found", 404)

        recipe = db.assign_recipe_to_collections(recipe_id, collection_ids, user_id=user_id)
        return jsonify({"success": True, "recipe": recipe.to_dict()})
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error assigning collections for {recipe_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


# ==================== Collections ====================

@app.route('/api/collections', methods=['GET'])
def api_list_collections():
    try:
        collections = get_assistant().db.get_collections(current_user())
        return jsonify({"success": True, "collections": [c.to_dict() for c in collections]})
    except Exception as e:
        logger.error(f"Error loading collections: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/collections', methods=['POST'])
def api_create_collection():
    try:
        data = json_body()
        collection = get_assistant().db.create_collection(data.get("name", ""), user_id=current_user())
        return jsonify({"success": True, "collection": collection.to_dict()}), 201
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error creating collection: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/collections/<collection_id>', methods=['PATCH'])
def api_rename_collection(collection_id):
    try:
        data = json_body()
        collection = get_assistant().db.rename_collection(
            collection_id, data.get("name", ""), user_id=current_user()
        )
        if collection is None:
            return error_response("Collection not found", 404)
        return jsonify({"success": True, "collection": collection.to_dict()})
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error renaming collection {collection_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/collections/<collection_id>', methods=['DELETE'])
def api_delete_collection(collection_id):
    """Delete a collection. Its recipes are kept."""
    try:
        db = get_assistant().db
        user_id = current_user()
        if db.get_collection(collection_id, user_id=user_id) is None:
            return error_response("Collection not found", 404)
        db.delete_collection(collection_id, user_id=user_id)
        return jsonify({"success": True})
    except Exception as e:
        logger.error(f"Error deleting collection {collection_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/collections/<collection_id>/recipes', methods=['GET'])
def api_collection_recipes(collection_id):
    """Recipes in a collection ("all" for every recipe)."""
    try:
        recipes = get_assistant().db.get_recipes_in_collection(collection_id, user_id=current_user())
        return jsonify({"success": True, "recipes": [r.to_dict() for r in recipes]})
    except Exception as e:
        logger.error(f"Error loading collection {collection_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


# ==================== Planner ====================

@app.route('/api/planner', methods=['GET'])
def api_get_planner():
    """The week's plan (``offset`` weeks from the current one)."""
    try:
        summary = get_assistant().describe_plan(planner_context(), current_user())
        return jsonify({"success": True, **summary})
    except Exception as e:
        logger.error(f"Error loading planner: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/planner/<date>', methods=['PUT'])
def api_set_meal(date):
    try:
        data = json_body()
        recipe_id = data.get("recipe_id")
        if not recipe_id:
            return error_response("recipe_id is required", 400)

        assistant = get_assistant()
        user_id = current_user()
        if assistant.db.get_recipe(str(recipe_id), user_id=user_id) is None:
            return error_response("Recipe not found", 404)

        plan = assistant.set_meal(date, str(recipe_id), user_id)
        return jsonify({"success": True, "planner": plan.to_dict()})
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error planning meal for {date}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/planner/<date>', methods=['DELETE'])
def api_remove_meal(date):
    try:
        plan = get_assistant().remove_meal(date, current_user())
        return jsonify({"success": True, "planner": plan.to_dict()})
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error removing meal for {date}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/planner/clear', methods=['POST'])
def api_clear_planner():
    try:
        plan = get_assistant().clear_plan(planner_context(), current_user())
        return jsonify({"success": True, "planner": plan.to_dict()})
    except Exception as e:
        logger.error(f"Error clearing planner: {e}", exc_info=True)
        return error_response(str(e), 500)


# ==================== Grocery ====================

@app.route('/api/grocery', methods=['POST'])
def api_generate_grocery_list():
    """Generate (or regenerate) the grocery list for the week."""
    try:
        context = planner_context()
        user_id = current_user()
        key = (user_id, context.week_id())

        with grocery_lock:
            busy = key in generating_weeks
            if not busy:
                generating_weeks.add(key)
        if busy:
            logger.warning(f"Grocery list already being generated for {key}")
            return error_response("Grocery list already being generated. Please wait.", 409)

        try:
            result = get_assistant().create_grocery_list(context, user_id)
        finally:
            with grocery_lock:
                generating_weeks.discard(key)

        result.pop("sync", None)
        if not result["success"]:
            logger.info(f"Grocery list not generated: {result['error']}")
            return jsonify(result), 400
        return jsonify(result)

    except Exception as e:
        logger.error(f"Error creating grocery list: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/grocery/<week_id>', methods=['GET'])
def api_get_grocery_list(week_id):
    try:
        result = get_assistant().shopping_agent.get_grocery_list(week_id, user_id=current_user())
        if not result["success"]:
            return jsonify(result), 404
        return jsonify(result)
    except Exception as e:
        logger.error(f"Error loading grocery list {week_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/grocery/<week_id>/items/<int:index>', methods=['PATCH'])
def api_update_grocery_item(week_id, index):
    """Tick or untick one item: body ``{"checked": true}``."""
    try:
        data = json_body()
        checked = data.get("checked")
        if not isinstance(checked, bool):
            return error_response("checked must be true or false", 400)

        result = get_assistant().shopping_agent.toggle_item(week_id, index, checked, user_id=current_user())
        if not result["success"]:
            return jsonify(result), 404
        return jsonify(result)
    except ValueError as e:
        return error_response(str(e), 400)
    except Exception as e:
        logger.error(f"Error updating grocery item {week_id}/{index}: {e}", exc_info=True)
        return error_response(str(e), 500)


@app.route('/api/grocery/<week_id>', methods=['DELETE'])
def api_clear_grocery_list(week_id):
    try:
        result = get_assistant().shopping_agent.clear_grocery_list(week_id, user_id=current_user())
        result.pop("sync", None)
        if not result["success"]:
            return jsonify(result), 500
        return jsonify(result)
    except Exception as e:
        logger.error(f"Error clearing grocery list {week_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


# ==================== Recommendations ====================

@app.route('/api/recommendations', methods=['POST'])
def api_recommendations():
    """
    Personalized recommendations.

    Body (optional): {"recipes": [...], "preferences": {...}}. Without
    "recipes" the user's saved recipes are used.
    """
    try:
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            return error_response("Request body must be a JSON object", 400)

        preferences = data.get("preferences") or {}
        if not isinstance(preferences, dict):
            return error_response("preferences must be an object", 400)

        assistant = get_assistant()
        if "recipes" in data:
            if not isinstance(data["recipes"], list):
                return error_response("User recipes array is required", 400)
            result = assistant.recommendation_agent.get_recommendations(data["recipes"], preferences)
        else:
            result = assistant.recommend(current_user(), preferences)

        if not result["success"]:
            return jsonify(result), 502
        return jsonify(result)
    except Exception as e:
        logger.error(f"Error generating recommendations: {e}", exc_info=True)
        return error_response(str(e), 500)


if __name__ == '__main__':
    if not config.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY not set - recommendations will use NullLLMProvider")

    # Run development server
    app.run(
        host='0.0.0.0',
        port=5000,
        debug=True,
    )
