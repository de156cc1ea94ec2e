"""
Recommendation Agent.

Builds a cooking profile from the user's saved recipes and asks the LLM for
three personalized recipe ideas plus a short read on their cooking style.
"""

import json
import logging
from collections import Counter
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_LLM_MODEL
from ..grocery import normalize_ingredient
from ..llm_provider import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a personalized cooking assistant that provides tailored recipe "
    "recommendations based on user preferences and cooking history. "
    "Always respond with valid JSON only."
)

RECENT_RECIPE_COUNT = 5
TOP_CUISINE_COUNT = 3
TOP_INGREDIENT_COUNT = 10


def _field(recipe: Any, name: str, camel: str) -> Any:
    if isinstance(recipe, Mapping):
        value = recipe.get(name)
        return value if value is not None else recipe.get(camel)
    return getattr(recipe, name, None)


def analyze_user_profile(
    recipes: List[Any], preferences: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Summarize a user's cooking patterns.

    Args:
        recipes: Saved recipes (records or documents), oldest first
        preferences: Caller-supplied values merged over the computed profile

    Returns:
        Profile dict with counts per cuisine, dietary preference, meal type
        and ingredient name, plus the titles of the last five recipes
    """
    cuisines: Counter = Counter()
    dietary: Counter = Counter()
    meal_types: Counter = Counter()
    ingredients: Counter = Counter()

    for recipe in recipes:
        cuisine = _field(recipe, "cuisine_focus", "cuisineFocus")
        if cuisine:
            cuisines[cuisine] += 1

        diet = _field(recipe, "dietary_preference", "dietaryPreference")
        if diet and diet != "none":
            dietary[diet] += 1

        meal_type = _field(recipe, "meal_type", "mealType")
        if meal_type:
            meal_types[meal_type] += 1

        lines = _field(recipe, "ingredients", "ingredients")
        if isinstance(lines, (list, tuple)):
            for line in lines:
                if isinstance(line, str) and line.strip():
                    ingredients[normalize_ingredient(line).name.lower()] += 1

    profile = {
        "total_recipes": len(recipes),
        "cuisine_preferences": dict(cuisines),
        "dietary_restrictions": dict(dietary),
        "meal_type_distribution": dict(meal_types),
        "common_ingredients": dict(ingredients),
        "recent_recipes": [
            str(_field(r, "title", "title") or "Untitled Recipe")
            for r in recipes[-RECENT_RECIPE_COUNT:]
        ],
    }
    profile.update(preferences or {})
    return profile


def _top(counts: Dict[str, int], n: int) -> List[str]:
    return [key for key, _ in Counter(counts).most_common(n)]


def build_recommendation_prompt(profile: Dict[str, Any]) -> str:
    """Render the user prompt for a profile."""
    top_cuisines = _top(profile.get("cuisine_preferences", {}), TOP_CUISINE_COUNT)
    top_ingredients = _top(profile.get("common_ingredients", {}), TOP_INGREDIENT_COUNT)
    restrictions = list(profile.get("dietary_restrictions", {}))

    return f"""Based on this user's cooking profile, provide 3 personalized recipe recommendations:

User Profile:
- Total recipes saved: {profile.get("total_recipes", 0)}
- Favorite cuisines: {", ".join(top_cuisines) or "varied"}
- Common ingredients: {", ".join(top_ingredients)}
- Recent recipes: {", ".join(profile.get("recent_recipes", []))}
- Dietary restrictions: {", ".join(restrictions) or "none"}

Provide recommendations that:
1. Match their cuisine preferences but introduce variety
2. Use some familiar ingredients but explore new combinations
3. Range from comfort food to adventurous dishes
4. Consider their dietary restrictions if any

Respond ONLY with valid JSON in this format:
{{
  "recommendations": [
    {{
      "title": "Recipe Name",
      "why": "Why this matches their profile",
      "cuisineType": "cuisine",
      "difficulty": "easy/medium/hard",
      "keyIngredients": ["ingredient1", "ingredient2"],
      "estimatedTime": "30 minutes"
    }}
  ],
  "insights": {{
    "cookingStyle": "Description of their cooking style",
    "suggestions": "Tips for expanding their repertoire"
  }}
}}"""


def parse_recommendations(content: str) -> Dict[str, Any]:
    """
    Extract the JSON object from a model reply.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    content = content.strip()

    # Remove markdown code blocks if present
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
    content = content.strip()

    # Extract JSON object if the model added explanation text
    start_idx = content.find("{")
    end_idx = content.rfind("}")
    if start_idx == -1 or end_idx < start_idx:
        raise ValueError("No JSON object in model response")

    try:
        data = json.loads(content[start_idx:end_idx + 1])
    except json.JSONDecodeError as e:
        raise ValueError(f"Model response is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ValueError("Model response is not a JSON object")
    return data


class RecommendationAgent:
    """Agent for personalized recipe recommendations."""

    def __init__(self, llm: Optional[LLMProvider] = None, model: str = DEFAULT_LLM_MODEL):
        """
        Initialize Recommendation Agent.

        Args:
            llm: LLM provider (defaults to get_llm_provider())
            model: Model name passed to the provider
        """
        self.llm = llm or get_llm_provider()
        self.model = model
        logger.info(f"Recommendation Agent initialized (model={model}, null={self.llm.is_null})")

    def get_recommendations(
        self, recipes: Any, preferences: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Recommend recipes based on what the user has saved.

        Args:
            recipes: List of saved recipes
            preferences: Optional extra profile values

        Returns:
            {"success": True, "recommendations": [...], "insights": {...}}
            or {"success": False, "error": ...}
        """
        if not isinstance(recipes, list):
            return {"success": False, "error": "User recipes array is required"}

        try:
            profile = analyze_user_profile(recipes, preferences)
            prompt = build_recommendation_prompt(profile)

            logger.info(f"Requesting recommendations for profile with {profile['total_recipes']} recipes")
            reply = self.llm.create_text(
                model=self.model,
                prompt=prompt,
                system=SYSTEM_PROMPT,
                max_tokens=1500,
                temperature=0.7,
            )

            data = parse_recommendations(reply)
            recommendations = data.get("recommendations") or []
            logger.info(f"Received {len(recommendations)} recommendations")

            return {
                "success": True,
                "recommendations": recommendations,
                "insights": data.get("insights") or {},
            }

        except Exception as e:
            logger.error(f"Error generating recommendations: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
            }
