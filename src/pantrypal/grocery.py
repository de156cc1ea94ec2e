"""
Grocery list aggregation.

Turns a week's planned recipes into a deduplicated, categorized, sorted
shopping list:

    plan -> recipe ids -> recipes -> ingredient lines -> (quantity, name)
         -> merged by name -> categorized -> sorted by (category, name)

Everything here is a pure function of its inputs. Missing or malformed data
contributes nothing instead of raising.
"""

import math
import re
import unicodedata
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from .data.models import GroceryItem, GroceryList, WeeklyPlan, utcnow


OTHER = "Other"

# Declaration order matters: the first category with a matching keyword wins.
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "Produce": [
        "tomato", "onion", "garlic", "carrot", "potato", "pepper", "lettuce", "spinach",
        "broccoli", "cucumber", "celery", "mushroom", "zucchini", "squash", "eggplant",
        "cabbage", "kale", "avocado", "lemon", "lime", "orange", "apple", "banana",
        "berry", "grape", "melon", "pineapple", "mango", "ginger", "cilantro", "parsley",
        "basil", "mint", "dill", "chive", "scallion", "leek", "shallot", "radish",
        "beet", "turnip", "asparagus", "artichoke", "corn", "pea", "bean", "sprout",
    ],
    "Meat & Seafood": [
        "chicken", "beef", "pork", "lamb", "turkey", "duck", "bacon", "sausage",
        "ham", "steak", "ground", "salmon", "tuna", "shrimp", "fish", "cod", "tilapia",
        "crab", "lobster", "scallop", "mussel", "clam", "anchovy", "sardine",
    ],
    "Dairy & Eggs": [
        "milk", "cheese", "butter", "cream", "yogurt", "egg", "sour cream", "cottage",
        "ricotta", "mozzarella", "parmesan", "cheddar", "feta", "goat cheese",
        "cream cheese", "half and half", "whipping cream", "buttermilk",
    ],
    "Grains & Pasta": [
        "rice", "pasta", "noodle", "bread", "flour", "oat", "quinoa", "barley",
        "couscous", "bulgur", "tortilla", "pita", "bagel", "roll", "cracker",
        "cereal", "granola", "panko", "breadcrumb", "spaghetti", "penne", "fettuccine",
    ],
    "Canned & Jarred": [
        "canned", "tomato sauce", "tomato paste", "diced tomato", "crushed tomato",
        "coconut milk", "chickpea", "black bean", "kidney bean", "lentil",
        "broth", "stock", "salsa", "pickle", "olive", "artichoke heart", "roasted pepper",
    ],
    "Spices & Seasonings": [
        "salt", "pepper", "cumin", "paprika", "oregano", "thyme", "rosemary",
        "cinnamon", "nutmeg", "clove", "cardamom", "turmeric", "curry", "chili",
        "cayenne", "garlic powder", "onion powder", "bay leaf", "saffron", "sumac",
        "coriander", "fennel seed", "mustard seed", "vanilla", "extract",
    ],
    "Oils & Vinegars": [
        "olive oil", "vegetable oil", "canola oil", "sesame oil", "coconut oil",
        "vinegar", "balsamic", "red wine vinegar", "apple cider vinegar", "rice vinegar",
    ],
    "Condiments & Sauces": [
        "soy sauce", "fish sauce", "worcestershire", "hot sauce", "ketchup", "mustard",
        "mayonnaise", "honey", "maple syrup", "tahini", "peanut butter", "jam",
        "hoisin", "oyster sauce", "teriyaki", "bbq sauce", "sriracha",
    ],
    "Baking": [
        "sugar", "brown sugar", "powdered sugar", "baking soda", "baking powder",
        "yeast", "cocoa", "chocolate", "vanilla extract", "almond extract",
    ],
    OTHER: [],
}

CATEGORIES = tuple(CATEGORY_KEYWORDS)

UNITS = [
    "cup", "cups", "tbsp", "tsp", "oz", "ounce", "lb", "pound", "g", "gram", "kg",
    "ml", "liter", "can", "clove", "piece", "slice", "bunch", "head", "stalk",
    "sprig", "pinch", "dash", "to taste",
]

PREP_WORDS = [
    "diced", "chopped", "minced", "sliced", "crushed", "grated", "shredded",
    "melted", "softened", "room temperature", "cold", "warm", "hot", "fresh",
    "dried", "frozen", "canned", "cooked", "raw", "peeled", "seeded", "trimmed",
    "boneless", "skinless", "large", "medium", "small", "optional", "finely",
    "roughly", "thinly", "thickly", "to taste", "for garnish", "divided",
]

# Leading amount ("2", "1/2", "1-2", "1.5") then an optional unit and plural "s".
QUANTITY_PATTERN = re.compile(
    r"^[\d\s/\-.]+\s*(?:" + "|".join(re.escape(u) for u in UNITS) + r")?s?\b",
    re.IGNORECASE,
)
PREP_PATTERNS = [
    re.compile(r"\b" + re.escape(word) + r"\b", re.IGNORECASE) for word in PREP_WORDS
]
PUNCTUATION_PATTERN = re.compile(r"[,()]")
WHITESPACE_PATTERN = re.compile(r"\s+")


class NormalizedIngredient(NamedTuple):
    name: str
    quantity: str


def extract_ingredients(recipes: Iterable[Any]) -> List[str]:
    """
    Flatten the ingredient lines of several recipes.

    Args:
        recipes: Recipe records or raw recipe mappings

    Returns:
        Every ingredient line in recipe order, duplicates kept. A recipe with
        a missing or non-list ``ingredients`` field contributes nothing.
    """
    lines: List[str] = []
    for recipe in recipes:
        if isinstance(recipe, Mapping):
            ingredients = recipe.get("ingredients")
        else:
            ingredients = getattr(recipe, "ingredients", None)

        if not isinstance(ingredients, (list, tuple)):
            continue
        lines.extend(line for line in ingredients if isinstance(line, str))
    return lines


def normalize_ingredient(line: str) -> NormalizedIngredient:
    """
    Split a free-text ingredient line into display quantity and name.

    The leading quantity/unit span is captured verbatim, preparation words
    are removed from what is left, and the remainder is capitalized.

    Args:
        line: e.g. "2 cups diced tomatoes"

    Returns:
        NormalizedIngredient(name="Tomatoes", quantity="2 cups"). If nothing
        is left of the name, the untouched input is used as the name.
    """
    cleaned = line.lower().strip()

    quantity = ""
    match = QUANTITY_PATTERN.match(cleaned)
    if match:
        quantity = match.group(0).strip()
        cleaned = cleaned[match.end():].strip()

    for pattern in PREP_PATTERNS:
        cleaned = pattern.sub("", cleaned)

    cleaned = PUNCTUATION_PATTERN.sub("", cleaned)
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()

    name = cleaned[:1].upper() + cleaned[1:]
    return NormalizedIngredient(name=name or line, quantity=quantity)


def merge_ingredients(ingredients: Iterable[NormalizedIngredient]) -> List[GroceryItem]:
    """
    Merge ingredients whose names match case-insensitively.

    The first occurrence keeps its casing and position. Later quantities are
    appended as text ("2 cups" + "1 can" -> "2 cups, 1 can"); amounts are
    never added together.
    """
    merged: Dict[str, GroceryItem] = {}

    for ingredient in ingredients:
        key = ingredient.name.lower()
        existing = merged.get(key)

        if existing is None:
            merged[key] = GroceryItem(
                name=ingredient.name,
                quantity=ingredient.quantity,
                checked=False,
            )
        elif ingredient.quantity:
            if existing.quantity:
                existing.quantity += ", " + ingredient.quantity
            else:
                existing.quantity = ingredient.quantity

    return list(merged.values())


def categorize_ingredient(name: str) -> str:
    """
    Pick the store category for an ingredient name.

    Returns:
        The first category (in table order) with a keyword contained in the
        lowercased name, or "Other"
    """
    lower_name = name.lower()

    for category, keywords in CATEGORY_KEYWORDS.items():
        if category == OTHER:
            continue
        for keyword in keywords:
            if keyword in lower_name:
                return category

    return OTHER


def categorize_ingredients(items: Iterable[GroceryItem]) -> List[GroceryItem]:
    """Attach a category to each item (in place) and return them as a list."""
    categorized = []
    for item in items:
        item.category = categorize_ingredient(item.name)
        categorized.append(item)
    return categorized


def collation_key(text: str) -> tuple:
    """
    Sort key approximating locale-aware comparison.

    Case and accents only break ties: "apple" < "banana" < "Banana" < "cherry",
    and "é" sorts with "e".
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return (base.casefold(), decomposed.casefold(), text.swapcase())


def sort_grocery_items(items: Iterable[GroceryItem]) -> List[GroceryItem]:
    """Stable sort by (category, name)."""
    return sorted(
        items,
        key=lambda item: (collation_key(item.category or OTHER), collation_key(item.name)),
    )


def build_grocery_list(
    plan: WeeklyPlan,
    recipes: Iterable[Any],
    now: Optional[datetime] = None,
) -> GroceryList:
    """
    Build the grocery list for a week's plan.

    Args:
        plan: The week's plan
        recipes: The full recipe catalog (records or mappings with an ``id``)
        now: Generation time (defaults to the current UTC time)

    Returns:
        GroceryList whose ``planned_recipe_ids`` lists every unique planned
        id, including ids that did not resolve to a recipe
    """
    planned_ids = plan.planned_recipe_ids()

    catalog: Dict[str, Any] = {}
    for recipe in recipes:
        recipe_id = recipe.get("id") if isinstance(recipe, Mapping) else getattr(recipe, "id", None)
        if recipe_id is not None and str(recipe_id) not in catalog:
            catalog[str(recipe_id)] = recipe

    planned_recipes = [catalog[rid] for rid in planned_ids if rid in catalog]

    lines = extract_ingredients(planned_recipes)
    normalized = [normalize_ingredient(line) for line in lines]
    merged = merge_ingredients(normalized)
    items = sort_grocery_items(categorize_ingredients(merged))

    return GroceryList(
        week_id=plan.week_start,
        items=items,
        planned_recipe_ids=planned_ids,
        generated_at=now or utcnow(),
    )


def group_items_by_category(items: Iterable[GroceryItem]) -> Dict[str, List[GroceryItem]]:
    """
    Group items by category, keeping item order within and across groups.

    Items without a category are grouped under "Other".
    """
    grouped: Dict[str, List[GroceryItem]] = {}
    for item in items:
        grouped.setdefault(item.category or OTHER, []).append(item)
    return grouped


def _is_checked(item: Any) -> bool:
    if isinstance(item, Mapping):
        return item.get("checked") is True
    return getattr(item, "checked", False) is True


def calculate_progress(items: Iterable[Any]) -> Dict[str, int]:
    """
    Shopping progress for a list's items.

    Returns:
        {"checked": n, "total": m, "percentage": p} with p rounded half up,
        0 when the list is empty
    """
    items = list(items)
    total = len(items)
    checked = sum(1 for item in items if _is_checked(item))
    percentage = math.floor(checked / total * 100 + 0.5) if total > 0 else 0

    return {"checked": checked, "total": total, "percentage": percentage}
