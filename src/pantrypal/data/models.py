"""
Data models for PantryPal.

These models define the records that move between the store, the planner
and the grocery aggregator:
- Recipe: a saved recipe with free-text ingredient lines
- Collection: a named grouping of saved recipes
- PlannerEntry / WeeklyPlan: dinners assigned to the days of one week
- GroceryItem / GroceryList: the shopping list derived from a plan

Each ``from_dict`` is the boundary where stored or imported documents enter
the system, so missing fields are defaulted there instead of at call sites.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_MEAL_TYPE = "dinner"


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO 8601 timestamp.

    Accepts the trailing ``Z`` that browser-produced documents use.
    Returns None for missing or unparsable values.
    """
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    text = value[:-1] + "+00:00" if value.endswith("Z") else value
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.warning(f"Ignoring unparsable timestamp: {value!r}")
        return None


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _new_id(prefix: str) -> str:
    return f"{prefix}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


def generate_recipe_id() -> str:
    """Unique recipe id, e.g. ``recipe-1732000000000-3f9a1c2b7``."""
    return _new_id("recipe")


def generate_collection_id() -> str:
    """Unique collection id, e.g. ``collection-1732000000000-3f9a1c2b7``."""
    return _new_id("collection")


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key (snake_case first, then camelCase)."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def _string_list(value: Any) -> List[str]:
    """Keep only the string entries of a list; anything else becomes []."""
    if not isinstance(value, (list, tuple)):
        return []
    return [item for item in value if isinstance(item, str)]


@dataclass
class Recipe:
    """A saved recipe."""

    id: str
    title: str
    ingredients: List[str] = field(default_factory=list)  # Free-text lines, e.g. "2 cups diced tomatoes"
    steps: List[str] = field(default_factory=list)
    collection_ids: List[str] = field(default_factory=list)
    cuisine_focus: Optional[str] = None
    meal_type: Optional[str] = None
    dietary_preference: Optional[str] = None
    mood_vibe: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def in_collection(self, collection_id: str) -> bool:
        return collection_id in self.collection_ids

    def __str__(self) -> str:
        return f"{self.title} ({len(self.ingredients)} ingredients)"

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "title": self.title,
            "ingredients": list(self.ingredients),
            "steps": list(self.steps),
            "collection_ids": list(self.collection_ids),
            "cuisine_focus": self.cuisine_focus,
            "meal_type": self.meal_type,
            "dietary_preference": self.dietary_preference,
            "mood_vibe": self.mood_vibe,
            "user_id": self.user_id,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Recipe":
        """
        Create a Recipe from a stored or imported document.

        Args:
            data: Recipe document (snake_case or camelCase keys)

        Returns:
            Recipe with list fields defaulted and non-string entries dropped

        Raises:
            ValueError: If the document is not a mapping or has no id
        """
        if not isinstance(data, dict):
            raise ValueError(f"Recipe document must be an object, got {type(data).__name__}")

        recipe_id = data.get("id")
        if not recipe_id:
            raise ValueError("Recipe document is missing 'id'")

        return cls(
            id=str(recipe_id),
            title=str(_pick(data, "title", "name", default="Untitled Recipe")),
            ingredients=_string_list(data.get("ingredients")),
            steps=_string_list(data.get("steps")),
            collection_ids=_string_list(_pick(data, "collection_ids", "collectionIds")),
            cuisine_focus=_pick(data, "cuisine_focus", "cuisineFocus"),
            meal_type=_pick(data, "meal_type", "mealType"),
            dietary_preference=_pick(data, "dietary_preference", "dietaryPreference"),
            mood_vibe=_pick(data, "mood_vibe", "moodVibe"),
            user_id=_pick(data, "user_id", "userId"),
            created_at=parse_timestamp(_pick(data, "created_at", "createdAt")),
            updated_at=parse_timestamp(_pick(data, "updated_at", "updatedAt")),
        )


@dataclass
class Collection:
    """A user-defined named grouping of saved recipes."""

    id: str
    name: str
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, name: str) -> "Collection":
        """New collection with a generated id and a trimmed name."""
        name = (name or "").strip()
        if not name:
            raise ValueError("Collection name cannot be empty")
        return cls(id=generate_collection_id(), name=name)

    def rename(self, new_name: str):
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValueError("Collection name cannot be empty")
        self.name = new_name
        self.updated_at = utcnow()

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Collection":
        """Create Collection from dictionary."""
        if not isinstance(data, dict) or not data.get("id"):
            raise ValueError("Collection document is missing 'id'")
        created_at = parse_timestamp(_pick(data, "created_at", "createdAt")) or utcnow()
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")).strip(),
            created_at=created_at,
            updated_at=parse_timestamp(_pick(data, "updated_at", "updatedAt")) or created_at,
        )


@dataclass
class PlannerEntry:
    """The recipe assigned to one day's meal slot."""

    date: str  # ISO format: "2025-01-20"
    recipe_id: Optional[str] = None
    meal_type: str = DEFAULT_MEAL_TYPE

    @property
    def is_planned(self) -> bool:
        return bool(self.recipe_id)


@dataclass
class WeeklyPlan:
    """Dinners planned for one week, keyed by date."""

    week_start: str  # Week identifier: Monday of the week, "YYYY-MM-DD"
    meals: Dict[str, PlannerEntry] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def week_id(self) -> str:
        return self.week_start

    def _touch(self):
        self.updated_at = utcnow()

    def set_meal(self, date: str, recipe_id: str):
        """Assign a recipe to a day, creating the slot if needed."""
        entry = self.meals.get(date)
        if entry is None:
            self.meals[date] = PlannerEntry(date=date, recipe_id=recipe_id)
        else:
            entry.recipe_id = recipe_id
        self._touch()

    def remove_meal(self, date: str):
        """Empty a day's slot. Unknown dates are ignored."""
        entry = self.meals.get(date)
        if entry is not None:
            entry.recipe_id = None
        self._touch()

    def clear_meals(self):
        for entry in self.meals.values():
            entry.recipe_id = None
        self._touch()

    def planned_recipe_ids(self) -> List[str]:
        """
        Unique recipe ids in the plan.

        Returns:
            Ids in first-seen day order; a recipe planned twice appears once
        """
        seen = {}
        for entry in self.meals.values():
            if entry.recipe_id and entry.recipe_id not in seen:
                seen[entry.recipe_id] = True
        return list(seen)

    def has_meals_planned(self) -> bool:
        return len(self.planned_recipe_ids()) > 0

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "week_start": self.week_start,
            "meals": {
                date: {entry.meal_type: entry.recipe_id}
                for date, entry in self.meals.items()
            },
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "WeeklyPlan":
        """
        Create WeeklyPlan from dictionary.

        Each day may be stored as ``{"dinner": recipe_id}`` or as a bare
        recipe id (or null).
        """
        if not isinstance(data, dict):
            raise ValueError("Planner document must be an object")
        week_start = _pick(data, "week_start", "weekStart")
        if not week_start:
            raise ValueError("Planner document is missing 'week_start'")

        meals: Dict[str, PlannerEntry] = {}
        raw_meals = data.get("meals")
        if isinstance(raw_meals, dict):
            for date, slot in raw_meals.items():
                if isinstance(slot, dict):
                    recipe_id = slot.get(DEFAULT_MEAL_TYPE)
                else:
                    recipe_id = slot
                meals[date] = PlannerEntry(
                    date=date,
                    recipe_id=str(recipe_id) if recipe_id else None,
                )

        created_at = parse_timestamp(_pick(data, "created_at", "createdAt")) or utcnow()
        return cls(
            week_start=str(week_start),
            meals=meals,
            created_at=created_at,
            updated_at=parse_timestamp(_pick(data, "updated_at", "updatedAt")) or created_at,
        )


@dataclass
class GroceryItem:
    """Single item on a grocery list."""

    name: str  # "Tomatoes"
    quantity: str  # "2 cups, 1 can" (display text, never summed)
    checked: bool = False
    category: Optional[str] = None  # Assigned after merging

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "quantity": self.quantity,
            "checked": self.checked,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "GroceryItem":
        """Create GroceryItem from dictionary."""
        return cls(
            name=str(data.get("name", "")),
            quantity=str(data.get("quantity") or ""),
            checked=data.get("checked") is True,
            category=data.get("category"),
        )


@dataclass
class GroceryList:
    """Shopping list generated from one week's plan."""

    week_id: str  # ISO format: "2025-01-20"
    items: List[GroceryItem] = field(default_factory=list)
    planned_recipe_ids: List[str] = field(default_factory=list)
    generated_at: datetime = field(default_factory=utcnow)

    def set_item_checked(self, index: int, checked: bool) -> bool:
        """
        Tick or untick one item.

        Returns:
            False if the index is out of range
        """
        if index < 0 or index >= len(self.items):
            return False
        self.items[index].checked = checked
        return True

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "week_id": self.week_id,
            "items": [item.to_dict() for item in self.items],
            "planned_recipe_ids": list(self.planned_recipe_ids),
            "generated_at": self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "GroceryList":
        """Create GroceryList from dictionary."""
        week_id = _pick(data, "week_id", "weekId")
        if not week_id:
            raise ValueError("Grocery list document is missing 'week_id'")
        items = data.get("items") if isinstance(data.get("items"), list) else []
        return cls(
            week_id=str(week_id),
            items=[GroceryItem.from_dict(i) for i in items if isinstance(i, dict)],
            planned_recipe_ids=_string_list(_pick(data, "planned_recipe_ids", "plannedRecipeIds")),
            generated_at=parse_timestamp(_pick(data, "generated_at", "generatedAt")) or utcnow(),
        )
