"""
Local store for PantryPal.

Keeps one SQLite database (pantrypal.db) holding the user's documents:
- recipes: saved recipes
- collections: named recipe groupings
- planners: one weekly plan per week id
- grocery_lists: one grocery list per week id

Rows are keyed by (user_id, id) and hold the document as JSON. When a
SyncDispatcher is configured, every document write or delete is mirrored
to the remote store and the mirror's Future is returned to the caller.
"""

import json
import logging
import sqlite3
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Dict, List, Optional

from .models import Collection, GroceryList, Recipe, WeeklyPlan, utcnow
from .sync import SyncDispatcher

logger = logging.getLogger(__name__)

LOCAL_USER = "local"
DEFAULT_COLLECTION_NAME = "Favorites"
ALL_RECIPES = "all"


class DatabaseInterface:
    """Interface for the local SQLite store."""

    def __init__(self, db_dir: str = "data", sync: Optional[SyncDispatcher] = None):
        """
        Initialize database interface.

        Args:
            db_dir: Directory containing the database file
            sync: Optional dispatcher that mirrors writes to the remote store
        """
        self.db_dir = Path(db_dir)
        self.db_dir.mkdir(parents=True, exist_ok=True)

        self.db_path = self.db_dir / "pantrypal.db"
        self.sync = sync

        self._init_database()

    def _init_database(self):
        """Initialize database schema."""
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS recipes (
                    user_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    doc_json TEXT NOT NULL,
                    PRIMARY KEY (user_id, id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS collections (
                    user_id TEXT NOT NULL,
                    id TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    doc_json TEXT NOT NULL,
                    PRIMARY KEY (user_id, id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS planners (
                    user_id TEXT NOT NULL,
                    week_id TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    doc_json TEXT NOT NULL,
                    PRIMARY KEY (user_id, week_id)
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS grocery_lists (
                    user_id TEXT NOT NULL,
                    week_id TEXT NOT NULL,
                    generated_at TEXT NOT NULL,
                    doc_json TEXT NOT NULL,
                    PRIMARY KEY (user_id, week_id)
                )
            """)

            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_recipes_user_updated
                ON recipes(user_id, updated_at)
            """)

            conn.commit()

        logger.info(f"Local store ready at {self.db_path}")

    # ==================== Mirroring ====================

    def _mirror_put(self, user_id: str, kind: str, doc_id: str, data: Dict[str, Any]) -> Optional[Future]:
        if self.sync is None:
            return None
        return self.sync.mirror_put(user_id, kind, doc_id, data)

    def _mirror_delete(self, user_id: str, kind: str, doc_id: str) -> Optional[Future]:
        if self.sync is None:
            return None
        return self.sync.mirror_delete(user_id, kind, doc_id)

    # ==================== Recipe Operations ====================

    def save_recipe(self, recipe: Recipe, user_id: str = LOCAL_USER) -> Optional[Future]:
        """
        Insert or replace a recipe.

        Stamps ``user_id`` and ``updated_at`` (and ``created_at`` for new recipes).

        Returns:
            The remote mirror Future, or None when running local-only
        """
        doc = self._stamp_recipe(recipe, user_id)
        with sqlite3.connect(self.db_path) as conn:
            self._insert_recipe(conn, user_id, doc)
            conn.commit()

        logger.info(f"Saved recipe {recipe.id} for user {user_id}")
        return self._mirror_put(user_id, "recipes", recipe.id, doc)

    @staticmethod
    def _stamp_recipe(recipe: Recipe, user_id: str) -> Dict[str, Any]:
        now = utcnow()
        recipe.user_id = user_id
        recipe.updated_at = now
        if recipe.created_at is None:
            recipe.created_at = now
        return recipe.to_dict()

    def _insert_recipe(self, conn: sqlite3.Connection, user_id: str, doc: Dict[str, Any]):
        conn.execute(
            """
            INSERT OR REPLACE INTO recipes (user_id, id, updated_at, doc_json)
            VALUES (?, ?, ?, ?)
            """,
            (user_id, doc["id"], doc["updated_at"], json.dumps(doc)),
        )

    def load_recipes(self, user_id: str = LOCAL_USER) -> List[Recipe]:
        """All recipes for a user, most recently updated first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT id, doc_json FROM recipes WHERE user_id = ? ORDER BY updated_at DESC",
                (user_id,),
            ).fetchall()

        recipes = []
        for row in rows:
            recipe = self._row_to_recipe(row)
            if recipe is not None:
                recipes.append(recipe)
        return recipes

    def get_recipe(self, recipe_id: str, user_id: str = LOCAL_USER) -> Optional[Recipe]:
        """Get a specific recipe by ID, or None."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT id, doc_json FROM recipes WHERE user_id = ? AND id = ?",
                (user_id, recipe_id),
            ).fetchone()

        return self._row_to_recipe(row) if row else None

    def _row_to_recipe(self, row: sqlite3.Row) -> Optional[Recipe]:
        try:
            return Recipe.from_dict(json.loads(row["doc_json"]))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Skipping unreadable recipe {row['id']}: {e}")
            return None

    def delete_recipe(self, recipe_id: str, user_id: str = LOCAL_USER) -> Optional[Future]:
        """Delete a recipe by ID."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM recipes WHERE user_id = ? AND id = ?", (user_id, recipe_id))
            conn.commit()

        logger.info(f"Deleted recipe {recipe_id} for user {user_id}")
        return self._mirror_delete(user_id, "recipes", recipe_id)

    def clear_all_recipes(self, user_id: str = LOCAL_USER) -> int:
        """
        Remove every locally stored recipe for a user.

        Only the local tier is cleared.

        Returns:
            Number of recipes removed
        """
        with sqlite3.connect(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM recipes WHERE user_id = ?", (user_id,))
            conn.commit()
            removed = cursor.rowcount

        logger.info(f"Cleared {removed} local recipes for user {user_id}")
        return removed

    def export_recipes(self, user_id: str = LOCAL_USER) -> str:
        """All recipes as a pretty-printed JSON array."""
        return json.dumps([r.to_dict() for r in self.load_recipes(user_id)], indent=2)

    def import_recipes(self, json_string: str, user_id: str = LOCAL_USER) -> int:
        """
        Replace a user's recipes with the contents of a JSON export.

        The local replacement is one transaction: if any write fails, the
        previous recipes are left as they were. Each imported recipe is then
        mirrored to the remote store.

        Args:
            json_string: JSON array of recipe documents

        Returns:
            Number of recipes imported

        Raises:
            ValueError: If the payload is not valid JSON, not an array, or
                contains a document without an id
        """
        try:
            payload = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid recipe export: {e}")

        if not isinstance(payload, list):
            raise ValueError("Invalid format: expected array of recipes")

        recipes = [Recipe.from_dict(doc) for doc in payload]

        docs = [self._stamp_recipe(recipe, user_id) for recipe in recipes]
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM recipes WHERE user_id = ?", (user_id,))
            for doc in docs:
                self._insert_recipe(conn, user_id, doc)
            conn.commit()

        for doc in docs:
            self._mirror_put(user_id, "recipes", doc["id"], doc)

        logger.info(f"Imported {len(recipes)} recipes for user {user_id}")
        return len(recipes)

    # ==================== Collection Operations ====================

    def save_collection(self, collection: Collection, user_id: str = LOCAL_USER) -> Optional[Future]:
        """Insert or replace a collection."""
        doc = collection.to_dict()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO collections (user_id, id, created_at, doc_json)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, collection.id, doc["created_at"], json.dumps(doc)),
            )
            conn.commit()

        return self._mirror_put(user_id, "collections", collection.id, doc)

    def create_collection(self, name: str, user_id: str = LOCAL_USER) -> Collection:
        """
        Create and store a new collection.

        Raises:
            ValueError: If the name is blank
        """
        collection = Collection.create(name)
        self.save_collection(collection, user_id=user_id)
        logger.info(f"Created collection {collection.id} ({collection.name!r}) for user {user_id}")
        return collection

    def get_collections(self, user_id: str = LOCAL_USER) -> List[Collection]:
        """All collections for a user, oldest first."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                "SELECT doc_json FROM collections WHERE user_id = ? ORDER BY created_at ASC",
                (user_id,),
            ).fetchall()

        return [Collection.from_dict(json.loads(row["doc_json"])) for row in rows]

    def get_collection(self, collection_id: str, user_id: str = LOCAL_USER) -> Optional[Collection]:
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT doc_json FROM collections WHERE user_id = ? AND id = ?",
                (user_id, collection_id),
            ).fetchone()

        return Collection.from_dict(json.loads(row["doc_json"])) if row else None

    def rename_collection(
        self, collection_id: str, new_name: str, user_id: str = LOCAL_USER
    ) -> Optional[Collection]:
        """
        Rename a collection.

        Returns:
            The updated collection, or None if it does not exist

        Raises:
            ValueError: If the new name is blank
        """
        collection = self.get_collection(collection_id, user_id=user_id)
        if collection is None:
            return None

        collection.rename(new_name)
        self.save_collection(collection, user_id=user_id)
        logger.info(f"Renamed collection {collection_id} to {collection.name!r}")
        return collection

    def delete_collection(self, collection_id: str, user_id: str = LOCAL_USER) -> Optional[Future]:
        """
        Delete a collection.

        Recipes are kept; the collection id is removed from each of them first.
        """
        for recipe in self.load_recipes(user_id):
            if recipe.in_collection(collection_id):
                recipe.collection_ids = [cid for cid in recipe.collection_ids if cid != collection_id]
                self.save_recipe(recipe, user_id=user_id)

        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "DELETE FROM collections WHERE user_id = ? AND id = ?",
                (user_id, collection_id),
            )
            conn.commit()

        logger.info(f"Deleted collection {collection_id} for user {user_id}")
        return self._mirror_delete(user_id, "collections", collection_id)

    def assign_recipe_to_collections(
        self, recipe_id: str, collection_ids: List[str], user_id: str = LOCAL_USER
    ) -> Recipe:
        """
        Replace the set of collections a recipe belongs to.

        Raises:
            ValueError: If the recipe does not exist
        """
        recipe = self.get_recipe(recipe_id, user_id=user_id)
        if recipe is None:
            raise ValueError(f"Recipe not found: {recipe_id}")

        recipe.collection_ids = list(dict.fromkeys(collection_ids))
        self.save_recipe(recipe, user_id=user_id)
        logger.info(f"Recipe {recipe_id} assigned to collections: {recipe.collection_ids}")
        return recipe

    def get_recipes_in_collection(self, collection_id: str, user_id: str = LOCAL_USER) -> List[Recipe]:
        """Recipes in a collection; ``"all"`` returns every recipe."""
        recipes = self.load_recipes(user_id)
        if collection_id == ALL_RECIPES:
            return recipes
        return [r for r in recipes if r.in_collection(collection_id)]

    def initialize_default_collection(self, user_id: str = LOCAL_USER) -> Optional[Collection]:
        """Create the "Favorites" collection if the user has none."""
        if self.get_collections(user_id):
            return None
        collection = self.create_collection(DEFAULT_COLLECTION_NAME, user_id=user_id)
        logger.info(f"Created default {DEFAULT_COLLECTION_NAME!r} collection for user {user_id}")
        return collection

    # ==================== Planner Operations ====================

    def load_planner(self, week_id: str, user_id: str = LOCAL_USER) -> Optional[WeeklyPlan]:
        """Get the plan for a week, or None if nothing was saved."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT doc_json FROM planners WHERE user_id = ? AND week_id = ?",
                (user_id, week_id),
            ).fetchone()

        if not row:
            return None
        return WeeklyPlan.from_dict(json.loads(row["doc_json"]))

    def save_planner(self, plan: WeeklyPlan, user_id: str = LOCAL_USER) -> Optional[Future]:
        """Insert or replace the plan for its week."""
        doc = plan.to_dict()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO planners (user_id, week_id, updated_at, doc_json)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, plan.week_start, doc["updated_at"], json.dumps(doc)),
            )
            conn.commit()

        logger.info(f"Saved planner for week {plan.week_start}, user {user_id}")
        return self._mirror_put(user_id, "planner", plan.week_start, doc)

    # ==================== Grocery List Operations ====================

    def load_grocery_list(self, week_id: str, user_id: str = LOCAL_USER) -> Optional[GroceryList]:
        """Get the grocery list for a week, or None."""
        with sqlite3.connect(self.db_path) as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(
                "SELECT doc_json FROM grocery_lists WHERE user_id = ? AND week_id = ?",
                (user_id, week_id),
            ).fetchone()

        if not row:
            return None
        return GroceryList.from_dict(json.loads(row["doc_json"]))

    def save_grocery_list(self, grocery_list: GroceryList, user_id: str = LOCAL_USER) -> Optional[Future]:
        """Store a grocery list, replacing any existing list for the same week."""
        doc = grocery_list.to_dict()
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO grocery_lists (user_id, week_id, generated_at, doc_json)
                VALUES (?, ?, ?, ?)
                """,
                (user_id, grocery_list.week_id, doc["generated_at"], json.dumps(doc)),
            )
            conn.commit()

        logger.info(f"Saved grocery list for week {grocery_list.week_id} ({len(grocery_list.items)} items)")
        return self._mirror_put(user_id, "groceryLists", grocery_list.week_id, doc)

    def update_grocery_item_status(
        self, week_id: str, item_index: int, checked: bool, user_id: str = LOCAL_USER
    ) -> bool:
        """
        Tick or untick one grocery item.

        Returns:
            False if there is no list for the week or the index is out of range
        """
        grocery_list = self.load_grocery_list(week_id, user_id=user_id)
        if grocery_list is None:
            logger.warning(f"No grocery list for week {week_id}")
            return False

        if not grocery_list.set_item_checked(item_index, checked):
            logger.warning(f"Grocery item index {item_index} out of range for week {week_id}")
            return False

        self.save_grocery_list(grocery_list, user_id=user_id)
        return True

    def clear_grocery_list(self, week_id: str, user_id: str = LOCAL_USER) -> Optional[Future]:
        """Delete the grocery list for a week."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                "DELETE FROM grocery_lists WHERE user_id = ? AND week_id = ?",
                (user_id, week_id),
            )
            conn.commit()

        logger.info(f"Cleared grocery list for week {week_id}, user {user_id}")
        return self._mirror_delete(user_id, "groceryLists", week_id)
