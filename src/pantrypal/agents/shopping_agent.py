"""
Shopping Agent for grocery list generation.

Takes a week's plan and generates an organized shopping list.
"""

import logging
from typing import Dict, Any

from ..data.database import DatabaseInterface, LOCAL_USER
from ..grocery import build_grocery_list, calculate_progress, group_items_by_category

logger = logging.getLogger(__name__)


class ShoppingAgent:
    """Agent for generating organized grocery lists from weekly plans."""

    def __init__(self, db: DatabaseInterface):
        """
        Initialize Shopping Agent.

        Args:
            db: Database interface instance
        """
        self.db = db
        logger.info("Shopping Agent initialized")

    def generate_grocery_list(self, week_id: str, user_id: str = LOCAL_USER) -> Dict[str, Any]:
        """
        Create (or replace) the grocery list for a week.

        Args:
            week_id: Monday of the week, "YYYY-MM-DD"
            user_id: Owner of the plan and recipes

        Returns:
            Dictionary with the saved list, its progress and the pending
            remote mirror Future under "sync" (None when local-only)
        """
        try:
            plan = self.db.load_planner(week_id, user_id=user_id)
            if plan is None or not plan.has_meals_planned():
                return {
                    "success": False,
                    "error": "No recipes planned for this week. Add some meals to your planner first!",
                }

            logger.info(f"Creating grocery list for week {week_id}")

            recipes = self.db.load_recipes(user_id)
            grocery_list = build_grocery_list(plan, recipes)
            sync = self.db.save_grocery_list(grocery_list, user_id=user_id)

            missing = set(grocery_list.planned_recipe_ids) - {r.id for r in recipes}
            if missing:
                logger.warning(f"Planned recipes not found for week {week_id}: {sorted(missing)}")

            logger.info(f"Created grocery list with {len(grocery_list.items)} items")

            return {
                "success": True,
                "grocery_list": grocery_list.to_dict(),
                "progress": calculate_progress(grocery_list.items),
                "sync": sync,
            }

        except Exception as e:
            logger.error(f"Error creating grocery list: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
            }

    def get_grocery_list(self, week_id: str, user_id: str = LOCAL_USER) -> Dict[str, Any]:
        grocery_list = self.db.load_grocery_list(week_id, user_id=user_id)
        if grocery_list is None:
            return {"success": False, "error": "Grocery list not found"}

        return {
            "success": True,
            "grocery_list": grocery_list.to_dict(),
            "progress": calculate_progress(grocery_list.items),
        }

    def toggle_item(
        self, week_id: str, index: int, checked: bool, user_id: str = LOCAL_USER
    ) -> Dict[str, Any]:
        """
        Tick or untick one item on a week's list.

        Returns:
            Dictionary with the updated progress
        """
        try:
            if not self.db.update_grocery_item_status(week_id, index, checked, user_id=user_id):
                return {"success": False, "error": f"No grocery item {index} for week {week_id}"}

            return {"success": True, "progress": self.get_progress(week_id, user_id=user_id)}

        except Exception as e:
            logger.error(f"Error updating grocery item: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
            }

    def clear_grocery_list(self, week_id: str, user_id: str = LOCAL_USER) -> Dict[str, Any]:
        try:
            sync = self.db.clear_grocery_list(week_id, user_id=user_id)
            return {"success": True, "sync": sync}
        except Exception as e:
            logger.error(f"Error clearing grocery list: {e}", exc_info=True)
            return {
                "success": False,
                "error": str(e),
            }

    def get_progress(self, week_id: str, user_id: str = LOCAL_USER) -> Dict[str, int]:
        """Progress for a week's list (all zeros if there is none)."""
        grocery_list = self.db.load_grocery_list(week_id, user_id=user_id)
        return calculate_progress(grocery_list.items if grocery_list else [])

    def format_shopping_list(self, week_id: str, user_id: str = LOCAL_USER) -> str:
        """
        Format a grocery list for display.

        Args:
            week_id: Week of the list

        Returns:
            Formatted shopping list string
        """
        grocery_list = self.db.load_grocery_list(week_id, user_id=user_id)

        if not grocery_list:
            return "Grocery list not found."

        progress = calculate_progress(grocery_list.items)
        lines = [
            f"Shopping List for Week of {grocery_list.week_id}",
            f"{'='*60}",
            f"\nTotal Items: {progress['total']}",
            f"Progress: {progress['checked']}/{progress['total']} ({progress['percentage']}%)",
        ]

        index = 0
        for category, items in group_items_by_category(grocery_list.items).items():
            lines.append(f"\n{category.upper()}")
            lines.append("-" * 30)

            for item in items:
                checkbox = "☑" if item.checked else "☐"
                quantity = f" - {item.quantity}" if item.quantity else ""
                lines.append(f"  [{index}] {checkbox} {item.name}{quantity}")
                index += 1

        return "\n".join(lines)
