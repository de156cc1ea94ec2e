#!/usr/bin/env python3
"""
Main orchestrator for PantryPal.

Coordinates the local store, the weekly planner, and the Shopping and
Recommendation agents. Also provides the ``pantrypal`` command line.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .agents.recommendation_agent import RecommendationAgent
from .agents.shopping_agent import ShoppingAgent
from .config import AppConfig, LOG_FORMAT
from .data.database import DatabaseInterface
from .data.models import Recipe, WeeklyPlan
from .data.sync import NullRemoteStore, RemoteStore, SyncDispatcher
from .llm_provider import LLMProvider, get_llm_provider
from .planner import PlannerContext, format_date, initialize_planner, parse_date

logger = logging.getLogger(__name__)


class PantryPalAssistant:
    """Main orchestrator for the planner and grocery list."""

    def __init__(
        self,
        config: Optional[AppConfig] = None,
        remote: Optional[RemoteStore] = None,
        llm: Optional[LLMProvider] = None,
    ):
        """
        Initialize PantryPal.

        Args:
            config: Settings (defaults to AppConfig.from_env())
            remote: Remote document store to mirror writes to
                (defaults to NullRemoteStore)
            llm: LLM provider for recommendations (defaults to get_llm_provider())
        """
        self.config = config or AppConfig.from_env()

        self.sync = SyncDispatcher(
            remote or NullRemoteStore(),
            max_workers=self.config.sync_workers,
            error_reporter=self._report_sync_error,
        )
        self.db = DatabaseInterface(db_dir=self.config.db_dir, sync=self.sync)

        if llm is None:
            llm = get_llm_provider(
                api_key=self.config.anthropic_api_key,
                use_null=self.config.use_null_llm,
            )

        self.shopping_agent = ShoppingAgent(self.db)
        self.recommendation_agent = RecommendationAgent(llm=llm, model=self.config.llm_model)
        self.sync_errors: List[str] = []

        logger.info(f"PantryPal initialized (db_dir={self.config.db_dir})")

    def _report_sync_error(self, description: str, error: BaseException):
        self.sync_errors.append(f"{description}: {error}")

    def close(self):
        """Wait for pending mirror writes and stop the sync workers."""
        self.sync.shutdown(wait=True)

    # ==================== Planner ====================

    def get_plan(self, context: PlannerContext, user_id: str) -> WeeklyPlan:
        """The stored plan for the context's week, or a fresh empty one."""
        plan = self.db.load_planner(context.week_id(), user_id=user_id)
        return plan or initialize_planner(context)

    def set_meal(self, date: str, recipe_id: str, user_id: str) -> WeeklyPlan:
        """
        Plan a recipe for a day.

        Raises:
            ValueError: If the date is invalid or the recipe does not exist
        """
        day = parse_date(date)
        if self.db.get_recipe(recipe_id, user_id=user_id) is None:
            raise ValueError(f"Recipe not found: {recipe_id}")

        plan = self.get_plan(PlannerContext(today=day), user_id)
        plan.set_meal(format_date(day), recipe_id)
        self.db.save_planner(plan, user_id=user_id)
        logger.info(f"Planned {recipe_id} for {format_date(day)}")
        return plan

    def remove_meal(self, date: str, user_id: str) -> WeeklyPlan:
        """Empty a day's slot. Raises ValueError for an invalid date."""
        day = parse_date(date)
        plan = self.get_plan(PlannerContext(today=day), user_id)
        plan.remove_meal(format_date(day))
        self.db.save_planner(plan, user_id=user_id)
        logger.info(f"Removed meal for {format_date(day)}")
        return plan

    def clear_plan(self, context: PlannerContext, user_id: str) -> WeeklyPlan:
        plan = self.get_plan(context, user_id)
        plan.clear_meals()
        self.db.save_planner(plan, user_id=user_id)
        logger.info(f"Cleared plan for week {plan.week_id}")
        return plan

    def describe_plan(self, context: PlannerContext, user_id: str) -> Dict[str, Any]:
        """Plan for a week with each day's recipe title resolved."""
        plan = self.get_plan(context, user_id)
        days = []
        for day in context.week_dates():
            entry = plan.meals.get(day.date_string)
            recipe_id = entry.recipe_id if entry else None
            recipe = self.db.get_recipe(recipe_id, user_id=user_id) if recipe_id else None
            days.append({
                "date": day.date_string,
                "day_name": day.day_name,
                "day_short": day.day_short,
                "day_number": day.day_number,
                "month": day.month,
                "recipe_id": recipe_id,
                "recipe_title": recipe.title if recipe else None,
            })

        return {
            "week_id": plan.week_id,
            "week_range": context.week_range_string(),
            "days": days,
        }

    # ==================== Grocery ====================

    def create_grocery_list(self, context: PlannerContext, user_id: str) -> Dict[str, Any]:
        """Generate the grocery list for the context's week."""
        week_id = context.week_id()
        logger.info(f"Creating grocery list for week {week_id}")
        return self.shopping_agent.generate_grocery_list(week_id, user_id=user_id)

    # ==================== Recommendations ====================

    def recommend(self, user_id: str, preferences: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        # Oldest first so the profile's "recent recipes" are the newest ones
        recipes = list(reversed(self.db.load_recipes(user_id)))
        return self.recommendation_agent.get_recommendations(recipes, preferences)


# ==================== CLI ====================


def _print_plan(summary: Dict[str, Any]):
    print(f"\nWeek of {summary['week_range']}")
    print("=" * 60)
    for day in summary["days"]:
        title = day["recipe_title"] or (day["recipe_id"] and f"(missing recipe {day['recipe_id']})") or "-"
        print(f"  {day['day_short']} {day['month']} {day['day_number']:>2}  {title}")


def _print_recipes(recipes: List[Recipe]):
    if not recipes:
        print("No saved recipes.")
        return
    for recipe in recipes:
        print(f"  {recipe.id}  {recipe}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="PantryPal weekly planner and grocery list")
    parser.add_argument(
        "--db-dir",
        type=str,
        default=None,
        help="Database directory (default: $PANTRYPAL_DB_DIR or data)",
    )
    parser.add_argument(
        "--user",
        type=str,
        default=None,
        help="User id (default: $PANTRYPAL_USER_ID or local)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in [
        ("plan-show", "Show the week's plan"),
        ("plan-clear", "Clear every meal in the week"),
        ("grocery", "Generate and show the week's grocery list"),
        ("grocery-show", "Show the week's grocery list"),
        ("grocery-clear", "Delete the week's grocery list"),
    ]:
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--offset", type=int, default=0, help="Weeks from the current week")

    plan_set = subparsers.add_parser("plan-set", help="Plan a recipe for a day")
    plan_set.add_argument("date", help="Day (YYYY-MM-DD)")
    plan_set.add_argument("recipe_id", help="Recipe ID")

    plan_remove = subparsers.add_parser("plan-remove", help="Remove the meal planned for a day")
    plan_remove.add_argument("date", help="Day (YYYY-MM-DD)")

    grocery_check = subparsers.add_parser("grocery-check", help="Tick an item on the grocery list")
    grocery_check.add_argument("index", type=int, help="Item number as shown by grocery-show")
    grocery_check.add_argument("--uncheck", action="store_true", help="Untick instead")
    grocery_check.add_argument("--offset", type=int, default=0, help="Weeks from the current week")

    subparsers.add_parser("recipes", help="List saved recipes")

    import_parser = subparsers.add_parser("import", help="Replace recipes with a JSON export")
    import_parser.add_argument("file", help="Path to the JSON file")

    subparsers.add_parser("export", help="Print all recipes as JSON")
    subparsers.add_parser("recommend", help="Get personalized recipe recommendations")

    return parser


def run_command(assistant: PantryPalAssistant, args: argparse.Namespace, user_id: str) -> int:
    """Execute one parsed CLI command. Returns the process exit code."""
    context = PlannerContext(week_offset=getattr(args, "offset", 0))
    shopping = assistant.shopping_agent

    if args.command == "plan-show":
        _print_plan(assistant.describe_plan(context, user_id))

    elif args.command == "plan-set":
        assistant.set_meal(args.date, args.recipe_id, user_id)
        print(f"✓ Planned {args.recipe_id} for {args.date}")

    elif args.command == "plan-remove":
        assistant.remove_meal(args.date, user_id)
        print(f"✓ Removed meal for {args.date}")

    elif args.command == "plan-clear":
        plan = assistant.clear_plan(context, user_id)
        print(f"✓ Cleared plan for week of {plan.week_id}")

    elif args.command == "grocery":
        result = assistant.create_grocery_list(context, user_id)
        if not result["success"]:
            print(f"❌ {result['error']}")
            return 1
        print("\n" + shopping.format_shopping_list(context.week_id(), user_id=user_id))

    elif args.command == "grocery-show":
        print("\n" + shopping.format_shopping_list(context.week_id(), user_id=user_id))

    elif args.command == "grocery-check":
        result = shopping.toggle_item(context.week_id(), args.index, not args.uncheck, user_id=user_id)
        if not result["success"]:
            print(f"❌ {result['error']}")
            return 1
        progress = result["progress"]
        print(f"✓ {progress['checked']}/{progress['total']} items ({progress['percentage']}%)")

    elif args.command == "grocery-clear":
        result = shopping.clear_grocery_list(context.week_id(), user_id=user_id)
        if not result["success"]:
            print(f"❌ {result['error']}")
            return 1
        print(f"✓ Cleared grocery list for week of {context.week_id()}")

    elif args.command == "recipes":
        _print_recipes(assistant.db.load_recipes(user_id))

    elif args.command == "import":
        count = assistant.db.import_recipes(Path(args.file).read_text(encoding="utf-8"), user_id=user_id)
        print(f"✓ Imported {count} recipes")

    elif args.command == "export":
        print(assistant.db.export_recipes(user_id))

    elif args.command == "recommend":
        result = assistant.recommend(user_id)
        if not result["success"]:
            print(f"❌ Recommendations failed: {result['error']}")
            return 1
        for rec in result["recommendations"]:
            print(f"\n• {rec.get('title', 'Untitled')}")
            if rec.get("why"):
                print(f"  {rec['why']}")
        insights = result["insights"]
        if insights.get("cookingStyle"):
            print(f"\nYour cooking style: {insights['cookingStyle']}")

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    config = AppConfig.from_env()
    if args.db_dir:
        config.db_dir = args.db_dir

    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)

    user_id = args.user or config.user_id
    assistant = PantryPalAssistant(config)
    try:
        return run_command(assistant, args, user_id)
    except (ValueError, OSError) as e:
        logger.debug(f"Command {args.command} failed", exc_info=True)
        print(f"❌ Error: {e}")
        return 1
    finally:
        assistant.close()


if __name__ == "__main__":
    sys.exit(main())
