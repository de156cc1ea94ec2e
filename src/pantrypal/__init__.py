"""PantryPal: weekly dinner planner and grocery list."""

__version__ = "0.1.0"
