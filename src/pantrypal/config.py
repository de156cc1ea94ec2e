"""
Runtime configuration for PantryPal.

Values come from the environment (a .env file is loaded first if present).
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


DEFAULT_LLM_MODEL = "claude-sonnet-4-5-20250929"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


@dataclass
class AppConfig:
    """Settings shared by the CLI and the web app."""

    db_dir: str = "data"
    user_id: str = "local"
    log_level: str = "INFO"
    log_dir: str = "logs"
    secret_key: str = "dev-secret-key-change-in-production"
    anthropic_api_key: Optional[str] = None
    use_null_llm: bool = False
    llm_model: str = DEFAULT_LLM_MODEL
    sync_workers: int = 2

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "AppConfig":
        """
        Build a config from environment variables.

        Args:
            load_env_file: Load a .env file into the environment first

        Returns:
            AppConfig with defaults for anything unset
        """
        if load_env_file:
            load_dotenv()

        return cls(
            db_dir=os.environ.get("PANTRYPAL_DB_DIR", "data"),
            user_id=os.environ.get("PANTRYPAL_USER_ID", "local"),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            log_dir=os.environ.get("LOG_DIR", "logs"),
            secret_key=os.environ.get("FLASK_SECRET_KEY", "dev-secret-key-change-in-production"),
            anthropic_api_key=os.environ.get("ANTHROPIC_API_KEY") or None,
            use_null_llm=_env_bool("USE_NULL_LLM"),
            llm_model=os.environ.get("PANTRYPAL_LLM_MODEL", DEFAULT_LLM_MODEL),
            sync_workers=_env_int("PANTRYPAL_SYNC_WORKERS", 2),
        )
