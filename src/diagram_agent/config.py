"""
Configuration & Logging.

Settings are read from the process environment, after loading a `.env` file
from the project root if one exists. They are validated by a Pydantic model so a
bad value (e.g. a non-numeric PORT) fails loudly at startup.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from rich.logging import RichHandler

# --- Environment Loading ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

# --- Constants ---
DEFAULT_MODEL_NAME = "gemini-1.5-pro-latest"
DEFAULT_BASE_URL = "http://localhost:6002"


class Settings(BaseModel):
    """Runtime settings for the agent service."""
    google_api_key: Optional[str] = None
    model_name: str = DEFAULT_MODEL_NAME
    temperature: Optional[float] = None

    public_base_url: str = DEFAULT_BASE_URL
    host: str = "0.0.0.0"
    port: int = 6002

    # 0 disables the limit.
    max_concurrent_tasks: int = Field(default=8, ge=0)
    task_max_age_seconds: int = Field(default=24 * 60 * 60, gt=0)
    # 0 disables the periodic purge.
    purge_interval_seconds: int = Field(default=0, ge=0)

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Builds settings from environment variables, skipping unset or empty ones."""
        env_map = {
            "google_api_key": "GOOGLE_API_KEY",
            "model_name": "AI_MODEL",
            "temperature": "TEMPERATURE",
            "public_base_url": "PUBLIC_BASE_URL",
            "host": "HOST",
            "port": "PORT",
            "max_concurrent_tasks": "A2A_MAX_CONCURRENT_TASKS",
            "task_max_age_seconds": "TASK_MAX_AGE_SECONDS",
            "purge_interval_seconds": "TASK_PURGE_INTERVAL_SECONDS",
            "log_level": "LOG_LEVEL",
        }
        values = {}
        for field_name, var in env_map.items():
            raw = os.environ.get(var)
            if raw is not None and raw.strip() != "":
                values[field_name] = raw.strip()
        return cls(**values)


def configure_logging(level: str = "INFO") -> None:
    """Routes standard logging through Rich for readable console output."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
