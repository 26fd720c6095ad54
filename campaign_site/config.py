"""Application settings loaded from the environment."""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent.parent


def _split_list(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    """Runtime configuration for the site."""

    brevo_api_key: Optional[str] = None
    brevo_api_url: str = "https://api.brevo.com/v3"
    brevo_sender_name: str = ""
    brevo_sender_email: str = ""

    admin_secret_token: Optional[str] = None
    internal_api_key: Optional[str] = None

    database_url: Optional[str] = None
    redis_url: Optional[str] = None

    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-sonnet-4-5"

    data_dir: Path = BASE_DIR / "data"
    prompts_dir: Path = BASE_DIR / "prompts"
    curated_content_dir: Path = BASE_DIR / "curated-content"
    logs_dir: Path = BASE_DIR / "logs"

    enabled_grade_levels: list[str] = Field(default_factory=list)
    enabled_subjects: list[str] = Field(default_factory=list)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables (and a .env file if present)."""
        load_dotenv()

        values = {
            "brevo_api_key": os.getenv("BREVO_API_KEY"),
            "brevo_sender_name": os.getenv("BREVO_SENDER_NAME", ""),
            "brevo_sender_email": os.getenv("BREVO_SENDER_EMAIL", ""),
            "admin_secret_token": os.getenv("ADMIN_SECRET_TOKEN"),
            "internal_api_key": os.getenv("INTERNAL_API_KEY"),
            "database_url": os.getenv("DATABASE_URL"),
            "redis_url": os.getenv("REDIS_URL"),
            "anthropic_api_key": os.getenv("ANTHROPIC_API_KEY"),
            "enabled_grade_levels": _split_list(os.getenv("CURRICULUM_ENABLED_GRADE_LEVELS")),
            "enabled_subjects": _split_list(os.getenv("CURRICULUM_ENABLED_SUBJECTS")),
        }

        optional = {
            "brevo_api_url": "BREVO_API_URL",
            "anthropic_model": "ANTHROPIC_MODEL",
            "data_dir": "DATA_DIR",
            "prompts_dir": "PROMPTS_DIR",
            "curated_content_dir": "CURATED_CONTENT_DIR",
            "logs_dir": "LOGS_DIR",
        }
        for field_name, env_name in optional.items():
            value = os.getenv(env_name)
            if value:
                values[field_name] = value

        return cls(**values)
