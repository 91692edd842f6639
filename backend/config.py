"""Environment-driven settings for the survey response service.

Values come from the process environment, after `.env` has been loaded with
python-dotenv. Pydantic enforces value constraints so a bad deployment fails
at startup instead of on the first submission.
"""
from __future__ import annotations

import logging
import os
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

load_dotenv()
logger = logging.getLogger(__name__)


class Settings(BaseModel):
    database_url: str = "sqlite:///./survey.db"
    db_timeout_seconds: float = Field(default=5.0, gt=0)
    rate_limit_max: int = Field(default=5, gt=0)
    rate_limit_window_seconds: float = Field(default=3600.0, gt=0)
    rate_limit_backend: Literal["memory", "database"] = "memory"
    client_ip_headers: list[str] = Field(default_factory=lambda: ["x-forwarded-for", "x-real-ip"])
    admin_api_key: str = "change-me"
    openai_api_key: str = ""
    llm_model: str = "gpt-4o-mini"
    log_level: str = "INFO"

    @field_validator("client_ip_headers", mode="before")
    @classmethod
    def split_header_list(cls, v):
        if isinstance(v, str):
            v = v.split(",")
        return [h.strip().lower() for h in v if h and h.strip()]

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


# env var name -> Settings field
_ENV_FIELDS = {
    "DATABASE_URL": "database_url",
    "DB_TIMEOUT_SECONDS": "db_timeout_seconds",
    "RATE_LIMIT_MAX": "rate_limit_max",
    "RATE_LIMIT_WINDOW_SECONDS": "rate_limit_window_seconds",
    "RATE_LIMIT_BACKEND": "rate_limit_backend",
    "CLIENT_IP_HEADERS": "client_ip_headers",
    "ADMIN_API_KEY": "admin_api_key",
    "OPENAI_API_KEY": "openai_api_key",
    "LLM_MODEL": "llm_model",
    "LOG_LEVEL": "log_level",
}


def load_settings() -> Settings:
    """Build settings from the environment.

    Unset variables fall back to the model defaults.

    Raises:
        pydantic.ValidationError: If any value violates its constraint.
    """
    raw = {field: os.environ[env] for env, field in _ENV_FIELDS.items() if os.environ.get(env)}
    try:
        return Settings(**raw)
    except ValidationError as e:
        logger.error("Invalid service configuration: %s", e)
        raise


settings = load_settings()
