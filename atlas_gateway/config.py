from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from atlas_gateway.core.deadline import DEFAULT_DEADLINE_SECONDS

logger = logging.getLogger(__name__)

GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"
GROQ_MODEL = "llama-3.3-70b-versatile"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"


class Settings(BaseSettings):
    """Process configuration, read once at startup from the environment / .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # --- Provider credentials ---
    groq_api_key: str | None = Field(None, validation_alias="GROQ_API_KEY")
    gemini_api_key: str | None = Field(
        None,
        validation_alias=AliasChoices("VITE_GEMINI_API_KEY", "GEMINI_API_KEY"),
    )

    # --- Provider endpoints ---
    groq_url: str = Field(GROQ_URL, validation_alias="GROQ_URL")
    groq_model: str = Field(GROQ_MODEL, validation_alias="GROQ_MODEL")
    gemini_base_url: str = Field(GEMINI_BASE_URL, validation_alias="GEMINI_BASE_URL")
    gemini_api_versions: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["v1beta", "v1"],
        validation_alias="GEMINI_API_VERSIONS",
    )
    gemini_models: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["gemini-1.5-flash", "gemini-1.5-flash-latest", "gemini-pro"],
        validation_alias="GEMINI_MODELS",
    )
    provider_priority: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["gemini", "groq"],
        validation_alias="PROVIDER_PRIORITY",
    )

    # --- Identity verification ---
    credentials_file: str = Field(
        "serviceAccountKey.json",
        validation_alias="GOOGLE_APPLICATION_CREDENTIALS",
    )
    firebase_project_id: str | None = Field(None, validation_alias="FIREBASE_PROJECT_ID")

    # --- Runtime ---
    deadline_seconds: float = Field(
        DEFAULT_DEADLINE_SECONDS,
        gt=0,
        validation_alias="ATLAS_DEADLINE_SECONDS",
    )
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(True, validation_alias="LOG_JSON")

    @field_validator("groq_api_key", "gemini_api_key", "firebase_project_id", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("gemini_api_versions", "gemini_models", "provider_priority", mode="before")
    @classmethod
    def _split_csv(cls, value: object) -> object:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    def resolve_project_id(self) -> str | None:
        """Project id that Firebase ID tokens must be issued for, if verification is possible."""

        path = Path(self.credentials_file)
        if not path.is_file():
            return self.firebase_project_id

        try:
            service_account = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.error("Could not read credential file %s: %s", path, exc)
            return self.firebase_project_id

        if self.firebase_project_id:
            return self.firebase_project_id
        if isinstance(service_account, dict):
            return service_account.get("project_id")
        return None


@lru_cache
def get_settings() -> Settings:
    return Settings()
