from __future__ import annotations

from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_API_BASE = "/questionnaire"
# mount points of earlier deployments, tried when saving
KNOWN_CONTEXTS = ["/QuestionnaireApp", "/questionnaire"]


class Settings(BaseSettings):
    """Application runtime settings loaded from environment/.env."""

    api_base: str = Field(default=DEFAULT_API_BASE, alias="QUESTIONNAIRE_API_BASE")
    known_contexts: List[str] = Field(default_factory=lambda: list(KNOWN_CONTEXTS), alias="QUESTIONNAIRE_KNOWN_CONTEXTS")
    origin: str = Field(default="http://127.0.0.1:8080", alias="QUESTIONNAIRE_ORIGIN")
    database_url: str = Field(default="sqlite:///./questionnaire.db", alias="DATABASE_URL")
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8080, alias="API_PORT")
    admin_token: str = Field(default="", alias="ADMIN_TOKEN")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("api_base")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        if value.startswith("http"):
            return value.rstrip("/")
        return value.rstrip("/") or DEFAULT_API_BASE

    @field_validator("origin")
    @classmethod
    def _strip_origin(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def api_prefix(self) -> str:
        """Path part of ``api_base``, used as the server mount point."""
        if self.api_base.startswith("http"):
            path = "/" + self.api_base.split("://", 1)[-1].partition("/")[2]
            return path.rstrip("/")
        return self.api_base

    def save_candidates(self) -> List[str]:
        bases = [self.api_base]
        bases.extend(c for c in self.known_contexts if c != self.api_base)
        bases.append("")
        return bases
