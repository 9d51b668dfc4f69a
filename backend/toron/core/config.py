from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    env: str = Field(default="dev", validation_alias="ENV")
    database_url: str = Field(default="sqlite:///./dev.db", validation_alias="DATABASE_URL")
    cors_origins_raw: Optional[str] = Field(
        default=None,
        validation_alias="CORS_ORIGINS",
    )
    admin_key: str = Field(default="changeme-admin", validation_alias="ADMIN_KEY")
    base_url: str = Field(default="http://localhost:8000", validation_alias="BASE_URL")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    sandbox_api_url: str = Field(default="https://api.moru.io", validation_alias="SANDBOX_API_URL")
    sandbox_api_key: str = Field(default="", validation_alias="SANDBOX_API_KEY")
    sandbox_template: str = Field(
        default="moru-hackathon-agent-toron",
        validation_alias="SANDBOX_TEMPLATE",
    )
    sandbox_timeout_ms: int = Field(default=30 * 60 * 1000, validation_alias="SANDBOX_TIMEOUT_MS")
    anthropic_api_key: str = Field(default="", validation_alias="ANTHROPIC_API_KEY")

    default_max_turns: int = Field(default=5, ge=1, validation_alias="DEFAULT_MAX_TURNS")
    transcript_read_delay_seconds: float = Field(
        default=2.0,
        ge=0,
        validation_alias="TRANSCRIPT_READ_DELAY_SECONDS",
    )
    sandbox_settle_seconds: float = Field(
        default=3.0,
        ge=0,
        validation_alias="SANDBOX_SETTLE_SECONDS",
    )

    @field_validator("base_url", "sandbox_api_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> str:
        """Callback and provider URLs are joined with a leading /, so drop any trailing one."""
        if v is None:
            return ""
        return str(v).strip().rstrip("/")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @staticmethod
    def parse_cors_origins(raw: Optional[str]) -> List[str]:
        if not raw:
            # Default to local frontend for dev
            return ["http://localhost:3000"]
        return [origin.strip() for origin in raw.split(",") if origin.strip()]

    @property
    def cors_origins(self) -> List[str]:
        return Settings.parse_cors_origins(self.cors_origins_raw)


@lru_cache()
def get_settings() -> Settings:
    return Settings()
