"""Application configuration helpers."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeedLimits(BaseModel):
    """Row limits passed to the history-style feeds."""

    history: int = Field(default=365, gt=0)
    trades: int = Field(default=50, gt=0)


class DashboardSettings(BaseSettings):
    """Dashboard settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    api_base_url: str = Field(
        default="http://localhost:8000", alias="ALGODASH_API_BASE_URL")
    request_timeout: float = Field(
        default=10.0, gt=0, alias="ALGODASH_REQUEST_TIMEOUT")
    history_limit: int = Field(
        default=365, gt=0, alias="ALGODASH_HISTORY_LIMIT")
    trades_limit: int = Field(default=50, gt=0, alias="ALGODASH_TRADES_LIMIT")
    refresh_interval: float = Field(
        default=60.0, gt=0, alias="ALGODASH_REFRESH_INTERVAL")
    log_level: str = Field(default="INFO", alias="ALGODASH_LOG_LEVEL")

    @field_validator("api_base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("api_base_url must be an http(s) URL")
        return value.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.strip().upper()

    @property
    def limits(self) -> FeedLimits:
        return FeedLimits(history=self.history_limit, trades=self.trades_limit)

    def api_url(self, path: str) -> str:
        """Join the configured base URL with an API path."""

        return f"{self.api_base_url}/{path.lstrip('/')}"


__all__ = ["DashboardSettings", "FeedLimits"]
