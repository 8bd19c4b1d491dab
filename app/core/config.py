"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the queue workers and the
operator scripts share one configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MODEL_BASE_URL = "https://api.bytez.com/models/v2"


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


_SETTINGS_CONFIG = SettingsConfigDict(populate_by_name=True, extra="ignore")


class ModelSettings(BaseSettings):
    """Configuration for the hosted language-model endpoint."""

    model_config = _SETTINGS_CONFIG

    api_key: Optional[str] = Field(
        None,
        validation_alias="BYTEZ_KEY",
        description="Credential for the model endpoint. Offline fallback when unset.",
    )
    base_url: str = Field(DEFAULT_MODEL_BASE_URL, validation_alias="BYTEZ_BASE_URL")
    alternate_base_urls: str = Field(
        "",
        validation_alias="MODEL_ALTERNATE_BASE_URLS",
        description="Comma-separated bases tried after the configured one.",
    )
    default_model: str = Field(
        "meta-llama/Llama-3.1-8B-Instruct", validation_alias="MODEL_NAME"
    )
    auth_scheme: str = Field(
        "",
        validation_alias="MODEL_AUTH_SCHEME",
        description="Optional prefix for the Authorization header (e.g. 'Bearer').",
    )
    timeout_seconds: float = Field(120.0, validation_alias="MODEL_TIMEOUT_SECONDS")
    retry_rounds: int = Field(3, ge=1, validation_alias="MODEL_RETRY_ROUNDS")
    retry_backoff_seconds: float = Field(
        0.5, ge=0, validation_alias="MODEL_RETRY_BACKOFF_SECONDS"
    )
    debug_responses: bool = Field(False, validation_alias="MODEL_DEBUG_RESPONSES")

    def alternate_bases(self) -> list[str]:
        return [
            base.strip() for base in self.alternate_base_urls.split(",") if base.strip()
        ]


class QueueSettings(BaseSettings):
    """Settings for the summary job queue and its workers."""

    model_config = _SETTINGS_CONFIG

    backend: Literal["sqlite", "sqs"] = Field(
        "sqlite", validation_alias="SUMMARY_QUEUE_BACKEND"
    )
    sqs_queue_url: Optional[str] = Field(None, validation_alias="SUMMARY_QUEUE_URL")
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")
    max_attempts: int = Field(3, ge=1, validation_alias="QUEUE_MAX_ATTEMPTS")
    backoff_base_ms: int = Field(2000, ge=0, validation_alias="QUEUE_BACKOFF_BASE_MS")
    inline_threshold: int = Field(5, validation_alias="INLINE_BACKLOG_THRESHOLD")
    worker_concurrency: int = Field(3, ge=1, validation_alias="QUEUE_CONCURRENCY")
    poll_interval_seconds: float = Field(
        1.0, gt=0, validation_alias="QUEUE_POLL_INTERVAL_SECONDS"
    )
    stalled_after_seconds: float = Field(
        300.0, validation_alias="QUEUE_STALLED_AFTER_SECONDS"
    )
    keep_completed: int = Field(50, ge=0, validation_alias="QUEUE_KEEP_COMPLETED")
    rate_limit_max: int = Field(
        5,
        ge=0,
        validation_alias="QUEUE_RATE_LIMIT_MAX",
        description="Jobs claimed per rate-limit window across all local workers; 0 disables.",
    )
    rate_limit_duration_ms: int = Field(
        1000, gt=0, validation_alias="QUEUE_RATE_LIMIT_DURATION_MS"
    )

    @model_validator(mode="after")
    def _require_queue_url(self) -> "QueueSettings":
        if self.backend == "sqs" and not self.sqs_queue_url:
            raise ValueError("SUMMARY_QUEUE_URL is required when SUMMARY_QUEUE_BACKEND=sqs")
        return self


class StorageSettings(BaseSettings):
    """Where summary records (and the SQLite queue) live."""

    model_config = _SETTINGS_CONFIG

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="SUMMARY_STORE_BACKEND"
    )
    db_path: str = Field("data/summaries.db", validation_alias="SUMMARY_DB_PATH")
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )

    @model_validator(mode="after")
    def _require_table(self) -> "StorageSettings":
        if self.backend == "dynamodb" and not self.dynamodb_table_name:
            raise ValueError(
                "DYNAMODB_TABLE_NAME is required when SUMMARY_STORE_BACKEND=dynamodb"
            )
        return self


class GenerationSettings(BaseSettings):
    """Knobs for the summary generation pipeline."""

    model_config = _SETTINGS_CONFIG

    parse_failure_status: Literal["ready", "failed"] = Field(
        "ready",
        validation_alias="PARSE_FAILURE_STATUS",
        description="Status recorded when the model output cannot be parsed.",
    )
    error_message_limit: int = Field(1024, validation_alias="ERROR_MESSAGE_LIMIT")


class AppSettings(BaseSettings):
    """Root settings object for the API and the workers."""

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    model: ModelSettings = Field(default_factory=ModelSettings)
    queue: QueueSettings = Field(default_factory=QueueSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    generation: GenerationSettings = Field(default_factory=GenerationSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_MODEL_BASE_URL",
    "GenerationSettings",
    "ModelSettings",
    "QueueSettings",
    "StorageSettings",
    "get_settings",
]
