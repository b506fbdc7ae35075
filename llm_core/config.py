"""
Configuration management: all values sourced from environment variables.
An empty API key is a valid deployment state: provider clients are simply
not built and every provider-backed operation raises ConfigurationMissingError.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    openai_api_key: str = ""

    # ── LLM ───────────────────────────────────────────────────────────────────
    llm_model: str = "gpt-4o-mini"
    llm_retry_attempts: int = 5

    # ── STT ───────────────────────────────────────────────────────────────────
    stt_model: str = "whisper-1"
    stt_retry_attempts: int = 5

    # ── Retry ─────────────────────────────────────────────────────────────────
    retry_delay_seconds: float = 1.0
    provider_timeout_seconds: Optional[float] = None   # per attempt; None = no limit

    # ── Conversations ─────────────────────────────────────────────────────────
    default_scope_id: str = "default"

    # ── Error notifications ───────────────────────────────────────────────────
    notifier_webhook_url: str = ""
    notifier_timeout_seconds: float = 5.0

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_file: str = ""                             # empty = console only
    log_rotation_bytes: int = 10 * 1024 * 1024    # 10 MB
    log_backup_count: int = 5


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
