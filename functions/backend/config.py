"""
Configuration and settings for the nostalgia functions.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings. Field names match env vars case-insensitively."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # LLM / OpenAI (OPENAI_API_KEY is injected from Secret Manager when deployed)
    openai_api_key: Optional[str] = Field(default=None)
    openai_base_url: str = Field(default="https://api.openai.com/v1")
    chat_model: str = Field(default="gpt-4o-mini")
    image_model: str = Field(default="gpt-image-1")
    image_size: str = Field(default="1024x1024")

    # Outbound call limits
    llm_timeout_seconds: float = Field(default=60.0)
    lookup_timeout_seconds: float = Field(default=10.0)
    llm_max_attempts: int = Field(default=2, ge=1)
    llm_retry_delay_seconds: float = Field(default=0.6, ge=0)

    # S3-compatible storage (Tencent COS). Firebase Storage is used when unset.
    cos_endpoint: Optional[str] = Field(default=None)
    cos_region: Optional[str] = Field(default=None)
    cos_bucket: Optional[str] = Field(default=None)
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(default=False)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
