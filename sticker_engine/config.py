from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STICKER_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    device_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("STICKER_DEVICE_KEY", "GEMINI_API_KEY", "API_KEY"),
    )
    quota_limit: int = 5

    max_retries: int = 2
    retry_initial_delay_ms: int = 1000

    image_model: str = "imagen-4.0-generate-001"
    image_edit_model: str = "gemini-2.5-flash-image"
    vision_model: str = "gemini-3-pro-preview"
    text_model: str = "gemini-2.5-flash"

    max_dimension: int = 1024
    jpeg_quality: float = 0.92

    export_size: int = 512
    export_max_bytes: int = 99 * 1024
    export_start_quality: float = 0.9
    export_quality_step: float = 0.1
    export_min_quality: float = 0.1

    @property
    def retry_initial_delay(self) -> float:
        return self.retry_initial_delay_ms / 1000


@lru_cache
def get_settings() -> EngineSettings:
    return EngineSettings()
