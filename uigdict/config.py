from __future__ import annotations
from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CMS_BASE_URL = 'https://admin.uig.me'

class Settings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra='ignore')

    # Upstream Payload CMS origin; the search proxy and glossary read from it
    cms_base_url: str = Field(
        DEFAULT_CMS_BASE_URL,
        validation_alias=AliasChoices('CMS_BASE_URL', 'NEXT_PUBLIC_CMS_BASE_URL'),
    )
    upstream_timeout: float = 10.0  # seconds

    search_default_page_size: int = 25
    search_max_page_size: int = 100
    search_debounce_ms: int = 300

    # Where socket sessions send their search requests. Unset means in-process.
    search_api_url: Optional[str] = None

    cors_origins: str = '*'
    log_level: str = 'INFO'

    @field_validator('cms_base_url', mode='before')
    @classmethod
    def _sanitize_base_url(cls, value):
        if not isinstance(value, str):
            return DEFAULT_CMS_BASE_URL
        trimmed = value.strip()
        if not trimmed:
            return DEFAULT_CMS_BASE_URL
        return trimmed[:-1] if trimmed.endswith('/') else trimmed

    @property
    def debounce_seconds(self) -> float:
        return self.search_debounce_ms / 1000.0

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(',') if o.strip()]

@lru_cache
def get_settings() -> Settings:
    return Settings()
