"""Application configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .prompts import DEFAULT_SYSTEM_PROMPT, DEFAULT_USER_PROMPT_PREFIX

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        validation_alias=AliasChoices("CORS_ORIGINS", "cors_origins"),
    )

    # OpenAI-compatible chat completions provider
    openai_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("OPENAI_API_KEY", "openai_api_key"),
    )
    openai_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.openai.com/v1"),
        validation_alias=AliasChoices("OPENAI_BASE_URL", "openai_base_url"),
    )

    # Anthropic messages provider
    anthropic_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("ANTHROPIC_API_KEY", "anthropic_api_key"),
    )
    anthropic_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://api.anthropic.com/v1"),
        validation_alias=AliasChoices("ANTHROPIC_BASE_URL", "anthropic_base_url"),
    )
    anthropic_version: str = Field(
        default="2023-06-01",
        validation_alias=AliasChoices("ANTHROPIC_VERSION", "anthropic_version"),
    )
    anthropic_max_tokens: int = Field(
        default=2048,
        ge=1,
        validation_alias=AliasChoices(
            "ANTHROPIC_MAX_TOKENS", "anthropic_max_tokens"
        ),
    )

    default_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("DEFAULT_MODEL", "default_model"),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("REQUEST_TIMEOUT", "timeout"),
        ge=1,
    )
    system_prompt: str = Field(
        default=DEFAULT_SYSTEM_PROMPT,
        validation_alias=AliasChoices("SYSTEM_PROMPT", "system_prompt"),
    )
    system_prompt_path: Optional[Path] = Field(
        default=None,
        validation_alias=AliasChoices("SYSTEM_PROMPT_PATH", "system_prompt_path"),
    )
    user_prompt_prefix: str = Field(
        default=DEFAULT_USER_PROMPT_PREFIX,
        validation_alias=AliasChoices("USER_PROMPT_PREFIX", "user_prompt_prefix"),
    )

    tools_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("TOOLS_ENABLED", "tools_enabled"),
    )
    clear_on_tool_call: bool = Field(
        default=True,
        validation_alias=AliasChoices("CLEAR_ON_TOOL_CALL", "clear_on_tool_call"),
    )

    # Business search (Yelp Fusion)
    yelp_api_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("YELP_API_KEY", "yelp_api_key"),
    )
    yelp_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl(
            "https://api.yelp.com/v3/businesses/search"
        ),
        validation_alias=AliasChoices("YELP_BASE_URL", "yelp_base_url"),
    )
    yelp_default_location: str = Field(
        default="Seattle, WA",
        validation_alias=AliasChoices(
            "YELP_DEFAULT_LOCATION", "yelp_default_location"
        ),
    )
    business_cache_ttl_seconds: float = Field(
        default=15 * 60,
        ge=0,
        validation_alias=AliasChoices(
            "BUSINESS_CACHE_TTL_SECONDS", "business_cache_ttl_seconds"
        ),
    )
    business_cache_max_entries: int = Field(
        default=100,
        ge=1,
        validation_alias=AliasChoices(
            "BUSINESS_CACHE_MAX_ENTRIES", "business_cache_max_entries"
        ),
    )

    # Product search (Oxylabs realtime API)
    oxylabs_username: str | None = Field(
        default=None,
        validation_alias=AliasChoices("OXYLABS_USERNAME", "oxylabs_username"),
    )
    oxylabs_password: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("OXYLABS_PASSWORD", "oxylabs_password"),
    )
    oxylabs_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://realtime.oxylabs.io/v1/queries"),
        validation_alias=AliasChoices("OXYLABS_BASE_URL", "oxylabs_base_url"),
    )
    oxylabs_geo_location: str = Field(
        default="90210",
        validation_alias=AliasChoices(
            "OXYLABS_GEO_LOCATION", "oxylabs_geo_location"
        ),
    )

    # Image generation (fal.ai)
    fal_key: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("FAL_KEY", "fal_key"),
    )
    fal_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://fal.run"),
        validation_alias=AliasChoices("FAL_BASE_URL", "fal_base_url"),
    )
    fal_model: str = Field(
        default="fal-ai/fast-lightning-sdxl",
        validation_alias=AliasChoices("FAL_MODEL", "fal_model"),
    )
    image_delivery: Literal["inline", "deferred"] = Field(
        default="inline",
        validation_alias=AliasChoices("IMAGE_DELIVERY", "image_delivery"),
    )
    image_id_start: int = Field(
        default=1000,
        ge=0,
        validation_alias=AliasChoices("IMAGE_ID_START", "image_id_start"),
    )
    fallback_image_src: str = Field(
        default="/img/default-image.png",
        validation_alias=AliasChoices("FALLBACK_IMAGE_SRC", "fallback_image_src"),
    )

    context_window_turns: int = Field(
        default=3,
        ge=0,
        validation_alias=AliasChoices(
            "CONTEXT_WINDOW_TURNS", "context_window_turns"
        ),
    )
    interaction_log_path: Optional[Path] = Field(
        default_factory=lambda: Path("logs/interaction_logs.jsonl"),
        validation_alias=AliasChoices(
            "INTERACTION_LOG_PATH", "interaction_log_path"
        ),
    )

    def resolved_system_prompt(self) -> str:
        """Return the system prompt, preferring the prompt file when present."""

        path = self.system_prompt_path
        if path is not None and path.exists():
            text = path.read_text(encoding="utf-8").strip()
            if text:
                return text
        return self.system_prompt


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
