"""Configuration management."""

from typing import Any

from pydantic import BaseModel, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitRule(BaseModel):
    """Sliding-window limit for one class of operation."""

    window_ms: int = Field(default=60_000, gt=0, description="Length of the sliding window in milliseconds")
    max_requests: int = Field(default=50, gt=0, description="Hits allowed inside one window")
    key_prefix: str | None = Field(default=None, description="Prefix for store keys; defaults to rl:<operation>")


def default_rate_limits() -> dict[str, RateLimitRule]:
    return {
        "wiki_generation": RateLimitRule(window_ms=60_000, max_requests=50, key_prefix="rl:wiki"),
        "image_generation": RateLimitRule(window_ms=60_000, max_requests=10, key_prefix="rl:image"),
        "world_operations": RateLimitRule(window_ms=60_000, max_requests=100, key_prefix="rl:world"),
        "api_key_operations": RateLimitRule(window_ms=60_000, max_requests=20, key_prefix="rl:apikey"),
        "global": RateLimitRule(window_ms=60_000, max_requests=200, key_prefix="rl:global"),
    }


class Settings(BaseSettings):
    # Upstream generation service
    openai_api_key: SecretStr | None = None
    openai_model: str = "gpt-4o"
    openai_base_url: str | None = None

    # Shared store for quotas and rate limits (in-process fallback when unset)
    redis_url: str | None = None

    # App config
    environment: str = Field(default="production", description="'development' allows mock generation without a key")
    service_name: str = "worldwiki"
    enable_user_api_keys: bool = False

    # Free tier
    free_tier_daily_limit: int = Field(default=5, ge=0)
    bypass_usage_limits: bool = False

    # Rate limit classes, e.g. RATE_LIMITS__WIKI_GENERATION__MAX_REQUESTS=10
    rate_limits: dict[str, RateLimitRule] = Field(default_factory=default_rate_limits)

    # Generation
    metadata_timeout_seconds: float = Field(default=30.0, gt=0)
    content_timeout_seconds: float = Field(default=120.0, gt=0)
    mock_stream_delay_seconds: float = Field(default=0.1, ge=0)
    mock_stream_chunk_words: int = Field(default=5, gt=0)
    legacy_marker_stream: bool = Field(default=False, description="Use the single-pass marker-text generation path")

    # Maintenance
    store_prune_interval_seconds: int = Field(default=60, gt=0)

    # Logging
    log_level: str = "INFO"
    log_json: bool = False
    logfire_token: SecretStr | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
        env_nested_delimiter="__",
    )

    @field_validator("rate_limits", mode="before")
    @classmethod
    def merge_default_rate_limits(cls, value: Any) -> dict[str, dict[str, Any]]:
        # Env overrides name only the classes and fields they change
        merged = {name: rule.model_dump() for name, rule in default_rate_limits().items()}
        for name, overrides in (value or {}).items():
            if isinstance(overrides, RateLimitRule):
                overrides = overrides.model_dump(exclude_unset=True)
            merged[name] = {**merged.get(name, {}), **overrides}
        return merged

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def default_api_key(self) -> str | None:
        """Service-wide upstream credential, if configured."""
        if self.openai_api_key is None:
            return None
        return self.openai_api_key.get_secret_value() or None

    def rate_limit_for(self, operation: str) -> RateLimitRule:
        """Get the limit for an operation class, falling back to the global class."""
        return self.rate_limits.get(operation) or self.rate_limits["global"]


settings = Settings()
