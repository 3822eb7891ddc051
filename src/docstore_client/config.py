from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .retry import ResolvedRetryConfig, RetryStrategy, apply_defaults
from .validation import DEFAULT_MAX_DOCUMENT_BYTES


class Settings(BaseSettings):
    """Client settings read from ``DOCSTORE_*`` environment variables or ``.env``."""

    PARTITION_KEY_FIELD: str = "partitionKey"
    TYPE_NAME: str = "Document"
    MAX_BATCH_SIZE: int = 100
    BATCH_CONCURRENCY: Optional[int] = None
    MAX_DOCUMENT_BYTES: int = DEFAULT_MAX_DOCUMENT_BYTES

    RETRY_ENABLED: bool = True
    RETRY_MAX_ATTEMPTS: int = 3
    RETRY_STRATEGY: RetryStrategy = RetryStrategy.EXPONENTIAL
    RETRY_BASE_DELAY_MS: float = 100.0
    RETRY_MAX_DELAY_MS: float = 5000.0
    RETRY_JITTER_FACTOR: float = 0.1
    RETRY_MAX_COST_BUDGET: float = 1000.0
    RETRY_RESPECT_RETRY_AFTER: bool = True
    RETRY_TIMEOUT_MS: Optional[float] = None

    model_config = SettingsConfigDict(
        env_prefix="DOCSTORE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("MAX_BATCH_SIZE", "MAX_DOCUMENT_BYTES")
    def _positive(cls, v):
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("BATCH_CONCURRENCY")
    def _positive_or_unbounded(cls, v):
        if v is not None and v <= 0:
            raise ValueError("must be positive or unset")
        return v

    def retry_defaults(self) -> ResolvedRetryConfig:
        return apply_defaults(
            {
                "enabled": self.RETRY_ENABLED,
                "max_attempts": self.RETRY_MAX_ATTEMPTS,
                "strategy": self.RETRY_STRATEGY,
                "base_delay_ms": self.RETRY_BASE_DELAY_MS,
                "max_delay_ms": self.RETRY_MAX_DELAY_MS,
                "jitter_factor": self.RETRY_JITTER_FACTOR,
                "max_cost_budget": self.RETRY_MAX_COST_BUDGET,
                "respect_retry_after": self.RETRY_RESPECT_RETRY_AFTER,
                "timeout_ms": self.RETRY_TIMEOUT_MS,
            }
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
