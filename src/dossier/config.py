"""Configuration management for DOSSIER.

Loads API keys and settings from environment variables using Pydantic.
All secrets must be stored in .env (never hardcoded).

Usage:
    from dossier.config import settings

    print(settings.perplexity_api_key)  # Validated at import
    print(settings.cache_ttl_seconds)
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BATCH_NAMES = frozenset({"batch1", "batch2", "batch3", "person"})
JOIN_POLICIES = frozenset({"fail_fast", "tolerant"})


class Settings(BaseSettings):
    """DOSSIER configuration from environment variables.

    Loads from .env file automatically. Validates on instantiation.
    The knowledge-retrieval key is required; the primary-source key is
    optional and its absence degrades every primary query to fallback.

    Attributes:
        perplexity_api_key: Perplexity API key (https://docs.perplexity.ai)
        sumble_api_key: Sumble API key (https://sumble.com)
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR)
        cache_db_path: SQLite file backing the persistent cache tier
        schema_version: Current analysis record schema version
        batch_policies: Join policy per pipeline batch
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    # API Keys
    perplexity_api_key: str = Field(..., min_length=10, description="Perplexity API key")
    sumble_api_key: str | None = Field(
        default=None,
        description="Sumble API key (None = knowledge fallback for every primary query)",
    )

    # Providers
    perplexity_base_url: str = Field(
        default="https://api.perplexity.ai",
        description="Perplexity API base URL",
    )
    perplexity_model: str = Field(default="sonar", description="Perplexity model")
    perplexity_rate_limit: int = Field(default=5, ge=1, description="Perplexity requests/second")
    sumble_base_url: str = Field(
        default="https://api.sumble.com/v2",
        description="Sumble API base URL",
    )
    sumble_rate_limit: int = Field(default=5, ge=1, description="Sumble requests/second")
    contacts_limit: int = Field(default=10, ge=1, le=50, description="Max contacts per company")

    # System Settings
    log_level: str = Field(default="INFO", description="Logging level")

    # Cache
    cache_db_path: str = Field(default="data/dossier.db", description="Persistent cache database")
    cache_ttl_seconds: int = Field(default=86400, ge=1, description="Default entry TTL (seconds)")
    cache_capacity: int = Field(default=1000, ge=1, description="In-memory tier capacity")
    cache_cleanup_interval_seconds: int = Field(
        default=3600,
        ge=1,
        description="Interval of the expired-entry cleanup loop (seconds)",
    )
    pending_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Safety timeout after which a pending registration is force-cleared",
    )
    schema_version: int = Field(default=6, ge=1, description="Analysis record schema version")
    tech_stack_ttl_seconds: int = Field(
        default=7 * 86400,
        ge=1,
        description="TTL of cached primary-source tech stack lookups (seconds)",
    )

    # Orchestration
    task_max_attempts: int = Field(default=2, ge=1, le=10, description="Attempts per task")
    task_backoff_seconds: float = Field(default=1.0, ge=0, description="Base retry backoff")
    call_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Wall-clock bound on one external call",
    )
    fabrication_threshold: int = Field(
        default=2,
        ge=1,
        description="Suspicious funding signals needed to discard funding data",
    )
    batch_policies: dict[str, str] = Field(
        default_factory=lambda: {
            "batch1": "fail_fast",
            "batch2": "tolerant",
            "batch3": "tolerant",
            "person": "tolerant",
        },
        description="Join policy per batch: 'fail_fast' or 'tolerant'",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid:
            raise ValueError(f"log_level must be one of {valid}, got {v}")
        return v_upper

    @field_validator("batch_policies")
    @classmethod
    def validate_batch_policies(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure batch names and policies are known."""
        normalized = {}
        for batch, policy in v.items():
            if batch not in BATCH_NAMES:
                raise ValueError(f"unknown batch '{batch}', expected one of {sorted(BATCH_NAMES)}")
            policy_lower = policy.lower()
            if policy_lower not in JOIN_POLICIES:
                raise ValueError(
                    f"batch_policies[{batch}] must be 'fail_fast' or 'tolerant', got '{policy}'"
                )
            normalized[batch] = policy_lower
        return normalized


# Loaded once at import; invalid configuration fails fast
settings = Settings()
