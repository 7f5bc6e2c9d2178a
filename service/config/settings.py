import math

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_WEIGHTS = {"semantic": 0.5, "perceptual": 0.3, "structural": 0.2}


class PredictionConfig(BaseSettings):
    """Remote prediction service configuration"""

    model_config = SettingsConfigDict(env_prefix="PREDICTION_", populate_by_name=True, extra="ignore")

    api_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("REPLICATE_API_TOKEN", "PREDICTION_API_TOKEN", "api_token"),
    )
    base_url: str = Field(default="https://api.replicate.com/v1")
    poll_interval: float = Field(default=1.0, ge=0.0)
    max_poll_attempts: int = Field(default=30, ge=1)
    request_timeout: float = Field(default=30.0, gt=0.0)
    max_concurrent_jobs: int = Field(default=16, ge=1)
    submit_retries: int = Field(default=3, ge=1)
    capability_config_path: str = Field(default="/app/config/capabilities.json")


class ScoringConfig(BaseSettings):
    """Ensemble scoring configuration and empirical tuning constants"""

    model_config = SettingsConfigDict(env_prefix="SCORING_", extra="ignore")

    weights: dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    pipeline_timeout: float = Field(default=15.0, gt=0.0)
    neutral_score: float = Field(default=0.5, ge=0.0, le=1.0)
    fallback_similarity: float = Field(default=0.65, ge=0.0, le=1.0)
    fallback_jitter: float = Field(default=0.1, ge=0.0, le=1.0)
    semantic_mode: str = Field(default="embedding", pattern="^(embedding|pairwise)$")
    structural_strategy: str = Field(default="hash", pattern="^(hash|histogram)$")

    # Pixel input for the histogram strategy
    histogram_thumbnail_size: int = Field(default=64, ge=8)
    image_fetch_timeout: float = Field(default=10.0, gt=0.0)
    image_max_bytes: int = Field(default=20 * 1024 * 1024, gt=0)

    # Observed output ranges of the remote models, not documented properties of them
    cosine_floor: float = -0.3
    cosine_ceiling: float = 0.9
    distance_scale: float = Field(default=2.0, gt=0.0)
    distance_floor: float = Field(default=0.05, ge=0.0, le=1.0)
    distance_ceiling: float = Field(default=0.95, ge=0.0, le=1.0)

    @field_validator("weights")
    @classmethod
    def validate_weights(cls, v: dict[str, float]) -> dict[str, float]:
        """Weights must be non-negative and sum to 1.0"""
        if not v:
            raise ValueError("At least one metric weight is required")
        if any(w < 0 for w in v.values()):
            raise ValueError(f"Metric weights must be non-negative: {v}")
        if not math.isclose(sum(v.values()), 1.0, abs_tol=1e-6):
            raise ValueError(f"Metric weights must sum to 1.0, got {sum(v.values()):.6f}")
        return v


class ObservabilityConfig(BaseSettings):
    """Observability configuration"""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    enable_metrics: bool = Field(default=True, validation_alias="ENABLE_METRICS")
    system_metrics_interval: float = Field(default=10.0, gt=0.0, validation_alias="SYSTEM_METRICS_INTERVAL")


class AppSettings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", populate_by_name=True, extra="ignore")

    debug: bool = Field(default=False, validation_alias="DEBUG")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Sub-configurations
    prediction: PredictionConfig = Field(default_factory=PredictionConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)


# Global settings instance
settings = AppSettings()
