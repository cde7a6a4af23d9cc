"""
Parser configuration

Uses Pydantic Settings so thresholds can be tuned from the environment
(RACE_RESULTS_* variables or a .env file) without touching the code.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Thresholds and defaults shared by the extraction pipeline."""

    # === Core ===
    log_level: str = Field(default="INFO", description="Logging level")

    # === Times ===
    min_race_minutes: float = Field(default=10.0, description="Shortest plausible race time")
    max_race_hours: float = Field(default=5.0, description="Longest plausible race time")
    pace_threshold_minutes: float = Field(
        default=15.0,
        description="Times below this are paces (min/km), above it race times"
    )

    # === Speeds ===
    min_speed_kmh: float = Field(default=5.0)
    max_speed_kmh: float = Field(default=25.0)
    max_record_speed_kmh: float = Field(
        default=30.0,
        description="Upper bound applied when reading SPEED back from a canonical record"
    )

    # === Detection / extraction ===
    signature_threshold: float = Field(default=0.6, description="Header coverage needed to pick a layout")
    row_tolerance: float = Field(default=3.0, description="Max vertical distance between words of one row")
    column_gap: float = Field(default=6.0, description="Horizontal gap treated as a column break")
    field_count_consistency: float = Field(default=0.8)

    # === Classification ===
    default_distance_km: int = Field(default=10)
    external_email: str = Field(default="winner@external.com")

    @field_validator('log_level')
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    model_config = SettingsConfigDict(
        env_prefix="RACE_RESULTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Global settings instance
settings = Settings()
