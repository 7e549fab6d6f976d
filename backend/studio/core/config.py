"""
Centralized configuration management.

Upload limits, response limits and the profiler's type-detection thresholds
are all read from the environment and validated here.
"""
import os
import logging
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """Application settings with validation."""

    # Upload limits
    max_file_size_mb: int = Field(default=25, ge=1, le=1000, description="Maximum upload size in MB")
    max_file_rows: int = Field(default=1000000, ge=1000, description="Maximum rows in an ingested dataset")
    max_file_columns: int = Field(default=1000, ge=10, description="Maximum columns in an ingested dataset")
    max_cell_size_bytes: int = Field(default=100000, ge=1000, description="Maximum cell value size in bytes")

    # Response shaping
    max_dataset_rows: int = Field(default=5000, ge=100, le=100000, description="Cleaned rows returned inline")

    # Request handling
    rate_limit_per_minute: int = Field(default=10, ge=1, le=1000, description="Rate limit per minute per IP")
    request_timeout_seconds: int = Field(default=300, ge=1, le=3600, description="Request timeout in seconds")
    allowed_origins: str = Field(
        default="http://localhost:5173,http://localhost:3000",
        description="Comma-separated list of allowed CORS origins"
    )

    log_level: str = Field(default="INFO", description="Logging level")

    # Profiler thresholds
    type_sample_size: int = Field(default=200, ge=1, description="Non-empty values sampled per column")
    id_unique_ratio: float = Field(default=0.95, gt=0, le=1)
    numeric_ratio: float = Field(default=0.8, gt=0, le=1)
    datetime_ratio: float = Field(default=0.7, gt=0, le=1)
    categorical_unique_ratio: float = Field(default=0.5, gt=0, le=1)
    categorical_max_distinct: int = Field(default=50, ge=1)
    text_min_avg_length: float = Field(default=50, ge=0)
    top_values_limit: int = Field(default=10, ge=1)

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def allowed_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables, falling back to field defaults."""
        env_map = {
            "max_file_size_mb": "MAX_FILE_SIZE_MB",
            "max_file_rows": "MAX_FILE_ROWS",
            "max_file_columns": "MAX_FILE_COLUMNS",
            "max_cell_size_bytes": "MAX_CELL_SIZE_BYTES",
            "max_dataset_rows": "MAX_DATASET_ROWS",
            "rate_limit_per_minute": "RATE_LIMIT_PER_MINUTE",
            "request_timeout_seconds": "REQUEST_TIMEOUT_SECONDS",
            "allowed_origins": "ALLOWED_ORIGINS",
            "log_level": "LOG_LEVEL",
            "type_sample_size": "PROFILER_SAMPLE_SIZE",
            "id_unique_ratio": "PROFILER_ID_UNIQUE_RATIO",
            "numeric_ratio": "PROFILER_NUMERIC_RATIO",
            "datetime_ratio": "PROFILER_DATETIME_RATIO",
            "categorical_unique_ratio": "PROFILER_CATEGORICAL_UNIQUE_RATIO",
            "categorical_max_distinct": "PROFILER_CATEGORICAL_MAX_DISTINCT",
            "text_min_avg_length": "PROFILER_TEXT_MIN_AVG_LENGTH",
            "top_values_limit": "PROFILER_TOP_VALUES",
        }
        # pydantic coerces the raw strings to the declared field types
        values = {field: os.environ[var] for field, var in env_map.items() if var in os.environ}
        return cls(**values)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get application settings (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
        logger.info("Configuration loaded and validated successfully")
    return _settings


def reload_settings() -> Settings:
    """Drop the cached settings and read the environment again."""
    global _settings
    _settings = None
    return get_settings()
