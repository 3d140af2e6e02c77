"""
Purchase Report
Centralized Configuration Management

Configuration is managed with Pydantic settings, so every value can be
overridden through environment variables or a local `.env` file.
"""

from functools import lru_cache
from typing import Optional, List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ReportSettings(BaseSettings):
    """Input dataset and report output configuration"""

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    input_path: str = Field(default="./data/user_purchases.csv", description="Input CSV path")
    output_dir: str = Field(default="./data/reports", description="Directory for report tables")
    output_format: str = Field(default="csv", description="Output format: csv or parquet")

    # Parsing
    delimiter: str = Field(default=",", description="Field delimiter")
    encoding: str = Field(default="utf8", description="File encoding")
    date_format: str = Field(default="%Y-%m-%d %H:%M:%S", description="Timestamp format")
    strict_dates: bool = Field(default=False, description="Abort on unparseable dates")
    strict_numbers: bool = Field(default=False, description="Abort on non-numeric counts or spend")

    # Column names
    user_id_column: str = Field(default="user_id", description="User identifier column")
    signup_column: str = Field(default="signup_date", description="Signup timestamp column")
    first_purchase_column: str = Field(default="first_purchase_date", description="First purchase column")
    last_purchase_column: str = Field(default="last_purchase_date", description="Last purchase column")
    country_column: str = Field(default="country", description="Country column")
    device_column: str = Field(default="device", description="Device column")
    weekday_column: str = Field(default="first_purchase_weekday", description="Weekday code column")
    purchase_count_column: str = Field(default="purchase_count", description="Purchase count column")
    spend_column: str = Field(default="total_spend", description="Monetary total column")
    referral_column: str = Field(default="is_referral", description="Referral flag column")
    payload_column: str = Field(default="store_type_counts", description="Store-type JSON column")

    # Store-type schema
    schema_strategy: str = Field(default="union", description="Store-type schema inference: union or first")

    # Days-to-first-purchase buckets, inclusive upper bounds
    bucket_bounds: List[int] = Field(default=[7, 14, 30, 60, 90], description="Bucket upper bounds in days")

    @field_validator("output_format")
    @classmethod
    def validate_output_format(cls, v: str) -> str:
        """Validate output format"""
        allowed = ["csv", "parquet"]
        if v.lower() not in allowed:
            raise ValueError(f"Output format must be one of: {allowed}")
        return v.lower()

    @field_validator("schema_strategy")
    @classmethod
    def validate_schema_strategy(cls, v: str) -> str:
        """Validate schema strategy"""
        allowed = ["union", "first"]
        if v.lower() not in allowed:
            raise ValueError(f"Schema strategy must be one of: {allowed}")
        return v.lower()

    @field_validator("bucket_bounds")
    @classmethod
    def validate_bucket_bounds(cls, v: List[int]) -> List[int]:
        """Bounds must be positive and strictly increasing"""
        if not v:
            raise ValueError("At least one bucket bound is required")
        if any(b <= 0 for b in v) or any(a >= b for a, b in zip(v, v[1:])):
            raise ValueError("Bucket bounds must be positive and strictly increasing")
        return v

    @property
    def date_columns(self) -> List[str]:
        """The three timestamp columns"""
        return [self.signup_column, self.first_purchase_column, self.last_purchase_column]

    @property
    def text_columns(self) -> List[str]:
        """Text-valued columns: identifier, timestamps, labels and payload"""
        return [
            self.user_id_column,
            *self.date_columns,
            self.country_column,
            self.device_column,
            self.payload_column,
        ]


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="text", alias="LOG_FORMAT", description="Log format: json or text")
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE", description="Log file path")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    # Subsystem configurations
    report: ReportSettings = Field(default_factory=ReportSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
