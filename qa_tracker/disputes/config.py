"""Dispute engine configuration.

All settings can be overridden via ``DISPUTES_*`` environment variables.
The ``dispute_time_limit_days`` system setting, when present, takes
precedence over ``default_time_limit_days``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DisputeConfig(BaseSettings):
    """Configuration for the dispute engine."""

    model_config = SettingsConfigDict(
        env_prefix="DISPUTES_",
        case_sensitive=False,
        extra="ignore",
    )

    default_time_limit_days: int = Field(
        default=7,
        ge=0,
        le=365,
        description="Days after the evaluation date during which a dispute may be filed",
    )
    max_reason_length: int = Field(
        default=200,
        ge=1,
        description="Maximum length of the dispute reason",
    )
    max_details_length: int = Field(
        default=5000,
        ge=0,
        description="Maximum length of details, evidence and review notes",
    )
