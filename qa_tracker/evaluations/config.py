"""Evaluation engine configuration.

Controls limits on evaluation input and the default notification
behaviour. All settings can be overridden via ``EVALUATIONS_*``
environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class EvaluationConfig(BaseSettings):
    """Configuration for the evaluation engine."""

    model_config = SettingsConfigDict(
        env_prefix="EVALUATIONS_",
        case_sensitive=False,
        extra="ignore",
    )

    max_answers: int = Field(
        default=200,
        ge=1,
        le=1000,
        description="Maximum number of answers accepted per evaluation",
    )
    max_text_length: int = Field(
        default=5000,
        ge=0,
        le=50000,
        description="Maximum length of strengths, improvement areas and comments",
    )
    notify_on_create: bool = Field(
        default=True,
        description="Notify the agent and their manager when an evaluation is created",
    )
