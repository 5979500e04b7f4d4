"""System settings - process-wide key/value configuration."""

from qa_tracker.system_settings.service import (
    DEFAULT_SETTINGS,
    DISPUTE_TIME_LIMIT_DAYS,
    PASSING_SCORE_PERCENTAGE,
    PROTECTED_KEYS,
    Setting,
    SystemSettingsService,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "DISPUTE_TIME_LIMIT_DAYS",
    "PASSING_SCORE_PERCENTAGE",
    "PROTECTED_KEYS",
    "Setting",
    "SystemSettingsService",
]
