"""Configuration loading system for systest.

This module provides Pydantic models and a ConfigLoader for parsing the
optional systest.yaml and merging it over built-in defaults.

Example:
    from systest.config import ConfigLoader

    config = ConfigLoader().load()
    profile = config.base_profile()

"""

from .constants import (
    ALL_TARGETS_SELECTOR,
    BASE_TIER,
    DEFAULT_CONCURRENCY,
    DEFAULT_TARGET,
    HOURLY_TIER,
    SCHEDULED_CONCURRENCY,
)
from .loader import ConfigLoader
from .models import (
    ArchiveSettings,
    ConfigurationError,
    CredentialSettings,
    LoggingConfig,
    RunnerSettings,
    SystestConfig,
    TierSettings,
    TriggerPolicy,
    TriggerSettings,
)

__all__ = [
    "ALL_TARGETS_SELECTOR",
    "BASE_TIER",
    "DEFAULT_CONCURRENCY",
    "DEFAULT_TARGET",
    "HOURLY_TIER",
    "SCHEDULED_CONCURRENCY",
    "ArchiveSettings",
    "ConfigLoader",
    "ConfigurationError",
    "CredentialSettings",
    "LoggingConfig",
    "RunnerSettings",
    "SystestConfig",
    "TierSettings",
    "TriggerPolicy",
    "TriggerSettings",
]
