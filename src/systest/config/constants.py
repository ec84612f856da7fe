"""Shared constants for systest configuration.

This module is the single source of truth for the literal defaults of the
trigger policy, tier filter profiles, timeouts and artifact retention.
Import from here rather than hardcoding values at call sites.
"""

DEFAULT_TARGET: str = "//rs/tests/nns:node_removal_from_registry_test"
ALL_TARGETS_SELECTOR: str = "all"

SCHEDULED_CONCURRENCY: int = 20
DEFAULT_CONCURRENCY: int = 32

BASE_TIER: str = "base"
HOURLY_TIER: str = "hourly"

BASE_JOB_NAME: str = "system-tests-k8s"
HOURLY_JOB_NAME: str = "system-tests-k8s-hourly"

BASE_INCLUDE_TAGS: tuple[str, ...] = ("k8s",)
BASE_EXCLUDE_TAGS: tuple[str, ...] = (
    "manual",
    "colocated",
    "system_test_hourly",
    "system_test_nightly",
)
HOURLY_INCLUDE_TAGS: tuple[str, ...] = ("k8s", "system_test_hourly")
HOURLY_EXCLUDE_TAGS: tuple[str, ...] = ("manual", "colocated", "system_test_nightly")

PRIMARY_TIMEOUT_MINUTES: int = 120
SECONDARY_TIMEOUT_MINUTES: int = 150

ARTIFACT_RETENTION_DAYS: int = 14
ARTIFACT_SUFFIX: str = "bep"
