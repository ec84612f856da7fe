"""Pydantic models for systest configuration.

This module defines the configuration schema for the trigger policy, the
tier definitions (job name, timeout, tag filters), the test runner, the
artifact archive and credentials. Every default reproduces the observed
CI workflow, so an empty systest.yaml is a valid configuration.
"""

from pydantic import BaseModel, Field, field_validator

from systest.config import constants
from systest.errors import ConfigurationError
from systest.models import TagFilterProfile

__all__ = [
    "ArchiveSettings",
    "ConfigurationError",
    "CredentialSettings",
    "LoggingConfig",
    "RunnerSettings",
    "SystestConfig",
    "TierSettings",
    "TriggerPolicy",
    "TriggerSettings",
]


# -----------------------------------------------------------------------------
# Trigger Configuration
# -----------------------------------------------------------------------------


class TriggerPolicy(BaseModel):
    """Literal fallback values used by the trigger classifier."""

    default_target: str = Field(default=constants.DEFAULT_TARGET)
    scheduled_selector: str = Field(default=constants.ALL_TARGETS_SELECTOR)
    scheduled_concurrency: int = Field(default=constants.SCHEDULED_CONCURRENCY, ge=1)
    default_concurrency: int = Field(default=constants.DEFAULT_CONCURRENCY, ge=1)

    @field_validator("default_target", "scheduled_selector")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        """Selectors cannot be empty."""
        if not v or not v.strip():
            raise ValueError("Selector cannot be empty")
        return v.strip()


class TriggerSettings(BaseModel):
    """Invocation surface settings."""

    # Empty means every repository change triggers a run.
    watched_paths: list[str] = Field(default_factory=list)


# -----------------------------------------------------------------------------
# Tier Configuration
# -----------------------------------------------------------------------------


class TierSettings(BaseModel):
    """Configuration for one test tier."""

    job_name: str = Field(..., description="Job identity, used for artifact naming")
    timeout_minutes: int = Field(..., ge=1, le=24 * 60)
    include: list[str] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)

    def profile(self, name: str) -> TagFilterProfile:
        """Build the tag filter profile for this tier."""
        return TagFilterProfile(name=name, include=tuple(self.include), exclude=tuple(self.exclude))

    @property
    def timeout_seconds(self) -> float:
        """Wall-clock budget in seconds."""
        return self.timeout_minutes * 60.0


def _default_base_tier() -> TierSettings:
    return TierSettings(
        job_name=constants.BASE_JOB_NAME,
        timeout_minutes=constants.PRIMARY_TIMEOUT_MINUTES,
        include=list(constants.BASE_INCLUDE_TAGS),
        exclude=list(constants.BASE_EXCLUDE_TAGS),
    )


def _default_hourly_tier() -> TierSettings:
    return TierSettings(
        job_name=constants.HOURLY_JOB_NAME,
        timeout_minutes=constants.SECONDARY_TIMEOUT_MINUTES,
        include=list(constants.HOURLY_INCLUDE_TAGS),
        exclude=list(constants.HOURLY_EXCLUDE_TAGS),
    )


# -----------------------------------------------------------------------------
# Collaborator Configuration
# -----------------------------------------------------------------------------


class RunnerSettings(BaseModel):
    """Bazel test runner settings."""

    bazel_binary: str = Field(default="bazel")
    command: str = Field(default="test")
    ci_config: list[str] = Field(
        default_factory=lambda: ["--config=ci", "--repository_cache=/cache/bazel"]
    )
    extra_flags: list[str] = Field(default_factory=lambda: ["--k8s"])
    bep_file: str = Field(default="bazel-bep.pb")
    profile_file: str = Field(default="profile.json")
    workspace: str = Field(default=".", description="Directory the runner is invoked from")


class ArchiveSettings(BaseModel):
    """Artifact archive settings."""

    root: str = Field(default="artifacts")
    retention_days: int = Field(default=constants.ARTIFACT_RETENTION_DAYS, ge=1, le=400)
    suffix: str = Field(default=constants.ARTIFACT_SUFFIX)
    # Off by default: repeated runs of one job overwrite the same archive.
    qualify_with_run_id: bool = Field(default=False)


class CredentialSettings(BaseModel):
    """Environment variables the runner needs before execution."""

    required: list[str] = Field(
        default_factory=lambda: [
            "TNET_KUBECONFIG",
            "DOCKER_HUB_USER",
            "DOCKER_HUB_PASSWORD_RO",
        ]
    )
    optional: list[str] = Field(
        default_factory=lambda: [
            "AWS_SHARED_CREDENTIALS_FILE",
            "BUILDEVENT_APIKEY",
            "BUILDEVENT_DATASET",
        ]
    )
    kubeconfig_var: str = Field(default="TNET_KUBECONFIG")
    enforce: bool = Field(default=True, description="Fail fast when required vars are missing")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO")
    format: str = Field(default="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    datefmt: str = Field(default="%Y-%m-%d %H:%M:%S")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Normalize and validate the level name."""
        v = v.upper().strip()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return v


# -----------------------------------------------------------------------------
# Merged Runtime Configuration
# -----------------------------------------------------------------------------


class SystestConfig(BaseModel):
    """Complete merged configuration.

    Built from built-in defaults overlaid with systest.yaml (if present).
    """

    policy: TriggerPolicy = Field(default_factory=TriggerPolicy)
    trigger: TriggerSettings = Field(default_factory=TriggerSettings)
    base: TierSettings = Field(default_factory=_default_base_tier)
    hourly: TierSettings = Field(default_factory=_default_hourly_tier)
    runner: RunnerSettings = Field(default_factory=RunnerSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def base_profile(self) -> TagFilterProfile:
        """Filter profile of the primary tier."""
        return self.base.profile(constants.BASE_TIER)

    def hourly_profile(self) -> TagFilterProfile:
        """Filter profile of the chained secondary tier."""
        return self.hourly.profile(constants.HOURLY_TIER)

    def profile(self, name: str) -> TagFilterProfile:
        """Look up a tier profile by name.

        Raises:
            ConfigurationError: If the profile name is unknown.

        """
        if name == constants.BASE_TIER:
            return self.base_profile()
        if name == constants.HOURLY_TIER:
            return self.hourly_profile()
        raise ConfigurationError(
            f"Unknown filter profile: {name}. Available: "
            f"{[constants.BASE_TIER, constants.HOURLY_TIER]}"
        )
