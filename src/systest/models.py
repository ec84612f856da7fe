"""Core data model for system-test scheduling.

RunIntent, RunResult and friends are Pydantic models so they validate on
construction and serialize with .model_dump() for reports. The trigger
event variants live in systest.trigger.events.

RunResult hierarchy of concerns:
    RunIntent          - what to run, derived from a TriggerEvent
    ResolvedTargetSet  - concrete ordered target labels for one run
    RunResult          - normalized outcome of one execution
    TierLink           - audit back-reference from a primary to its secondary run
    ArchiveOutcome     - best-effort archive report for one RunResult
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from systest.errors import ExecutionFailure, ExecutionTimeout

LABEL_PATTERN = re.compile(r"^//(?P<package>[A-Za-z0-9_./+-]*):(?P<name>[^:\s]+)$")


class RunStatus(str, Enum):
    """Three-valued status for a run and for each of its targets."""

    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timed_out"


class TagFilterProfile(BaseModel):
    """Named pair of include/exclude tag sets.

    Tags keep their configured order so the rendered filter expression is
    stable and matches what a human would write on the command line.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Profile name (e.g., 'base', 'hourly')")
    include: tuple[str, ...] = Field(default=(), description="Tags a target may carry")
    exclude: tuple[str, ...] = Field(default=(), description="Tags a target must not carry")

    @field_validator("include", "exclude")
    @classmethod
    def dedupe_tags(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Strip blanks and duplicates while preserving order."""
        seen: dict[str, None] = {}
        for tag in v:
            tag = tag.strip()
            if tag:
                seen.setdefault(tag, None)
        return tuple(seen)

    def to_expression(self) -> str:
        """Render as a Bazel --test_tag_filters expression."""
        return ",".join([*self.include, *(f"-{tag}" for tag in self.exclude)])


class RunIntent(BaseModel):
    """What to run for one trigger: selector, concurrency and filter profile."""

    model_config = ConfigDict(frozen=True)

    target_selector: str = Field(..., min_length=1, description="'all' or target expressions")
    concurrency: int = Field(..., ge=1, description="Concurrent runner jobs")
    filters: TagFilterProfile = Field(..., description="Tag filter profile for the primary tier")


class Target(BaseModel):
    """A registered, individually addressable test target."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(..., description="Fully qualified label, e.g. //rs/tests/nns:foo_test")
    tags: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        """Require the //package:name form."""
        v = v.strip()
        if not LABEL_PATTERN.match(v):
            raise ValueError(f"Invalid target label: {v!r} (expected //package:name)")
        return v

    @property
    def package(self) -> str:
        """Namespace of the target (text between '//' and ':')."""
        return self.label[2:].split(":", 1)[0]

    @property
    def name(self) -> str:
        """Target name within its package."""
        return self.label.split(":", 1)[1]


@dataclass(frozen=True)
class ResolvedTargetSet:
    """Ordered, duplicate-free sequence of target labels.

    An empty set is valid and produces a no-op run.
    """

    labels: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        """Reject duplicate labels."""
        if len(set(self.labels)) != len(self.labels):
            raise ValueError("ResolvedTargetSet cannot contain duplicate labels")

    def __iter__(self) -> Iterator[str]:
        return iter(self.labels)

    def __len__(self) -> int:
        return len(self.labels)

    def __contains__(self, label: object) -> bool:
        return label in self.labels

    def is_empty(self) -> bool:
        """Return True if there is nothing to run."""
        return not self.labels


class ArtifactHandle(BaseModel):
    """A file produced by a run (build-event log, profile, ...)."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="File name as uploaded")
    path: str = Field(..., description="Path on the local filesystem")


class RunResult(BaseModel):
    """Normalized outcome of one execution."""

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(..., description="Unique identifier of this run")
    tier: str = Field(..., description="Tier that produced this run")
    job_name: str = Field(default="", description="Job identity used for artifact naming")
    target_set: tuple[str, ...] = Field(default=(), description="Targets that were dispatched")
    status: RunStatus = Field(..., description="Overall status")
    per_target_status: dict[str, RunStatus] = Field(default_factory=dict)
    artifacts: list[ArtifactHandle] = Field(default_factory=list)
    exit_code: int | None = Field(default=None, description="Runner exit code, None if not run")
    duration_seconds: float = Field(default=0.0)
    started_at: str = Field(default="", description="ISO timestamp of start")
    ended_at: str = Field(default="", description="ISO timestamp of end")
    error_message: str | None = Field(default=None)

    def targets_with_status(self, status: RunStatus) -> list[str]:
        """Return labels whose status equals ``status``, in dispatch order."""
        return [label for label in self.target_set if self.per_target_status.get(label) == status]

    def raise_for_status(self) -> None:
        """Raise ExecutionTimeout or ExecutionFailure unless the run succeeded."""
        if self.status == RunStatus.TIMED_OUT:
            raise ExecutionTimeout(
                f"Run {self.run_id} exceeded its time budget "
                f"({len(self.targets_with_status(RunStatus.TIMED_OUT))} target(s) timed out)"
            )
        if self.status == RunStatus.FAILURE:
            failed = self.targets_with_status(RunStatus.FAILURE)
            detail = ", ".join(failed) if failed else self.error_message or f"exit code {self.exit_code}"
            raise ExecutionFailure(f"Run {self.run_id} failed: {detail}")


class TierLink(BaseModel):
    """Back-reference from a primary run to the secondary run it triggered."""

    model_config = ConfigDict(frozen=True)

    primary_run_id: str
    secondary_run_id: str


class ArchiveOutcome(BaseModel):
    """Best-effort archive report. A warning never affects the run status."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    archive_name: str
    stored: list[str] = Field(default_factory=list)
    warning: str | None = Field(default=None)

    @property
    def ok(self) -> bool:
        """Return True if no warning was raised while archiving."""
        return self.warning is None


class RunContext(BaseModel):
    """Job identity taken from the CI environment."""

    model_config = ConfigDict(frozen=True)

    run_id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    commit_sha: str = Field(default="")
    branch: str = Field(default="")
    job_url: str = Field(default="")
    pipeline_source: str = Field(default="")

    @classmethod
    def from_environment(cls, environ: Mapping[str, str]) -> RunContext:
        """Build a context from CI_* / GITHUB_* variables, missing ones defaulted."""
        data: dict[str, str] = {}
        run_id = environ.get("CI_RUN_ID") or environ.get("GITHUB_RUN_ID")
        if run_id:
            data["run_id"] = run_id
        data["commit_sha"] = environ.get("CI_COMMIT_SHA") or environ.get("GITHUB_SHA", "")
        data["branch"] = (
            environ.get("BRANCH_NAME")
            or environ.get("GITHUB_HEAD_REF")
            or environ.get("GITHUB_REF_NAME", "")
        )
        data["job_url"] = environ.get("CI_JOB_URL", "")
        data["pipeline_source"] = environ.get("CI_PIPELINE_SOURCE") or environ.get(
            "GITHUB_EVENT_NAME", ""
        )
        return cls(**data)

    def as_env(self) -> dict[str, str]:
        """Render as environment variables for the test runner."""
        env = {
            "CI_RUN_ID": self.run_id,
            "CI_COMMIT_SHA": self.commit_sha,
            "BRANCH_NAME": self.branch,
            "CI_JOB_URL": self.job_url,
            "CI_PIPELINE_SOURCE": self.pipeline_source,
        }
        return {key: value for key, value in env.items() if value}
