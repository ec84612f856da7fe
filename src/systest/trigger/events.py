"""Trigger events that start a system-test pipeline.

Three variants, discriminated by ``kind``:
    Scheduled         - nightly timer
    ManualRequest     - operator dispatch with optional targets/jobs strings
    RepositoryChange  - code change touching watched paths

Events are immutable and carry the raw strings of the invocation surface;
validation of those strings belongs to the classifier.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable, Mapping
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

SCHEDULE_SOURCE = "schedule"
MANUAL_SOURCE = "workflow_dispatch"


class Scheduled(BaseModel):
    """Timer-driven run of the full suite."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["scheduled"] = "scheduled"


class ManualRequest(BaseModel):
    """Operator-requested run."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["manual"] = "manual"
    targets: str = Field(default="", description="Raw target selector, may be empty")
    jobs: str = Field(default="", description="Raw job count, may be non-numeric")

    @field_validator("targets", "jobs", mode="before")
    @classmethod
    def coerce_missing(cls, v: object) -> str:
        """Treat None as an empty string and stringify numbers."""
        if v is None:
            return ""
        return str(v)


class RepositoryChange(BaseModel):
    """Run triggered by a change to the repository."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["repository_change"] = "repository_change"
    changed_paths: tuple[str, ...] = Field(default=())

    def touches(self, patterns: Iterable[str]) -> bool:
        """Return True if any changed path matches one of the glob patterns."""
        patterns = list(patterns)
        return any(
            fnmatch.fnmatch(path, pattern) for path in self.changed_paths for pattern in patterns
        )


TriggerEvent = Annotated[
    Union[Scheduled, ManualRequest, RepositoryChange],
    Field(discriminator="kind"),
]

_EVENT_ADAPTER: TypeAdapter[Scheduled | ManualRequest | RepositoryChange] = TypeAdapter(
    TriggerEvent
)


def parse_event(data: Mapping[str, object]) -> Scheduled | ManualRequest | RepositoryChange:
    """Validate a mapping (e.g. decoded JSON) into a trigger event."""
    return _EVENT_ADAPTER.validate_python(dict(data))


def event_from_source(
    source: str,
    targets: str | None = None,
    jobs: str | None = None,
    changed_paths: Iterable[str] = (),
) -> Scheduled | ManualRequest | RepositoryChange:
    """Map a CI event name to a trigger event.

    ``schedule`` and ``workflow_dispatch`` map to their variants; every other
    source (pull_request, push, ...) is a repository change.
    """
    source = source.strip().lower()
    if source == SCHEDULE_SOURCE:
        return Scheduled()
    if source == MANUAL_SOURCE:
        return ManualRequest(targets=targets or "", jobs=jobs or "")
    return RepositoryChange(changed_paths=tuple(p for p in changed_paths if p.strip()))


def event_from_environment(
    environ: Mapping[str, str],
) -> Scheduled | ManualRequest | RepositoryChange:
    """Build the trigger event from CI environment variables.

    Reads CI_PIPELINE_SOURCE (falling back to GITHUB_EVENT_NAME),
    SYSTEST_TARGETS, SYSTEST_JOBS and SYSTEST_CHANGED_PATHS (one path per line).
    """
    source = environ.get("CI_PIPELINE_SOURCE") or environ.get("GITHUB_EVENT_NAME", "")
    changed = environ.get("SYSTEST_CHANGED_PATHS", "").splitlines()
    return event_from_source(
        source,
        targets=environ.get("SYSTEST_TARGETS"),
        jobs=environ.get("SYSTEST_JOBS"),
        changed_paths=[p.strip() for p in changed],
    )
