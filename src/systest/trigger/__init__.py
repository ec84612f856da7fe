"""Trigger events and their classification into run intents."""

from systest.trigger.classifier import classify, parse_jobs
from systest.trigger.events import (
    ManualRequest,
    RepositoryChange,
    Scheduled,
    TriggerEvent,
    event_from_environment,
    event_from_source,
    parse_event,
)

__all__ = [
    "ManualRequest",
    "RepositoryChange",
    "Scheduled",
    "TriggerEvent",
    "classify",
    "event_from_environment",
    "event_from_source",
    "parse_event",
    "parse_jobs",
]
