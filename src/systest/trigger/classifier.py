"""Trigger classification: map an event to a RunIntent.

Every trigger's policy is in classify(); there is no other place that
branches on the event kind to pick targets or concurrency.
"""

from __future__ import annotations

import logging

from systest.config.models import SystestConfig, TriggerPolicy
from systest.models import RunIntent, TagFilterProfile
from systest.trigger.events import ManualRequest, RepositoryChange, Scheduled

logger = logging.getLogger(__name__)


def parse_jobs(raw: str | None, fallback: int) -> int:
    """Parse a job count string, falling back on anything but a positive integer.

    Args:
        raw: Raw value from the invocation surface (may be None or junk).
        fallback: Value to use when ``raw`` is not a positive integer.

    Returns:
        A concurrency value >= 1.

    """
    if raw is None:
        return fallback
    text = raw.strip()
    if not text:
        return fallback
    try:
        value = int(text, 10)
    except ValueError:
        logger.warning(f"Ignoring non-numeric job count {raw!r}, using {fallback}")
        return fallback
    if value < 1:
        logger.warning(f"Ignoring non-positive job count {value}, using {fallback}")
        return fallback
    return value


def classify(
    event: Scheduled | ManualRequest | RepositoryChange,
    config: SystestConfig | None = None,
) -> RunIntent:
    """Derive the RunIntent for a trigger event.

    Total: every event variant has a mapping, malformed manual fields fall
    back to the policy defaults.

    | Event            | target_selector                 | concurrency               |
    |------------------|---------------------------------|---------------------------|
    | Scheduled        | "all"                           | 20                        |
    | ManualRequest    | targets, else default target    | jobs if valid, else 32    |
    | RepositoryChange | default target                  | 32                        |

    Args:
        event: The trigger event.
        config: Configuration supplying the policy and base filter profile.

    Returns:
        RunIntent carrying the base filter profile.

    """
    config = config or SystestConfig()
    policy: TriggerPolicy = config.policy
    filters: TagFilterProfile = config.base_profile()

    if isinstance(event, Scheduled):
        selector = policy.scheduled_selector
        concurrency = policy.scheduled_concurrency
    elif isinstance(event, ManualRequest):
        selector = event.targets.strip() or policy.default_target
        concurrency = parse_jobs(event.jobs, policy.default_concurrency)
    elif isinstance(event, RepositoryChange):
        selector = policy.default_target
        concurrency = policy.default_concurrency
    else:
        raise TypeError(f"Unsupported trigger event: {type(event).__name__}")

    intent = RunIntent(target_selector=selector, concurrency=concurrency, filters=filters)
    logger.debug(f"Classified {event.kind} -> {selector!r} with {concurrency} jobs")
    return intent
