"""Target resolution: expand a selector into a ResolvedTargetSet.

Supported target expressions (whitespace separated):
    all, //...            every registered target
    //pkg/...             every target in pkg and below
    //pkg:all, //pkg:*    every target directly in pkg
    //pkg:name            a single target
    //pkg                 shorthand for //pkg:<last path component>
    -<expression>         subtract the targets matched by <expression>

Resolution fails only when the selector references no registered
namespace at all. Zero targets after filtering is a valid no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from systest.config.constants import ALL_TARGETS_SELECTOR
from systest.errors import ResolutionError
from systest.models import ResolvedTargetSet, TagFilterProfile, Target
from systest.targets.filters import apply_filters, matches_filters
from systest.targets.registry import TargetRegistry

logger = logging.getLogger(__name__)

_WILDCARD_NAMES = frozenset({"all", "*", "all-targets"})
_ALL_EXPRESSIONS = frozenset({ALL_TARGETS_SELECTOR, "//..."})


@dataclass(frozen=True)
class _Expansion:
    """Targets matched by one expression and whether its namespace is registered."""

    targets: list[Target]
    known_namespace: bool


def split_selector(selector: str) -> list[str]:
    """Split a selector into its target expressions."""
    return selector.split()


class TargetResolver:
    """Expands selectors against a TargetRegistry and applies tag filters.

    Example:
        resolver = TargetResolver(registry)
        targets = resolver.resolve("//rs/tests/nns/...", config.base_profile())

    """

    def __init__(self, registry: TargetRegistry) -> None:
        """Initialize the resolver.

        Args:
            registry: Universe of registered targets.

        """
        self.registry = registry

    def _expand(self, expression: str) -> _Expansion:
        """Expand a single (positive) target expression."""
        if expression in _ALL_EXPRESSIONS:
            return _Expansion(self.registry.all(), bool(len(self.registry)))

        if not expression.startswith("//"):
            logger.warning(f"Ignoring malformed target expression {expression!r}")
            return _Expansion([], False)

        body = expression[2:]
        if body.endswith("/..."):
            prefix = body[: -len("/...")]
            return _Expansion(self.registry.under(prefix), self.registry.has_package_under(prefix))

        if ":" in body:
            package, name = body.split(":", 1)
        else:
            package, name = body, body.rsplit("/", 1)[-1]

        if not self.registry.has_package(package):
            return _Expansion([], False)

        if name in _WILDCARD_NAMES:
            return _Expansion(self.registry.in_package(package), True)

        target = self.registry.get(f"//{package}:{name}")
        if target is None:
            logger.warning(f"Target //{package}:{name} is not registered")
            return _Expansion([], True)
        return _Expansion([target], True)

    def expand(self, selector: str) -> list[Target]:
        """Expand a selector into registered targets without tag filtering.

        Args:
            selector: "all" or whitespace-separated target expressions.

        Returns:
            Unique targets in order of first appearance.

        Raises:
            ResolutionError: If no expression references a registered namespace.

        """
        expressions = split_selector(selector)
        if not expressions:
            raise ResolutionError("Empty target selector")

        selected: dict[str, Target] = {}
        subtracted: set[str] = set()
        referenced = False

        for expression in expressions:
            negative = expression.startswith("-")
            expansion = self._expand(expression[1:] if negative else expression)
            if not expansion.known_namespace:
                if not negative:
                    logger.warning(f"Target expression {expression!r} matches no registered namespace")
                continue
            if negative:
                subtracted.update(t.label for t in expansion.targets)
                continue
            referenced = True
            for target in expansion.targets:
                selected.setdefault(target.label, target)

        if not referenced:
            raise ResolutionError(
                f"Selector {selector!r} references no registered target namespace"
            )

        return [t for label, t in selected.items() if label not in subtracted]

    def resolve(self, selector: str, filters: TagFilterProfile) -> ResolvedTargetSet:
        """Expand a selector and apply a tag filter profile.

        Args:
            selector: "all" or whitespace-separated target expressions.
            filters: Include/exclude profile; exclude tags win.

        Returns:
            ResolvedTargetSet, possibly empty.

        Raises:
            ResolutionError: If the selector references no registered namespace.

        """
        expanded = self.expand(selector)
        kept = apply_filters(expanded, filters)
        logger.info(
            f"Resolved {selector!r} with profile '{filters.name}': "
            f"{len(kept)} of {len(expanded)} target(s) selected"
        )
        return ResolvedTargetSet(tuple(t.label for t in kept))


@dataclass(frozen=True)
class PartitionConflict:
    """A target whose tier-marker tags overlap.

    Attributes:
        label: Target label.
        markers: Tier-marker tags the target carries.
        selected_by: Names of the profiles that select the target.

    """

    label: str
    markers: tuple[str, ...]
    selected_by: tuple[str, ...]


def find_partition_conflicts(
    targets: Iterable[Target],
    profiles: Iterable[TagFilterProfile],
    marker_tags: Iterable[str] = ("system_test_hourly", "system_test_nightly"),
) -> list[PartitionConflict]:
    """Find targets tagged with more than one tier marker.

    Tiers are meant to partition the tag space by marker tag. A target
    carrying several markers silently falls into both tiers or neither,
    depending on which exclude tags the profiles list.

    Args:
        targets: Targets to audit.
        profiles: Tier filter profiles.
        marker_tags: Tags that assign a target to a tier.

    Returns:
        One conflict per offending target, in input order.

    """
    profiles = list(profiles)
    markers = tuple(marker_tags)
    conflicts: list[PartitionConflict] = []
    for target in targets:
        carried = tuple(tag for tag in markers if tag in target.tags)
        if len(carried) < 2:
            continue
        selected_by = tuple(p.name for p in profiles if matches_filters(target.tags, p))
        conflicts.append(PartitionConflict(target.label, carried, selected_by))
    return conflicts
