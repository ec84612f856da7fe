"""Tag filtering for test targets.

Semantics follow Bazel's --test_tag_filters: a target is kept iff it
carries none of the exclude tags and, when include tags are given, at
least one of them. Exclusion always wins over inclusion.
"""

from __future__ import annotations

from collections.abc import Iterable

from systest.models import TagFilterProfile, Target


def matches_filters(tags: Iterable[str], profile: TagFilterProfile) -> bool:
    """Return True if a target with ``tags`` passes ``profile``."""
    tag_set = set(tags)
    if tag_set.intersection(profile.exclude):
        return False
    if not profile.include:
        return True
    return bool(tag_set.intersection(profile.include))


def apply_filters(targets: Iterable[Target], profile: TagFilterProfile) -> list[Target]:
    """Keep targets that pass the profile, preserving input order."""
    return [target for target in targets if matches_filters(target.tags, profile)]


def parse_tag_filter_expression(name: str, expression: str) -> TagFilterProfile:
    """Parse a Bazel tag filter expression (``k8s,-manual``) into a profile.

    Args:
        name: Name for the resulting profile.
        expression: Comma-separated tags; a leading '-' marks an exclude tag.

    Returns:
        TagFilterProfile with tags in expression order.

    """
    include: list[str] = []
    exclude: list[str] = []
    for raw in expression.split(","):
        tag = raw.strip()
        if not tag:
            continue
        if tag.startswith("-"):
            exclude.append(tag[1:].strip())
        else:
            include.append(tag.lstrip("+").strip())
    return TagFilterProfile(name=name, include=tuple(include), exclude=tuple(exclude))
