"""Target universe, tag filtering and selector resolution."""

from systest.targets.filters import apply_filters, matches_filters, parse_tag_filter_expression
from systest.targets.registry import TargetManifest, TargetRegistry
from systest.targets.resolver import PartitionConflict, TargetResolver, find_partition_conflicts

__all__ = [
    "PartitionConflict",
    "TargetManifest",
    "TargetRegistry",
    "TargetResolver",
    "apply_filters",
    "find_partition_conflicts",
    "matches_filters",
    "parse_tag_filter_expression",
]
