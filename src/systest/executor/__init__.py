"""Executor module for running resolved test targets.

This module provides the Bazel runner collaborator, the environment
credentials provider and the RunExecutor that normalizes runner outcomes.
"""

from systest.executor.bazel import (
    BazelRunner,
    RunnerInvocation,
    RunnerOutcome,
    TargetRunner,
    parse_test_summary,
)
from systest.executor.credentials import EnvironmentCredentials
from systest.executor.run_executor import (
    RunExecutor,
    normalize_target_status,
    summarize_status,
)

__all__ = [
    # Runner
    "BazelRunner",
    "RunnerInvocation",
    "RunnerOutcome",
    "TargetRunner",
    "parse_test_summary",
    # Credentials
    "EnvironmentCredentials",
    # Executor
    "RunExecutor",
    "normalize_target_status",
    "summarize_status",
]
