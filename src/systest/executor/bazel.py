"""Bazel test runner invocation and output capture.

This module provides the TargetRunner protocol consumed by the RunExecutor
and BazelRunner, its subprocess-based implementation. The runner is a thin
collaborator: it builds the command line, enforces the process timeout,
parses the test summary into raw per-target statuses and reports which
build-event artifacts were written. Status normalization and the timeout
ceiling policy belong to the RunExecutor.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from systest.config.models import RunnerSettings
from systest.errors import RunnerError

logger = logging.getLogger(__name__)

# //pkg:name   (cached) PASSED in 1.2s
# //pkg:name   FAILED in 3 out of 3 in 10.0s
# //pkg:name   FLAKY, failed in 1 out of 2 in 3.4s
_SUMMARY_LINE = re.compile(
    r"^\s*(?P<label>//\S+)\s+(?:\(cached\)\s+)?"
    r"(?P<status>FAILED TO BUILD|REMOTE FAILURE|NO STATUS|PASSED|FAILED|FLAKY|TIMEOUT|SKIPPED|INCOMPLETE)\b"
)


@dataclass
class RunnerInvocation:
    """Everything the external runner needs for one execution.

    Attributes:
        targets: Target labels to run, in order.
        concurrency: Concurrent jobs budget handed to the runner.
        tag_filter_expression: Rendered --test_tag_filters value.
        extra_flags: Additional runner flags.
        timeout_seconds: Wall-clock ceiling for the whole invocation.
        env: Extra environment variables (credentials, CI context).

    """

    targets: list[str]
    concurrency: int
    tag_filter_expression: str
    extra_flags: list[str] = field(default_factory=list)
    timeout_seconds: float = 7200.0
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class RunnerOutcome:
    """Raw result of a runner invocation.

    Attributes:
        exit_code: Process exit code (-1 if killed on timeout).
        timed_out: Whether the runner was killed because of the timeout.
        target_statuses: Raw status strings by label as reported by the runner.
        artifacts: Build-event artifact files written by this run.
        stdout: Captured standard output.
        stderr: Captured standard error.

    """

    exit_code: int
    timed_out: bool = False
    target_statuses: dict[str, str] = field(default_factory=dict)
    artifacts: list[Path] = field(default_factory=list)
    stdout: str = ""
    stderr: str = ""


class TargetRunner(Protocol):
    """External test runner contract."""

    def run(self, invocation: RunnerInvocation) -> RunnerOutcome:
        """Run the invocation and return its raw outcome."""
        ...


def parse_test_summary(output: str) -> dict[str, str]:
    """Parse Bazel test summary lines into raw statuses by label.

    Later lines win when a label is reported more than once.

    Args:
        output: Combined runner output.

    Returns:
        Mapping of label to raw status (e.g. "PASSED", "FAILED TO BUILD").

    """
    statuses: dict[str, str] = {}
    for line in output.splitlines():
        match = _SUMMARY_LINE.match(line)
        if match:
            statuses[match.group("label")] = match.group("status")
    return statuses


def _decode(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


class BazelRunner:
    """Runs ``bazel test`` as a subprocess.

    Example:
        >>> runner = BazelRunner(RunnerSettings())
        >>> outcome = runner.run(RunnerInvocation(
        ...     targets=["//rs/tests/nns:node_removal_from_registry_test"],
        ...     concurrency=32,
        ...     tag_filter_expression="k8s,-manual",
        ... ))
        >>> print(outcome.exit_code)

    """

    def __init__(self, settings: RunnerSettings | None = None) -> None:
        """Initialize the runner.

        Args:
            settings: Runner settings (uses defaults if not provided).

        """
        self.settings = settings or RunnerSettings()
        self.workspace = Path(self.settings.workspace)

    def build_command(self, invocation: RunnerInvocation) -> list[str]:
        """Build the bazel command line for an invocation."""
        cmd = [self.settings.bazel_binary, self.settings.command]
        cmd.extend(self.settings.ci_config)
        cmd.append(f"--jobs={invocation.concurrency}")
        cmd.append(f"--test_tag_filters={invocation.tag_filter_expression}")
        cmd.extend(self.settings.extra_flags)
        cmd.extend(invocation.extra_flags)
        cmd.append(f"--build_event_binary_file={self.settings.bep_file}")
        cmd.append(f"--profile={self.settings.profile_file}")
        cmd.append("--")
        cmd.extend(invocation.targets)
        return cmd

    def _artifact_paths(self) -> list[Path]:
        return [
            self.workspace / self.settings.bep_file,
            self.workspace / self.settings.profile_file,
        ]

    def _artifact_mtimes(self) -> dict[Path, int]:
        return {p: p.stat().st_mtime_ns for p in self._artifact_paths() if p.exists()}

    def _collect_artifacts(self, before: dict[Path, int]) -> list[Path]:
        """Return artifacts written or rewritten since ``before`` was taken."""
        return [
            p
            for p in self._artifact_paths()
            if p.exists() and before.get(p) != p.stat().st_mtime_ns
        ]

    def run(self, invocation: RunnerInvocation) -> RunnerOutcome:
        """Run bazel for the invocation.

        Returns:
            RunnerOutcome; on timeout the process is killed and
            ``timed_out`` is set with whatever output was captured.

        Raises:
            RunnerError: If bazel cannot be started.

        """
        cmd = self.build_command(invocation)
        env = {**os.environ, **invocation.env}
        logger.info(f"Running: {' '.join(cmd[:6])} ... ({len(invocation.targets)} target(s))")
        logger.debug(f"Full command: {cmd}")
        before = self._artifact_mtimes()

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=invocation.timeout_seconds,
                cwd=self.workspace,
                env=env,
            )
        except subprocess.TimeoutExpired as e:
            stdout = _decode(e.stdout)
            stderr = _decode(e.stderr)
            return RunnerOutcome(
                exit_code=-1,
                timed_out=True,
                target_statuses=parse_test_summary(stdout + "\n" + stderr),
                artifacts=self._collect_artifacts(before),
                stdout=stdout,
                stderr=stderr,
            )
        except FileNotFoundError as e:
            raise RunnerError(f"Runner binary not found: {self.settings.bazel_binary}") from e
        except (OSError, subprocess.SubprocessError) as e:
            raise RunnerError(f"Failed to run bazel: {e}") from e

        return RunnerOutcome(
            exit_code=result.returncode,
            timed_out=False,
            target_statuses=parse_test_summary(result.stdout + "\n" + result.stderr),
            artifacts=self._collect_artifacts(before),
            stdout=result.stdout,
            stderr=result.stderr,
        )
