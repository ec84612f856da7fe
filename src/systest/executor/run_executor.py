"""Run execution: invoke the test runner and normalize its outcome.

The RunExecutor imposes the wall-clock ceiling, captures per-target
status and folds heterogeneous runner outcomes into the three-valued
RunStatus. It never retries; retry policy, if any, lives in the runner.
"""

from __future__ import annotations

import contextlib
import logging
import time
import uuid
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta, timezone

from systest.errors import RunnerError
from systest.executor.bazel import RunnerInvocation, RunnerOutcome, TargetRunner
from systest.executor.credentials import EnvironmentCredentials
from systest.models import ArtifactHandle, ResolvedTargetSet, RunResult, RunStatus, TagFilterProfile

logger = logging.getLogger(__name__)

# Raw runner status -> normalized status. Missing/NO STATUS means pending.
_RAW_STATUS_MAP: dict[str, RunStatus] = {
    "PASSED": RunStatus.SUCCESS,
    "FLAKY": RunStatus.SUCCESS,
    "CACHED": RunStatus.SUCCESS,
    "FAILED": RunStatus.FAILURE,
    "FAILED TO BUILD": RunStatus.FAILURE,
    "REMOTE FAILURE": RunStatus.FAILURE,
    "INCOMPLETE": RunStatus.FAILURE,
    "SKIPPED": RunStatus.FAILURE,
    "TIMEOUT": RunStatus.TIMED_OUT,
}

ResultListener = Callable[[RunResult], None]


def normalize_target_status(raw: str | None) -> RunStatus | None:
    """Map a raw runner status to RunStatus, or None if the target is still pending."""
    if raw is None:
        return None
    return _RAW_STATUS_MAP.get(raw.strip().upper())


def summarize_status(
    per_target: Mapping[str, RunStatus], exit_code: int | None, timed_out: bool
) -> RunStatus:
    """Fold per-target statuses and the exit code into the run status.

    TIMED_OUT only when the ceiling fired. Otherwise SUCCESS requires a zero
    exit code and every target succeeding.
    """
    if timed_out:
        return RunStatus.TIMED_OUT
    if exit_code not in (0, None):
        return RunStatus.FAILURE
    if any(status != RunStatus.SUCCESS for status in per_target.values()):
        return RunStatus.FAILURE
    return RunStatus.SUCCESS


class RunExecutor:
    """Executes a resolved target set through a TargetRunner.

    Example:
        >>> executor = RunExecutor(BazelRunner(config.runner))
        >>> result = executor.execute(targets, 32, config.base_profile(), timedelta(minutes=120))
        >>> print(result.status)

    """

    def __init__(
        self,
        runner: TargetRunner,
        credentials: EnvironmentCredentials | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the executor.

        Args:
            runner: External test runner.
            credentials: Provider for runner credentials (none if not provided).
            clock: Monotonic clock used to measure the wall-clock budget.

        """
        self.runner = runner
        self.credentials = credentials
        self._clock = clock
        self._listeners: list[ResultListener] = []

    def add_listener(self, listener: ResultListener) -> None:
        """Register a callback that receives every RunResult."""
        self._listeners.append(listener)

    def _emit(self, result: RunResult) -> RunResult:
        for listener in self._listeners:
            listener(result)
        return result

    def execute(
        self,
        targets: ResolvedTargetSet,
        concurrency: int,
        filters: TagFilterProfile,
        timeout: timedelta,
        tier: str = "",
        job_name: str = "",
        run_id: str | None = None,
        extra_flags: list[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> RunResult:
        """Run the targets and return the normalized result.

        Args:
            targets: Resolved targets; an empty set is a successful no-op.
            concurrency: Concurrent jobs budget (>= 1).
            filters: Tag filter profile rendered for the runner.
            timeout: Wall-clock ceiling for the whole run.
            tier: Tier name recorded on the result.
            job_name: Job identity recorded on the result.
            run_id: Run identifier (generated if not provided).
            extra_flags: Additional runner flags.
            env: Extra environment for the runner (CI context).

        Returns:
            RunResult with status, per-target status and artifacts.

        Raises:
            ValueError: If concurrency is below 1.
            CredentialError: If required credentials are missing.

        """
        if concurrency < 1:
            raise ValueError(f"Concurrency must be >= 1, got {concurrency}")

        run_id = run_id or uuid.uuid4().hex[:12]
        started_at = datetime.now(timezone.utc)

        if targets.is_empty():
            logger.info(f"[{tier or run_id}] No targets selected, nothing to run")
            return self._emit(
                RunResult(
                    run_id=run_id,
                    tier=tier,
                    job_name=job_name,
                    status=RunStatus.SUCCESS,
                    started_at=started_at.isoformat(),
                    ended_at=started_at.isoformat(),
                )
            )

        invocation = RunnerInvocation(
            targets=list(targets),
            concurrency=concurrency,
            tag_filter_expression=filters.to_expression(),
            extra_flags=list(extra_flags or []),
            timeout_seconds=timeout.total_seconds(),
            env=dict(env or {}),
        )

        logger.info(
            f"[{tier or run_id}] Executing {len(targets)} target(s) with {concurrency} jobs "
            f"(timeout {timeout}, filters {invocation.tag_filter_expression})"
        )

        t0 = self._clock()
        outcome: RunnerOutcome | None = None
        error_message: str | None = None
        with self._runner_environment() as credential_env:
            invocation.env.update(credential_env)
            try:
                outcome = self.runner.run(invocation)
            except RunnerError as e:
                logger.error(f"[{tier or run_id}] Runner failed: {e}")
                error_message = str(e)
        elapsed = self._clock() - t0
        ended_at = datetime.now(timezone.utc)

        if outcome is None:
            per_target = {label: RunStatus.FAILURE for label in targets}
            return self._emit(
                RunResult(
                    run_id=run_id,
                    tier=tier,
                    job_name=job_name,
                    target_set=targets.labels,
                    status=RunStatus.FAILURE,
                    per_target_status=per_target,
                    duration_seconds=elapsed,
                    started_at=started_at.isoformat(),
                    ended_at=ended_at.isoformat(),
                    error_message=error_message,
                )
            )

        timed_out = outcome.timed_out or elapsed > timeout.total_seconds()
        per_target = self._normalize(targets, outcome, timed_out)
        status = summarize_status(per_target, outcome.exit_code, timed_out)

        if timed_out:
            logger.warning(
                f"[{tier or run_id}] Run exceeded its {timeout} budget after {elapsed:.1f}s"
            )

        result = RunResult(
            run_id=run_id,
            tier=tier,
            job_name=job_name,
            target_set=targets.labels,
            status=status,
            per_target_status=per_target,
            artifacts=[ArtifactHandle(name=p.name, path=str(p)) for p in outcome.artifacts],
            exit_code=outcome.exit_code,
            duration_seconds=elapsed,
            started_at=started_at.isoformat(),
            ended_at=ended_at.isoformat(),
        )
        logger.info(f"[{tier or run_id}] Run {run_id} finished: {status.value} ({elapsed:.1f}s)")
        return self._emit(result)

    def _runner_environment(self) -> contextlib.AbstractContextManager[dict[str, str]]:
        if self.credentials is None:
            return contextlib.nullcontext({})
        return self.credentials.runner_environment()

    @staticmethod
    def _normalize(
        targets: ResolvedTargetSet, outcome: RunnerOutcome, timed_out: bool
    ) -> dict[str, RunStatus]:
        """Resolve each dispatched target to a final status.

        Pending targets become TIMED_OUT when the ceiling fired; otherwise
        they take the exit-code verdict.
        """
        pending_status = (
            RunStatus.TIMED_OUT
            if timed_out
            else (RunStatus.SUCCESS if outcome.exit_code == 0 else RunStatus.FAILURE)
        )
        per_target: dict[str, RunStatus] = {}
        for label in targets:
            status = normalize_target_status(outcome.target_statuses.get(label))
            per_target[label] = status if status is not None else pending_status
        return per_target
