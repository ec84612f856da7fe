"""Shared test fixtures for systest unit tests."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from systest.config.models import SystestConfig
from systest.executor.bazel import RunnerInvocation, RunnerOutcome
from systest.models import Target
from systest.targets.registry import TargetRegistry

MANIFEST_YAML = """
targets:
  - label: //rs/tests/nns:node_removal_from_registry_test
    tags: [k8s]
  - label: //rs/tests/nns:upgrade_test
    tags: [k8s, system_test_hourly]
  - label: //rs/tests/nns:manual_test
    tags: [k8s, manual]
  - label: //rs/tests/consensus:liveness_test
    tags: [k8s]
  - label: //rs/tests/consensus:nightly_test
    tags: [k8s, system_test_nightly]
  - label: //rs/tests/consensus/backup:backup_test
    tags: [k8s, colocated]
  - label: //rs/tests/networking:hourly_only_test
    tags: [system_test_hourly]
  - label: //rs/tests/message_routing:local_test
    tags: []
"""

BASE_SELECTION = [
    "//rs/tests/nns:node_removal_from_registry_test",
    "//rs/tests/consensus:liveness_test",
]

HOURLY_SELECTION = [
    "//rs/tests/nns:node_removal_from_registry_test",
    "//rs/tests/nns:upgrade_test",
    "//rs/tests/consensus:liveness_test",
    "//rs/tests/networking:hourly_only_test",
]


@pytest.fixture
def manifest_path(tmp_path: Path) -> Path:
    """Write the standard target manifest and return its path."""
    path = tmp_path / "targets.yaml"
    path.write_text(MANIFEST_YAML)
    return path


@pytest.fixture
def registry(manifest_path: Path) -> TargetRegistry:
    """Registry loaded from the standard manifest."""
    return TargetRegistry.from_yaml(manifest_path)


@pytest.fixture
def config(tmp_path: Path) -> SystestConfig:
    """Default configuration archiving under tmp_path."""
    return SystestConfig(archive={"root": str(tmp_path / "artifacts")})


@pytest.fixture
def make_target() -> Callable[..., Target]:
    """Factory for Target instances."""

    def _make(label: str, *tags: str) -> Target:
        return Target(label=label, tags=frozenset(tags))

    return _make


@pytest.fixture
def passing_runner() -> MagicMock:
    """Runner that reports every dispatched target as PASSED."""

    def _run(invocation: RunnerInvocation) -> RunnerOutcome:
        return RunnerOutcome(
            exit_code=0,
            target_statuses={label: "PASSED" for label in invocation.targets},
        )

    runner = MagicMock()
    runner.run.side_effect = _run
    return runner


@pytest.fixture
def failing_runner() -> MagicMock:
    """Runner that fails the first dispatched target and passes the rest."""

    def _run(invocation: RunnerInvocation) -> RunnerOutcome:
        statuses = {label: "PASSED" for label in invocation.targets}
        if invocation.targets:
            statuses[invocation.targets[0]] = "FAILED"
        return RunnerOutcome(exit_code=3, target_statuses=statuses)

    runner = MagicMock()
    runner.run.side_effect = _run
    return runner


@pytest.fixture
def timeout_runner() -> MagicMock:
    """Runner killed on timeout after reporting only the first target."""

    def _run(invocation: RunnerInvocation) -> RunnerOutcome:
        statuses = {invocation.targets[0]: "PASSED"} if invocation.targets else {}
        return RunnerOutcome(exit_code=-1, timed_out=True, target_statuses=statuses)

    runner = MagicMock()
    runner.run.side_effect = _run
    return runner


@pytest.fixture
def base_selection() -> list[str]:
    """Labels the base profile keeps from the standard manifest under 'all'."""
    return list(BASE_SELECTION)


@pytest.fixture
def hourly_selection() -> list[str]:
    """Labels the hourly profile keeps from the standard manifest under 'all'."""
    return list(HOURLY_SELECTION)


@pytest.fixture
def credential_env() -> dict[str, str]:
    """Environment carrying every required credential."""
    return {
        "TNET_KUBECONFIG": "apiVersion: v1\nkind: Config\n",
        "DOCKER_HUB_USER": "ci-bot",
        "DOCKER_HUB_PASSWORD_RO": "secret",
    }
