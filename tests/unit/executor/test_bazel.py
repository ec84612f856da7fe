"""Tests for the Bazel runner."""

import os
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from systest.config.models import RunnerSettings
from systest.errors import RunnerError
from systest.executor.bazel import BazelRunner, RunnerInvocation, parse_test_summary

SUMMARY = """\
INFO: Build completed, 1 test FAILED, 4 total actions
//rs/tests/nns:upgrade_test                                   (cached) PASSED in 12.3s
//rs/tests/nns:node_removal_from_registry_test                         FAILED in 3 out of 3 in 301.2s
  /root/.cache/bazel/execroot/testlogs/rs/tests/nns/node_removal_from_registry_test/test.log
//rs/tests/consensus:liveness_test                                       FLAKY, failed in 1 out of 2 in 80.0s
//rs/tests/consensus:nightly_test                                       TIMEOUT in 7200.0s
//rs/tests/networking:hourly_only_test                          FAILED TO BUILD
//rs/tests/message_routing:local_test                                  NO STATUS
"""


@pytest.fixture
def invocation() -> RunnerInvocation:
    """Invocation for two targets."""
    return RunnerInvocation(
        targets=["//rs/tests/nns:upgrade_test", "//rs/tests/consensus:liveness_test"],
        concurrency=20,
        tag_filter_expression="k8s,-manual",
        extra_flags=["--keep_going"],
        timeout_seconds=60.0,
        env={"CI_RUN_ID": "r1"},
    )


@pytest.fixture
def runner(tmp_path: Path) -> BazelRunner:
    """Runner rooted in a temporary workspace."""
    return BazelRunner(RunnerSettings(workspace=str(tmp_path)))


class TestParseTestSummary:
    """Tests for parse_test_summary."""

    def test_statuses(self) -> None:
        """Each summary line maps its label to the raw status."""
        statuses = parse_test_summary(SUMMARY)
        assert statuses == {
            "//rs/tests/nns:upgrade_test": "PASSED",
            "//rs/tests/nns:node_removal_from_registry_test": "FAILED",
            "//rs/tests/consensus:liveness_test": "FLAKY",
            "//rs/tests/consensus:nightly_test": "TIMEOUT",
            "//rs/tests/networking:hourly_only_test": "FAILED TO BUILD",
            "//rs/tests/message_routing:local_test": "NO STATUS",
        }

    def test_ignores_noise(self) -> None:
        """Lines without a label and status are ignored."""
        assert parse_test_summary("INFO: Elapsed time: 3.2s\nLoading: 0 packages\n") == {}


class TestBuildCommand:
    """Tests for BazelRunner.build_command."""

    def test_command_layout(self, runner: BazelRunner, invocation: RunnerInvocation) -> None:
        """Flags precede '--' and the targets follow it."""
        cmd = runner.build_command(invocation)
        assert cmd[:4] == ["bazel", "test", "--config=ci", "--repository_cache=/cache/bazel"]
        assert "--jobs=20" in cmd
        assert "--test_tag_filters=k8s,-manual" in cmd
        assert "--k8s" in cmd
        assert "--keep_going" in cmd
        assert "--build_event_binary_file=bazel-bep.pb" in cmd
        assert "--profile=profile.json" in cmd
        separator = cmd.index("--")
        assert cmd[separator + 1 :] == invocation.targets


class TestRun:
    """Tests for BazelRunner.run."""

    def test_success(
        self, runner: BazelRunner, invocation: RunnerInvocation, tmp_path: Path
    ) -> None:
        """Exit code, statuses and the artifacts the run wrote are reported."""
        completed = subprocess.CompletedProcess(
            args=[], returncode=0, stdout="//rs/tests/nns:upgrade_test PASSED in 1s\n", stderr=""
        )

        def fake_run(*args: object, **kwargs: object) -> subprocess.CompletedProcess[str]:
            (tmp_path / "bazel-bep.pb").write_bytes(b"\x00")
            return completed

        with patch("systest.executor.bazel.subprocess.run", side_effect=fake_run) as mock_run:
            outcome = runner.run(invocation)

        assert outcome.exit_code == 0
        assert not outcome.timed_out
        assert outcome.target_statuses == {"//rs/tests/nns:upgrade_test": "PASSED"}
        assert outcome.artifacts == [tmp_path / "bazel-bep.pb"]

        kwargs = mock_run.call_args.kwargs
        assert kwargs["timeout"] == 60.0
        assert kwargs["cwd"] == tmp_path
        assert kwargs["env"]["CI_RUN_ID"] == "r1"

    def test_timeout(self, runner: BazelRunner, invocation: RunnerInvocation) -> None:
        """A process timeout is reported, not raised."""
        error = subprocess.TimeoutExpired(
            cmd="bazel", timeout=60.0, output=b"//rs/tests/nns:upgrade_test PASSED in 1s\n"
        )
        with patch("systest.executor.bazel.subprocess.run", side_effect=error):
            outcome = runner.run(invocation)

        assert outcome.timed_out
        assert outcome.exit_code == -1
        assert outcome.target_statuses == {"//rs/tests/nns:upgrade_test": "PASSED"}

    def test_missing_binary(self, runner: BazelRunner, invocation: RunnerInvocation) -> None:
        """A missing bazel binary is a RunnerError."""
        with patch("systest.executor.bazel.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(RunnerError, match="not found"):
                runner.run(invocation)

    def test_os_error(self, runner: BazelRunner, invocation: RunnerInvocation) -> None:
        """Other launch failures are RunnerErrors."""
        with patch(
            "systest.executor.bazel.subprocess.run", side_effect=PermissionError("denied")
        ):
            with pytest.raises(RunnerError, match="denied"):
                runner.run(invocation)

    def test_nonzero_exit(self, runner: BazelRunner, invocation: RunnerInvocation) -> None:
        """A non-zero exit code is passed through."""
        completed = MagicMock(returncode=3, stdout="", stderr="ERROR: build failed")
        with patch("systest.executor.bazel.subprocess.run", return_value=completed):
            outcome = runner.run(invocation)
        assert outcome.exit_code == 3
        assert outcome.stderr == "ERROR: build failed"


class TestArtifactCollection:
    """Only artifacts written by the current invocation are reported."""

    def test_stale_artifacts_ignored(
        self, runner: BazelRunner, invocation: RunnerInvocation, tmp_path: Path
    ) -> None:
        """A build-event log left by an earlier run is not reported."""
        stale = tmp_path / "bazel-bep.pb"
        stale.write_bytes(b"previous run")
        completed = MagicMock(returncode=2, stdout="", stderr="ERROR: Unrecognized option")
        with patch("systest.executor.bazel.subprocess.run", return_value=completed):
            outcome = runner.run(invocation)

        assert outcome.exit_code == 2
        assert outcome.artifacts == []

    def test_rewritten_artifact_reported(
        self, runner: BazelRunner, invocation: RunnerInvocation, tmp_path: Path
    ) -> None:
        """An artifact overwritten during the run is reported."""
        bep = tmp_path / "bazel-bep.pb"
        bep.write_bytes(b"previous run")
        os.utime(bep, ns=(1_000_000_000_000_000_000, 1_000_000_000_000_000_000))

        def fake_run(*args: object, **kwargs: object) -> MagicMock:
            bep.write_bytes(b"this run")
            return MagicMock(returncode=0, stdout="", stderr="")

        with patch("systest.executor.bazel.subprocess.run", side_effect=fake_run):
            outcome = runner.run(invocation)

        assert outcome.artifacts == [bep]

    def test_timeout_keeps_partial_artifacts(
        self, runner: BazelRunner, invocation: RunnerInvocation, tmp_path: Path
    ) -> None:
        """Artifacts written before the process was killed are reported."""
        profile = tmp_path / "profile.json"

        def fake_run(*args: object, **kwargs: object) -> MagicMock:
            profile.write_text("{}")
            raise subprocess.TimeoutExpired(cmd="bazel", timeout=60.0)

        with patch("systest.executor.bazel.subprocess.run", side_effect=fake_run):
            outcome = runner.run(invocation)

        assert outcome.timed_out
        assert outcome.artifacts == [profile]
