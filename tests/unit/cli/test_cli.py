"""Tests for CLI commands."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from systest.cli.main import cli


@pytest.fixture(autouse=True)
def workdir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every command from an empty working directory."""
    cwd = tmp_path / "cwd"
    cwd.mkdir()
    monkeypatch.chdir(cwd)
    return cwd


class TestCLIGroup:
    """Tests for main CLI group."""

    def test_help(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "trigger-driven system test scheduling" in result.output

    def test_version(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestRunCommand:
    """Tests for 'run' command."""

    def test_run_help(self) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--help"])

        assert result.exit_code == 0
        assert "--event" in result.output
        assert "--from-env" in result.output
        assert "--manifest" in result.output

    def test_verbose_and_quiet_error(self, manifest_path: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(
            cli, ["run", "-e", "schedule", "-m", str(manifest_path), "--verbose", "--quiet"]
        )

        assert result.exit_code != 0
        assert "Cannot use --verbose and --quiet together" in result.output

    def test_requires_event(self, manifest_path: Path) -> None:
        """Either --event or --from-env must be given."""
        result = CliRunner().invoke(cli, ["run", "-m", str(manifest_path)])
        assert result.exit_code != 0
        assert "--event or --from-env" in result.output

    def test_scheduled_success(
        self,
        manifest_path: Path,
        passing_runner: MagicMock,
        credential_env: dict[str, str],
        tmp_path: Path,
    ) -> None:
        """A passing scheduled run chains the hourly tier and exits 0."""
        report = tmp_path / "report.json"
        result = CliRunner().invoke(
            cli,
            ["run", "-e", "schedule", "-m", str(manifest_path), "--report", str(report)],
            obj={"runner": passing_runner, "environ": credential_env},
        )

        assert result.exit_code == 0, result.output
        assert "## System Tests" in result.output
        assert "| hourly |" in result.output
        data = json.loads(report.read_text())
        assert data["link"] is not None
        assert passing_runner.run.call_count == 2

    def test_failure_exit_code(
        self, manifest_path: Path, failing_runner: MagicMock, credential_env: dict[str, str]
    ) -> None:
        """A failed run exits 1 and skips the hourly tier."""
        result = CliRunner().invoke(
            cli,
            ["run", "-e", "schedule", "-m", str(manifest_path)],
            obj={"runner": failing_runner, "environ": credential_env},
        )

        assert result.exit_code == 1
        assert "ExecutionFailure" in result.output
        assert "Hourly tier not chained." in result.output
        assert failing_runner.run.call_count == 1

    def test_timeout_exit_code(
        self, manifest_path: Path, timeout_runner: MagicMock, credential_env: dict[str, str]
    ) -> None:
        """A timed out run exits 1."""
        result = CliRunner().invoke(
            cli,
            ["run", "-e", "schedule", "-m", str(manifest_path), "-q"],
            obj={"runner": timeout_runner, "environ": credential_env},
        )

        assert result.exit_code == 1
        assert "ExecutionTimeout" in result.output
        assert "## System Tests" not in result.output

    def test_manual_dispatch(
        self, manifest_path: Path, passing_runner: MagicMock, credential_env: dict[str, str]
    ) -> None:
        """Manual inputs flow to the runner."""
        result = CliRunner().invoke(
            cli,
            [
                "run",
                "-e",
                "workflow_dispatch",
                "-t",
                "//rs/tests/consensus:all",
                "-j",
                "6",
                "-m",
                str(manifest_path),
            ],
            obj={"runner": passing_runner, "environ": credential_env},
        )

        assert result.exit_code == 0, result.output
        invocation = passing_runner.run.call_args.args[0]
        assert invocation.targets == ["//rs/tests/consensus:liveness_test"]
        assert invocation.concurrency == 6

    def test_from_env(
        self, manifest_path: Path, passing_runner: MagicMock, credential_env: dict[str, str]
    ) -> None:
        """--from-env reads the trigger from CI variables."""
        environ = {**credential_env, "CI_PIPELINE_SOURCE": "pull_request"}
        result = CliRunner().invoke(
            cli,
            ["run", "--from-env", "-m", str(manifest_path)],
            obj={"runner": passing_runner, "environ": environ},
        )

        assert result.exit_code == 0, result.output
        assert passing_runner.run.call_args.args[0].concurrency == 32

    def test_unresolvable_selector(
        self, manifest_path: Path, passing_runner: MagicMock, credential_env: dict[str, str]
    ) -> None:
        """Resolution errors abort with exit code 2."""
        result = CliRunner().invoke(
            cli,
            ["run", "-e", "workflow_dispatch", "-t", "//nowhere:all", "-m", str(manifest_path)],
            obj={"runner": passing_runner, "environ": credential_env},
        )

        assert result.exit_code == 2
        assert "Error" in result.output
        passing_runner.run.assert_not_called()

    def test_missing_credentials(self, manifest_path: Path, passing_runner: MagicMock) -> None:
        """Missing credentials abort with exit code 2."""
        result = CliRunner().invoke(
            cli,
            ["run", "-e", "schedule", "-m", str(manifest_path)],
            obj={"runner": passing_runner, "environ": {}},
        )

        assert result.exit_code == 2
        assert "TNET_KUBECONFIG" in result.output

    def test_missing_manifest(self, tmp_path: Path) -> None:
        """A missing manifest aborts with exit code 2."""
        result = CliRunner().invoke(
            cli,
            ["run", "-e", "schedule", "-m", str(tmp_path / "missing.yaml")],
            obj={"runner": MagicMock(), "environ": {}},
        )

        assert result.exit_code == 2
        assert "not found" in result.output

    def test_unwatched_change_skipped(
        self, manifest_path: Path, passing_runner: MagicMock, workdir: Path
    ) -> None:
        """Repository changes outside the watched paths skip the run."""
        (workdir / "systest.yaml").write_text("trigger:\n  watched_paths: ['rs/tests/*']\n")
        result = CliRunner().invoke(
            cli,
            ["run", "-e", "push", "--changed-path", "docs/readme.md", "-m", str(manifest_path)],
            obj={"runner": passing_runner, "environ": {}},
        )

        assert result.exit_code == 0
        assert "skipping" in result.output
        passing_runner.run.assert_not_called()


class TestClassifyCommand:
    """Tests for 'classify' command."""

    def test_classify_manual(self) -> None:
        """The intent is printed as JSON."""
        result = CliRunner().invoke(cli, ["classify", "-e", "workflow_dispatch", "-j", "5"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["target_selector"] == "//rs/tests/nns:node_removal_from_registry_test"
        assert data["concurrency"] == 5
        assert data["filters"]["name"] == "base"


class TestResolveCommand:
    """Tests for 'resolve' command."""

    def test_resolve_hourly(self, manifest_path: Path) -> None:
        """Labels are printed one per line."""
        result = CliRunner().invoke(
            cli, ["resolve", "-m", str(manifest_path), "-s", "//rs/tests/nns:all", "-p", "hourly"]
        )

        assert result.exit_code == 0, result.output
        assert result.output.splitlines() == [
            "//rs/tests/nns:node_removal_from_registry_test",
            "//rs/tests/nns:upgrade_test",
        ]

    def test_resolve_error(self, manifest_path: Path) -> None:
        """Unresolvable selectors exit 2."""
        result = CliRunner().invoke(cli, ["resolve", "-m", str(manifest_path), "-s", "//x:y"])
        assert result.exit_code == 2


class TestAuditCommand:
    """Tests for 'audit' command."""

    def test_clean(self, manifest_path: Path) -> None:
        """A clean manifest exits 0."""
        result = CliRunner().invoke(cli, ["audit", "-m", str(manifest_path)])
        assert result.exit_code == 0
        assert "No tier partition conflicts" in result.output

    def test_conflict(self, tmp_path: Path) -> None:
        """Overlapping markers are reported with exit code 1."""
        manifest = tmp_path / "overlap.yaml"
        manifest.write_text(
            "targets:\n"
            "  - label: //p:both\n"
            "    tags: [k8s, system_test_hourly, system_test_nightly]\n"
        )
        result = CliRunner().invoke(cli, ["audit", "-m", str(manifest)])
        assert result.exit_code == 1
        assert "//p:both" in result.output
        assert "no tier" in result.output


class TestPruneCommand:
    """Tests for 'prune' command."""

    def test_prune_empty(self) -> None:
        """Pruning with no archives reports zero."""
        result = CliRunner().invoke(cli, ["prune"])
        assert result.exit_code == 0
        assert "Pruned 0 archive(s)." in result.output
