"""Tests for environment credentials."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from systest.config.models import CredentialSettings
from systest.errors import CredentialError
from systest.executor.credentials import EnvironmentCredentials, _cleanup_temp_dir


class TestRequire:
    """Tests for missing/require."""

    def test_missing(self) -> None:
        """Unset and empty variables are missing."""
        creds = EnvironmentCredentials(environ={"DOCKER_HUB_USER": "bot", "TNET_KUBECONFIG": ""})
        assert creds.missing() == ["TNET_KUBECONFIG", "DOCKER_HUB_PASSWORD_RO"]

    def test_require_raises(self) -> None:
        """require names every missing variable."""
        creds = EnvironmentCredentials(environ={})
        with pytest.raises(CredentialError, match="TNET_KUBECONFIG"):
            creds.require()

    def test_require_passes(self, credential_env: dict[str, str]) -> None:
        """require is silent when everything is set."""
        EnvironmentCredentials(environ=credential_env).require()


class TestRunnerEnvironment:
    """Tests for runner_environment."""

    def test_writes_kubeconfig(self, credential_env: dict[str, str]) -> None:
        """The kubeconfig is written to a private file for the run only."""
        creds = EnvironmentCredentials(environ=credential_env)
        with creds.runner_environment() as env:
            path = Path(env["KUBECONFIG"])
            assert path.read_text() == credential_env["TNET_KUBECONFIG"]
            assert oct(path.stat().st_mode & 0o777) == oct(0o600)
            assert env["DOCKER_HUB_USER"] == "ci-bot"
            assert "TNET_KUBECONFIG" not in env
        assert not path.exists()
        assert not path.parent.exists()

    def test_renames_aws_credentials(self, credential_env: dict[str, str]) -> None:
        """AWS credentials are passed as AWS_SHARED_CREDENTIALS_CONTENT."""
        environ = {**credential_env, "AWS_SHARED_CREDENTIALS_FILE": "[default]\n"}
        with EnvironmentCredentials(environ=environ).runner_environment() as env:
            assert env["AWS_SHARED_CREDENTIALS_CONTENT"] == "[default]\n"
            assert "AWS_SHARED_CREDENTIALS_FILE" not in env

    def test_enforced(self) -> None:
        """Missing credentials fail before yielding."""
        creds = EnvironmentCredentials(environ={})
        with pytest.raises(CredentialError):
            with creds.runner_environment():
                pass

    def test_not_enforced(self) -> None:
        """Without enforcement, missing credentials are skipped."""
        creds = EnvironmentCredentials(CredentialSettings(enforce=False), environ={})
        with creds.runner_environment() as env:
            assert env == {}

    def test_cleanup_on_error(self, credential_env: dict[str, str]) -> None:
        """The kubeconfig is removed even if the run raises."""
        creds = EnvironmentCredentials(environ=credential_env)
        with pytest.raises(RuntimeError):
            with creds.runner_environment() as env:
                path = Path(env["KUBECONFIG"])
                raise RuntimeError("runner crashed")
        assert not path.exists()

    def test_cleanup_when_write_fails(
        self, credential_env: dict[str, str], tmp_path: Path
    ) -> None:
        """The temp directory is removed if writing the kubeconfig fails."""
        temp_dir = tmp_path / "kube"
        temp_dir.mkdir()
        creds = EnvironmentCredentials(environ=credential_env)
        with (
            patch(
                "systest.executor.credentials.tempfile.mkdtemp", return_value=str(temp_dir)
            ),
            patch.object(Path, "write_text", side_effect=OSError("disk full")),
        ):
            with pytest.raises(OSError, match="disk full"):
                with creds.runner_environment():
                    pass
        assert not temp_dir.exists()


class TestCleanupTempDir:
    """Tests for _cleanup_temp_dir."""

    def test_retries_then_succeeds(self, tmp_path: Path) -> None:
        """Transient OSErrors are retried."""
        target = tmp_path / "kube"
        target.mkdir()
        with (
            patch(
                "systest.executor.credentials.shutil.rmtree",
                side_effect=[OSError("busy"), None],
            ) as mock_rmtree,
            patch("systest.executor.credentials.time.sleep") as mock_sleep,
        ):
            _cleanup_temp_dir(target)
        assert mock_rmtree.call_count == 2
        mock_sleep.assert_called_once()

    def test_gives_up_with_warning(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Persistent failures are logged, not raised."""
        with (
            patch(
                "systest.executor.credentials.shutil.rmtree", side_effect=OSError("busy")
            ) as mock_rmtree,
            patch("systest.executor.credentials.time.sleep"),
        ):
            _cleanup_temp_dir(tmp_path / "kube", retries=3)
        assert mock_rmtree.call_count == 3
        assert "Failed to clean up" in caplog.text


def test_default_environ_is_os_environ() -> None:
    """Without an explicit mapping the process environment is read."""
    assert EnvironmentCredentials().environ is os.environ
