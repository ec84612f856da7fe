"""Cluster and registry credentials for the test runner.

Credentials are read from the environment and handed to the runner
unchanged. The kubeconfig is the one value that must be a file: it is
written to a private temporary directory for the duration of a run and
removed afterwards, with retries because the runner's container may still
hold the mount for a moment after exit.
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import tempfile
import time
from collections.abc import Generator, Mapping
from pathlib import Path

from systest.config.models import CredentialSettings
from systest.errors import CredentialError

logger = logging.getLogger(__name__)

# Host variable -> variable name the runner expects.
_RENAMED_VARS = {"AWS_SHARED_CREDENTIALS_FILE": "AWS_SHARED_CREDENTIALS_CONTENT"}


class EnvironmentCredentials:
    """Reads credentials from environment variables.

    Example:
        >>> creds = EnvironmentCredentials(CredentialSettings())
        >>> with creds.runner_environment() as env:
        ...     invocation.env.update(env)

    """

    def __init__(
        self,
        settings: CredentialSettings | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            settings: Which variables are required/optional.
            environ: Environment to read (defaults to os.environ).

        """
        self.settings = settings or CredentialSettings()
        self.environ = environ if environ is not None else os.environ

    def missing(self) -> list[str]:
        """Return required variables that are unset or empty."""
        return [name for name in self.settings.required if not self.environ.get(name)]

    def require(self) -> None:
        """Ensure every required credential is present.

        Raises:
            CredentialError: If any required variable is missing.

        """
        missing = self.missing()
        if missing:
            raise CredentialError(f"Missing required credentials: {', '.join(missing)}")

    @contextlib.contextmanager
    def runner_environment(self) -> Generator[dict[str, str], None, None]:
        """Yield the environment additions for the runner.

        Writes the kubeconfig to a temporary file and points KUBECONFIG at it.

        Yields:
            Mapping of environment variables to add to the runner process.

        Raises:
            CredentialError: If enforcement is on and a required variable is missing.

        """
        if self.settings.enforce:
            self.require()

        env: dict[str, str] = {}
        for name in [*self.settings.required, *self.settings.optional]:
            if name == self.settings.kubeconfig_var:
                continue
            value = self.environ.get(name)
            if value:
                env[_RENAMED_VARS.get(name, name)] = value

        kubeconfig = self.environ.get(self.settings.kubeconfig_var)
        if not kubeconfig:
            yield env
            return

        temp_dir = Path(tempfile.mkdtemp(prefix="systest-kube-"))
        try:
            kubeconfig_path = temp_dir / "kubeconfig"
            kubeconfig_path.touch(mode=0o600)
            kubeconfig_path.chmod(0o600)
            kubeconfig_path.write_text(kubeconfig)
            env["KUBECONFIG"] = str(kubeconfig_path)
            yield env
        finally:
            _cleanup_temp_dir(temp_dir)


def _cleanup_temp_dir(temp_dir: Path, retries: int = 3, delay: float = 0.5) -> None:
    """Remove a temporary credential directory, retrying on OSError.

    Args:
        temp_dir: Path to the temporary directory to remove.
        retries: Number of removal attempts before giving up.
        delay: Seconds to wait between attempts.

    """
    for attempt in range(retries):
        try:
            shutil.rmtree(temp_dir)
            return
        except OSError:
            if attempt < retries - 1:
                time.sleep(delay)
            else:
                logger.warning(
                    "Failed to clean up temp credentials dir after %d attempts: %s",
                    retries,
                    temp_dir,
                )


__all__ = [
    "EnvironmentCredentials",
]
