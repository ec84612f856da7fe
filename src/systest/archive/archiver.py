"""Best-effort archiving of run artifacts.

Every RunResult is archived, whatever its status. Archive failures are
logged and reported as a warning message on the ArchiveOutcome; they never
raise and never touch the run's status.

Archives are named ``{job_name}-{suffix}`` so reruns of one job overwrite
the previous archive (last write wins). Setting ``qualify_with_run_id``
switches to ``{job_name}-{run_id}-{suffix}`` to keep every run.
"""

from __future__ import annotations

import json
import logging
import shutil
import tempfile
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from systest.config.models import ArchiveSettings
from systest.errors import ArchiveError
from systest.models import ArchiveOutcome, ArtifactHandle, RunResult

logger = logging.getLogger(__name__)

RETENTION_FILE = "retention.json"


class ArtifactSink(Protocol):
    """Storage for named artifact bundles."""

    def store(self, name: str, files: Sequence[Path], retention_days: int) -> list[str]:
        """Store files under ``name``, replacing any previous bundle; return stored names."""
        ...


class LocalDirectorySink:
    """Stores artifact bundles as directories under a root path.

    Layout:
        <root>/<name>/<file>...
        <root>/<name>/retention.json

    """

    def __init__(self, root: Path) -> None:
        """Initialize the sink.

        Args:
            root: Directory that holds one subdirectory per archive.

        """
        self.root = Path(root)

    def store(self, name: str, files: Sequence[Path], retention_days: int) -> list[str]:
        """Copy files into ``<root>/<name>``, replacing previous content.

        The bundle is built in a hidden staging directory next to the
        destination and swapped in only once complete, so a failed copy
        leaves the previous bundle in place.

        Raises:
            ArchiveError: If the name is unsafe.
            OSError: If the filesystem operation fails.

        """
        if not name or "/" in name or name in {".", ".."}:
            raise ArchiveError(f"Invalid archive name: {name!r}")

        self.root.mkdir(parents=True, exist_ok=True)
        dest = self.root / name
        staging = Path(tempfile.mkdtemp(prefix=f".{name}.", dir=self.root))
        try:
            stored: list[str] = []
            for path in files:
                shutil.copy2(path, staging / path.name)
                stored.append(path.name)

            stored_at = datetime.now(timezone.utc)
            metadata = {
                "name": name,
                "stored_at": stored_at.isoformat(),
                "expires_at": (stored_at + timedelta(days=retention_days)).isoformat(),
                "retention_days": retention_days,
                "files": stored,
            }
            with open(staging / RETENTION_FILE, "w") as f:
                json.dump(metadata, f, indent=2)

            if dest.exists():
                previous = staging.with_name(f"{staging.name}.old")
                dest.rename(previous)
                staging.rename(dest)
                shutil.rmtree(previous, ignore_errors=True)
            else:
                staging.rename(dest)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        return stored

    def prune_expired(self, now: datetime | None = None) -> list[str]:
        """Remove archives whose retention has expired.

        Args:
            now: Reference time (defaults to the current UTC time).

        Returns:
            Names of removed archives.

        """
        now = now or datetime.now(timezone.utc)
        removed: list[str] = []
        if not self.root.exists():
            return removed

        for archive_dir in sorted(self.root.iterdir()):
            metadata_path = archive_dir / RETENTION_FILE
            if not archive_dir.is_dir() or not metadata_path.exists():
                continue
            try:
                with open(metadata_path) as f:
                    expires_at = datetime.fromisoformat(json.load(f)["expires_at"])
            except (OSError, ValueError, KeyError) as e:
                logger.warning(f"Skipping archive with unreadable retention data {archive_dir}: {e}")
                continue
            if expires_at <= now:
                shutil.rmtree(archive_dir, ignore_errors=True)
                removed.append(archive_dir.name)
                logger.info(f"Pruned expired archive {archive_dir.name}")
        return removed


class ArtifactArchiver:
    """Archives run artifacts through an ArtifactSink.

    Example:
        >>> archiver = ArtifactArchiver(LocalDirectorySink(Path("artifacts")))
        >>> outcome = archiver.archive_result(result)
        >>> if not outcome.ok:
        ...     print(outcome.warning)

    """

    def __init__(self, sink: ArtifactSink, settings: ArchiveSettings | None = None) -> None:
        """Initialize the archiver.

        Args:
            sink: Storage collaborator.
            settings: Naming and retention settings (uses defaults if not provided).

        """
        self.sink = sink
        self.settings = settings or ArchiveSettings()

    def archive_name(self, run_id: str, job_name: str = "") -> str:
        """Compose the archive name for a run."""
        job = job_name or run_id
        if self.settings.qualify_with_run_id and job_name:
            return f"{job}-{run_id}-{self.settings.suffix}"
        return f"{job}-{self.settings.suffix}"

    def archive(
        self, run_id: str, artifacts: Sequence[ArtifactHandle], job_name: str = ""
    ) -> ArchiveOutcome:
        """Archive a run's artifacts.

        Missing files are skipped and an empty artifact list is a success.

        Args:
            run_id: Run identifier.
            artifacts: Artifact handles produced by the run.
            job_name: Job identity used for naming.

        Returns:
            ArchiveOutcome, carrying a warning message if storing failed.

        """
        name = self.archive_name(run_id, job_name)
        files: list[Path] = []
        for artifact in artifacts:
            path = Path(artifact.path)
            if path.is_file():
                files.append(path)
            else:
                logger.debug(f"[{run_id}] Artifact {artifact.name} not found at {path}, skipping")

        if not files:
            logger.info(f"[{run_id}] No artifact files to archive for {name}")
            return ArchiveOutcome(run_id=run_id, archive_name=name)

        try:
            stored = self.sink.store(name, files, self.settings.retention_days)
        except Exception as e:
            message = f"Failed to archive artifacts for run {run_id} as {name}: {e}"
            logger.warning(message)
            return ArchiveOutcome(run_id=run_id, archive_name=name, warning=message)

        logger.info(f"[{run_id}] Archived {len(stored)} file(s) as {name}")
        return ArchiveOutcome(run_id=run_id, archive_name=name, stored=stored)

    def archive_result(self, result: RunResult) -> ArchiveOutcome:
        """Archive the artifacts of a RunResult."""
        return self.archive(result.run_id, result.artifacts, result.job_name)
