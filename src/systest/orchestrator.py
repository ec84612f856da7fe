"""System-test orchestrator.

Wires together:
- Trigger classifier: event -> RunIntent
- TargetResolver: selector + profile -> ResolvedTargetSet
- RunExecutor: runs targets through the Bazel runner with credentials
- ArtifactArchiver: stores build-event artifacts after every run
- TierChainController: gates and runs the hourly tier
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from systest.archive.archiver import ArtifactArchiver, ArtifactSink, LocalDirectorySink
from systest.chain.controller import ChainReport, TierChainController
from systest.config.models import SystestConfig
from systest.executor.bazel import BazelRunner, TargetRunner
from systest.executor.credentials import EnvironmentCredentials
from systest.executor.run_executor import RunExecutor
from systest.models import RunContext, RunIntent
from systest.targets.registry import TargetRegistry
from systest.targets.resolver import TargetResolver
from systest.trigger.classifier import classify
from systest.trigger.events import ManualRequest, RepositoryChange, Scheduled

logger = logging.getLogger(__name__)


class SystemTestOrchestrator:
    """Runs a complete trigger -> chain pipeline from configuration.

    Example:
        orchestrator = SystemTestOrchestrator(config, TargetRegistry.from_yaml(manifest))
        report = orchestrator.run(event_from_environment(os.environ))

    """

    def __init__(
        self,
        config: SystestConfig,
        registry: TargetRegistry,
        runner: TargetRunner | None = None,
        sink: ArtifactSink | None = None,
        credentials: EnvironmentCredentials | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Merged configuration.
            registry: Target universe.
            runner: Test runner (defaults to BazelRunner from config).
            sink: Artifact sink (defaults to a LocalDirectorySink at archive.root).
            credentials: Credentials provider (defaults to the environment).
            environ: Environment used for credentials and CI context.

        """
        self.config = config
        self.environ = environ if environ is not None else os.environ
        self.registry = registry
        self.resolver = TargetResolver(registry)
        self.credentials = credentials or EnvironmentCredentials(config.credentials, self.environ)
        self.executor = RunExecutor(runner or BazelRunner(config.runner), self.credentials)
        self.archiver = ArtifactArchiver(
            sink or LocalDirectorySink(Path(config.archive.root)), config.archive
        )
        self.controller = TierChainController(
            self.resolver, self.executor, self.archiver, config
        )

    def classify(self, event: Scheduled | ManualRequest | RepositoryChange) -> RunIntent:
        """Classify an event with the configured policy."""
        return classify(event, self.config)

    def should_run(self, event: Scheduled | ManualRequest | RepositoryChange) -> bool:
        """Return False for repository changes that touch no watched path."""
        watched = self.config.trigger.watched_paths
        if isinstance(event, RepositoryChange) and watched:
            return event.touches(watched)
        return True

    def run(
        self,
        event: Scheduled | ManualRequest | RepositoryChange,
        context: RunContext | None = None,
    ) -> ChainReport:
        """Classify the event and run the tier chain.

        Args:
            event: Triggering event.
            context: CI job identity (read from the environment if not provided).

        Returns:
            ChainReport for the pipeline.

        Raises:
            ResolutionError: If the selector references no registered namespace.
            CredentialError: If required credentials are missing.

        """
        context = context or RunContext.from_environment(self.environ)
        intent = self.classify(event)
        logger.info(
            f"[{context.run_id}] {event.kind} trigger: selector={intent.target_selector!r} "
            f"jobs={intent.concurrency} filters={intent.filters.to_expression()}"
        )
        return self.controller.run(event, intent, context)
