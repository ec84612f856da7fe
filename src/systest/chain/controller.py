"""Tier chain controller: primary run, archive, gate, optional secondary run.

Chaining is strictly sequential: the secondary tier is resolved and
dispatched only after the primary RunResult has been fully received.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from pydantic import BaseModel, Field

from systest.archive.archiver import ArtifactArchiver
from systest.config.constants import BASE_TIER, HOURLY_TIER
from systest.config.models import SystestConfig, TierSettings
from systest.executor.run_executor import RunExecutor
from systest.models import (
    ArchiveOutcome,
    ResolvedTargetSet,
    RunContext,
    RunIntent,
    RunResult,
    RunStatus,
    TagFilterProfile,
    TierLink,
)
from systest.targets.resolver import TargetResolver
from systest.trigger.events import ManualRequest, RepositoryChange, Scheduled

from .state_machine import ChainState, ChainStateMachine, should_chain

logger = logging.getLogger(__name__)


class ChainReport(BaseModel):
    """Everything one chain produced, for reporting and audit."""

    event_kind: str = Field(..., description="Kind of the triggering event")
    intent: RunIntent
    primary: RunResult
    secondary: RunResult | None = Field(default=None)
    link: TierLink | None = Field(default=None)
    archives: list[ArchiveOutcome] = Field(default_factory=list)
    history: list[str] = Field(default_factory=list, description="Transitions taken")
    final_state: ChainState = Field(default=ChainState.DONE)

    @property
    def runs(self) -> list[RunResult]:
        """Primary and, if present, secondary result."""
        return [self.primary] + ([self.secondary] if self.secondary else [])

    @property
    def succeeded(self) -> bool:
        """Return True if every run in the chain succeeded."""
        return all(run.status == RunStatus.SUCCESS for run in self.runs)


class TierChainController:
    """Runs the primary tier and, when the gate opens, the secondary tier.

    Example:
        >>> controller = TierChainController(resolver, executor, archiver, config)
        >>> report = controller.run(Scheduled(), classify(Scheduled(), config))
        >>> print(report.link)

    """

    def __init__(
        self,
        resolver: TargetResolver,
        executor: RunExecutor,
        archiver: ArtifactArchiver,
        config: SystestConfig | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            resolver: Target resolver over the registered universe.
            executor: Run executor.
            archiver: Artifact archiver, invoked after every run.
            config: Tier settings (uses defaults if not provided).

        """
        self.resolver = resolver
        self.executor = executor
        self.archiver = archiver
        self.config = config or SystestConfig()

    def _run_tier(
        self,
        tier: str,
        settings: TierSettings,
        targets: ResolvedTargetSet,
        intent: RunIntent,
        filters: TagFilterProfile,
        context: RunContext,
    ) -> RunResult:
        return self.executor.execute(
            targets,
            intent.concurrency,
            filters,
            timedelta(minutes=settings.timeout_minutes),
            tier=tier,
            job_name=settings.job_name,
            run_id=f"{context.run_id}-{settings.job_name}",
            env=context.as_env(),
        )

    def run(
        self,
        event: Scheduled | ManualRequest | RepositoryChange,
        intent: RunIntent,
        context: RunContext | None = None,
    ) -> ChainReport:
        """Run the chain for one trigger.

        Args:
            event: Triggering event (decides the chain gate).
            intent: Classified intent for the primary tier.
            context: CI job identity (generated if not provided).

        Returns:
            ChainReport with both results, the tier link and archive outcomes.

        Raises:
            ResolutionError: If the primary selector references nothing; no run,
                archive or chaining happens.

        """
        context = context or RunContext()
        machine = ChainStateMachine(label=context.run_id)
        archives: list[ArchiveOutcome] = []

        machine.transition(ChainState.PRIMARY_RUNNING)
        primary_targets = self.resolver.resolve(intent.target_selector, intent.filters)
        primary = self._run_tier(
            BASE_TIER, self.config.base, primary_targets, intent, intent.filters, context
        )
        machine.transition(ChainState.AWAITING_CHAIN_DECISION)
        archives.append(self.archiver.archive_result(primary))

        secondary: RunResult | None = None
        link: TierLink | None = None
        if should_chain(event, primary):
            machine.transition(ChainState.SECONDARY_RUNNING)
            hourly = self.config.hourly_profile()
            secondary_targets = self.resolver.resolve(intent.target_selector, hourly)
            secondary = self._run_tier(
                HOURLY_TIER, self.config.hourly, secondary_targets, intent, hourly, context
            )
            link = TierLink(primary_run_id=primary.run_id, secondary_run_id=secondary.run_id)
            machine.transition(ChainState.DONE)
            archives.append(self.archiver.archive_result(secondary))
        else:
            logger.info(
                f"[{context.run_id}] Not chaining {HOURLY_TIER} tier "
                f"(trigger={event.kind}, primary={primary.status.value})"
            )
            machine.transition(ChainState.DONE)

        return ChainReport(
            event_kind=event.kind,
            intent=intent,
            primary=primary,
            secondary=secondary,
            link=link,
            archives=archives,
            history=[f"{t.from_state.value} -> {t.to_state.value}" for t in machine.history],
            final_state=machine.state,
        )
