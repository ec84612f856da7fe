"""Summary rendering for chain reports.

Produces the markdown block printed at the end of a CLI run (suitable for
a CI job summary) and a JSON dump of the full report.
"""

from __future__ import annotations

import json
from pathlib import Path

from systest.chain.controller import ChainReport
from systest.models import RunResult, RunStatus

_STATUS_ICONS = {
    RunStatus.SUCCESS: "PASS",
    RunStatus.FAILURE: "FAIL",
    RunStatus.TIMED_OUT: "TIMEOUT",
}


def format_duration(seconds: float) -> str:
    """Format seconds as ``1h 02m 03s`` / ``2m 03s`` / ``3.0s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    return f"{minutes}m {secs:02d}s"


def _run_row(run: RunResult) -> str:
    passed = len(run.targets_with_status(RunStatus.SUCCESS))
    failed = len(run.targets_with_status(RunStatus.FAILURE))
    timed_out = len(run.targets_with_status(RunStatus.TIMED_OUT))
    return (
        f"| {run.tier} | {run.run_id} | {_STATUS_ICONS[run.status]} | "
        f"{len(run.target_set)} | {passed} | {failed} | {timed_out} | "
        f"{format_duration(run.duration_seconds)} |"
    )


def format_chain_summary(report: ChainReport) -> str:
    """Render a chain report as markdown.

    Args:
        report: Report to render.

    Returns:
        Markdown text with a run table, problem targets and archive warnings.

    """
    lines = [
        "## System Tests",
        "",
        f"Trigger: `{report.event_kind}`, selector `{report.intent.target_selector}`, "
        f"{report.intent.concurrency} jobs",
        "",
        "| Tier | Run | Status | Targets | Passed | Failed | Timed out | Duration |",
        "|------|-----|--------|---------|--------|--------|-----------|----------|",
    ]
    lines.extend(_run_row(run) for run in report.runs)

    for run in report.runs:
        problems = [
            f"- `{label}`: {status.value}"
            for label, status in run.per_target_status.items()
            if status != RunStatus.SUCCESS
        ]
        if problems:
            lines.extend(["", f"### {run.tier} problems", *problems])
        if run.error_message:
            lines.extend(["", f"Runner error ({run.tier}): {run.error_message}"])

    if report.link is None and report.secondary is None:
        lines.extend(["", "Hourly tier not chained."])

    warnings = [a.warning for a in report.archives if a.warning]
    if warnings:
        lines.extend(["", "### Archive warnings", *(f"- {w}" for w in warnings)])

    return "\n".join(lines) + "\n"


def write_report_json(report: ChainReport, path: Path) -> None:
    """Write the full report as JSON.

    Args:
        report: Report to serialize.
        path: Destination file.

    """
    path.parent.mkdir(parents=True, exist_ok=True)
    # Atomic write using temp file
    temp_path = path.with_suffix(".tmp")
    with open(temp_path, "w") as f:
        json.dump(report.model_dump(mode="json"), f, indent=2)
    temp_path.replace(path)
