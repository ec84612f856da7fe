"""Reporting for chain results."""

from systest.reporting.summary import format_chain_summary, format_duration, write_report_json

__all__ = [
    "format_chain_summary",
    "format_duration",
    "write_report_json",
]
