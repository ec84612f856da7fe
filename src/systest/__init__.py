"""systest - trigger-driven system test scheduling.

This package decides which system-test targets run for a CI trigger, at
what concurrency and with which tag filters, and chains the hourly tier
off a successful scheduled run.
"""

__version__ = "0.1.0"

__all__ = [
    "archive",
    "chain",
    "cli",
    "config",
    "executor",
    "reporting",
    "targets",
    "trigger",
]
