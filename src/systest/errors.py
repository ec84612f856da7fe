"""Error taxonomy for system-test scheduling.

Only resolution failures and infrastructure faults abort a pipeline.
Target-level failures are data: they are recorded on RunResult.status and
surfaced through RunResult.raise_for_status() for callers that want an
exception (the CLI uses it to pick an exit code).
"""


class SystestError(Exception):
    """Base exception for all systest errors."""

    pass


class ConfigurationError(SystestError):
    """Raised when configuration or the target manifest is invalid."""

    pass


class ResolutionError(SystestError):
    """Raised when a selector references no registered target namespace."""

    pass


class ExecutionFailure(SystestError):
    """One or more targets failed. Non-fatal to the pipeline."""

    pass


class ExecutionTimeout(SystestError):
    """The wall-clock ceiling was breached. Not a success for chaining."""

    pass


class RunnerError(SystestError):
    """Raised when the external test runner could not be invoked."""

    pass


class CredentialError(SystestError):
    """Raised when required cluster or registry credentials are missing."""

    pass


class ArchiveError(SystestError):
    """Raised by an artifact sink when storing fails."""

    pass



class ChainStateError(SystestError):
    """Raised on an illegal tier chain state transition."""

    pass
