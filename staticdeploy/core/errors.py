"""
Exception hierarchy for deploy runs.
"""
from typing import Optional

from .models import CommandResult


class DeployError(Exception):
    """Base class for every deploy failure."""


class ConfigError(DeployError):
    """Missing or invalid configuration."""


class LockContention(DeployError):
    """Another run holds the lock."""


class DetectionFailure(DeployError):
    """No change source could answer."""


class CrawlFailure(DeployError):
    """The crawl tool failed after every fallback."""

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        self.exit_code = exit_code


class PipelineFailure(DeployError):
    """The mirror pipeline reported an unsuccessful result."""

    def __init__(self, message: str, stage: str):
        super().__init__(message)
        self.stage = stage


class ReconciliationFailure(DeployError):
    """A version-control step failed."""

    def __init__(self, message: str, result: Optional[CommandResult] = None):
        if result is not None and result.output:
            message = f"{message}: {result.output}"
        super().__init__(message)
        self.result = result


class PublicationFailure(DeployError):
    """The hosting API rejected a request."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status
