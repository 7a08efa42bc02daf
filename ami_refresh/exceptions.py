"""Error taxonomy for the refresh engine."""

from __future__ import annotations


class AmiRefreshError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(AmiRefreshError):
    """Missing or malformed configuration, or an unresolved cross-reference.

    Raised before scheduling starts; the process exits instead of running jobs.
    """


class ProviderAPIError(AmiRefreshError):
    """An EC2 API call failed. Fatal to the owning job only."""

    def __init__(self, operation: str, resource_id: str = "", message: str = ""):
        self.operation = operation
        self.resource_id = resource_id
        detail = f"{operation} failed"
        if resource_id:
            detail += f" for {resource_id}"
        if message:
            detail += f": {message}"
        super().__init__(detail)


class PollTimeoutError(AmiRefreshError):
    """A state poll exceeded its explicitly configured ceiling."""
