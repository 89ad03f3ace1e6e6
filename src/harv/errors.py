"""Exception hierarchy for harv."""

from __future__ import annotations


class HarvError(Exception):
    """Base class for all harv errors."""


class ConfigurationError(HarvError):
    """Missing or invalid configuration. Fatal before any network call."""


class RepositoryError(HarvError):
    """A git repository could not be opened or read."""

    def __init__(self, path: str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path


class RemoteLookupError(HarvError):
    """An issue-tracker lookup failed."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(message)
        self.key = key


class TicketNotFoundError(RemoteLookupError):
    """The ticket key does not exist on the tracker."""


class TrackerUnauthorizedError(RemoteLookupError):
    """The tracker rejected the credentials (401)."""


class TrackerForbiddenError(RemoteLookupError):
    """The credentials lack access to the ticket (403)."""


class TrackerNetworkError(RemoteLookupError):
    """Transport failure or timeout talking to the tracker."""


class HarvestApiError(HarvError):
    """A time-tracking API call failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteMutationError(HarvestApiError):
    """A create/stop/restart call against the time-tracking API failed."""


class ProposalValidationError(HarvError):
    """An AI response or proposed entry failed validation."""


class AIProviderError(HarvError):
    """The AI provider returned an error."""


class UserCancelledError(HarvError):
    """The user aborted an interactive prompt."""

    def __init__(self, message: str = "Cancelled") -> None:
        super().__init__(message)


__all__ = [
    "AIProviderError",
    "ConfigurationError",
    "HarvError",
    "HarvestApiError",
    "ProposalValidationError",
    "RemoteLookupError",
    "RemoteMutationError",
    "RepositoryError",
    "TicketNotFoundError",
    "TrackerForbiddenError",
    "TrackerNetworkError",
    "TrackerUnauthorizedError",
    "UserCancelledError",
]
