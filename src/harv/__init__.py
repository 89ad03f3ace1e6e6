"""harv - Harvest timers from git commits, Jira tickets and AI summaries."""

__version__ = "0.1.0"

from harv.errors import (
    ConfigurationError,
    HarvError,
    HarvestApiError,
    RemoteLookupError,
    RemoteMutationError,
    RepositoryError,
)
from harv.models import (
    Commit,
    PlaceholderTicket,
    Project,
    ProposedEntry,
    RunContext,
    Task,
    Ticket,
    TimeEntry,
)
from harv.tickets import extract_ticket_keys, extract_tickets

__all__ = [
    "__version__",
    "Commit",
    "ConfigurationError",
    "HarvError",
    "HarvestApiError",
    "PlaceholderTicket",
    "Project",
    "ProposedEntry",
    "RemoteLookupError",
    "RemoteMutationError",
    "RepositoryError",
    "RunContext",
    "Task",
    "Ticket",
    "TimeEntry",
    "extract_ticket_keys",
    "extract_tickets",
]
