"""Ticket enrichment and selection."""

from __future__ import annotations

from typing import Iterable, Protocol, Sequence

import structlog

from harv.errors import RemoteLookupError
from harv.models import PlaceholderTicket, SelectableTicket, Ticket
from harv.prompts import Prompter

logger = structlog.get_logger()


class IssueLookup(Protocol):
    def get_issue(self, key: str) -> Ticket: ...


def enrich_tickets(tracker: IssueLookup, keys: Iterable[str]) -> list[SelectableTicket]:
    """Resolve each key to a ticket, substituting a placeholder when a lookup fails.

    Lookups run one at a time in key order. Real tickets come first in the
    result, placeholders after, each group sorted by key.
    """
    resolved: list[SelectableTicket] = []
    for key in sorted(set(keys)):
        try:
            resolved.append(tracker.get_issue(key))
        except RemoteLookupError as e:
            logger.warning("Failed to fetch ticket", key=key, error=str(e))
            resolved.append(PlaceholderTicket(key=key, error=str(e)))

    return sorted(resolved, key=lambda t: (t.is_placeholder, t.key))


def select_ticket(
    tickets: Sequence[SelectableTicket],
    prompter: Prompter,
    auto_select_single: bool = True,
    auto_start: bool = False,
) -> SelectableTicket | None:
    """Choose the ticket to track.

    Returns ``None`` when there is nothing to choose from. A single ticket is
    taken as-is when ``auto_select_single`` is set; ``auto_start`` never
    prompts and takes the first ticket of the ordered list.
    """
    if not tickets:
        return None

    if len(tickets) == 1 and auto_select_single:
        logger.debug("Auto-selected single ticket", key=tickets[0].key)
        return tickets[0]

    if auto_start:
        logger.debug("Auto-start selected first ticket", key=tickets[0].key)
        return tickets[0]

    index = prompter.select("Select a ticket to track", [t.label for t in tickets])
    return tickets[index]


__all__ = ["IssueLookup", "enrich_tickets", "select_ticket"]
