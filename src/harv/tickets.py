"""Ticket key extraction from commit messages."""

from __future__ import annotations

import re
from typing import Iterable

# PROJECT-123, proj-456, Project-789; bounded on both sides so ABC-12x is ignored.
TICKET_KEY_RE = re.compile(r"\b([a-z]+)-(\d+)\b", re.IGNORECASE | re.ASCII)


def extract_ticket_keys(message: str) -> set[str]:
    """Return the normalized ticket keys found in a single commit message."""
    return {f"{prefix.upper()}-{number}" for prefix, number in TICKET_KEY_RE.findall(message)}


def extract_tickets(messages: Iterable[str], denylist: Iterable[str] = ()) -> list[str]:
    """Return the sorted, deduplicated ticket keys across many messages.

    Keys whose prefix appears in ``denylist`` (case-insensitive) are dropped,
    which keeps identifiers such as CVE-2024 or CWE-22 out of the result.
    """
    denied = {prefix.upper() for prefix in denylist}
    keys: set[str] = set()
    for message in messages:
        for key in extract_ticket_keys(message):
            if key.split("-", 1)[0] in denied:
                continue
            keys.add(key)
    return sorted(keys)


__all__ = ["TICKET_KEY_RE", "extract_ticket_keys", "extract_tickets"]
