"""Parsing of user-entered durations."""

from __future__ import annotations

from harv.errors import ProposalValidationError

MAX_HOURS = 24.0


def _parse_colon(text: str) -> float:
    parts = text.split(":")
    if len(parts) != 2:
        raise ProposalValidationError("Colon format must be H:MM (e.g., 1:30)")

    hours_part, minutes_part = (part.strip() for part in parts)
    if not hours_part.isdigit():
        raise ProposalValidationError(f"Invalid hours value: '{hours_part}'")
    if not minutes_part.isdigit():
        raise ProposalValidationError(f"Invalid minutes value: '{minutes_part}'")

    minutes = int(minutes_part)
    if minutes >= 60:
        raise ProposalValidationError(f"Minutes must be between 0 and 59, got {minutes}")
    return int(hours_part) + minutes / 60


def parse_hours(text: str) -> float:
    """Parse ``1.5`` or ``1:30`` into decimal hours in ``(0, 24]``.

    Raises:
        ProposalValidationError: for empty, malformed or out-of-range input.
    """
    text = text.strip()
    if not text:
        raise ProposalValidationError("Hours input cannot be empty")

    if ":" in text:
        hours = _parse_colon(text)
    else:
        try:
            hours = float(text)
        except ValueError:
            raise ProposalValidationError(f"Invalid hours format: '{text}'")

    if hours != hours or hours <= 0:
        raise ProposalValidationError("Hours must be greater than 0")
    if hours > MAX_HOURS:
        raise ProposalValidationError("Hours cannot exceed 24")
    return hours


__all__ = ["MAX_HOURS", "parse_hours"]
