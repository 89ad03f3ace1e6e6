"""Parsing and validation of AI responses."""

from __future__ import annotations

import json
from typing import Any, Iterable

import structlog

from harv.ai.context import AiContext
from harv.errors import ProposalValidationError
from harv.models import ProposedEntry
from harv.timeparse import MAX_HOURS

logger = structlog.get_logger()

_decoder = json.JSONDecoder()


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Return the first well-formed JSON object in ``text``.

    Surrounding prose and markdown code fences are skipped.
    """
    start = text.find("{")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            pass
        else:
            if isinstance(value, dict):
                return value
        start = text.find("{", start + 1)
    return None


def parse_response(text: str) -> list[Any]:
    """Return the raw ``time_entries`` items of a provider response.

    Raises:
        ProposalValidationError: if no usable object is present.
    """
    data = extract_json_object(text)
    if data is None:
        raise ProposalValidationError("No JSON object found in AI response")

    entries = data.get("time_entries")
    if not isinstance(entries, list):
        raise ProposalValidationError("AI response has no 'time_entries' array")
    return entries


def _as_id(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ProposalValidationError(f"{name} must be a number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    raise ProposalValidationError(f"{name} must be a number, got {value!r}")


def _as_number(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ProposalValidationError(f"{name} must be a number, got {value!r}")
    return float(value)


def validate_proposal(item: Any, context: AiContext) -> ProposedEntry:
    """Turn one raw item into a :class:`ProposedEntry` or raise ``ProposalValidationError``."""
    if not isinstance(item, dict):
        raise ProposalValidationError(f"Entry must be an object, got {item!r}")

    description = item.get("description")
    if not isinstance(description, str) or not description.strip():
        raise ProposalValidationError("Entry has an empty description")

    project_id = _as_id(item.get("project_id"), "project_id")
    task_id = _as_id(item.get("task_id"), "task_id")
    hours = _as_number(item.get("hours"), "hours")

    if not context.has_project(project_id):
        raise ProposalValidationError(f"Unknown project_id {project_id}")
    if not context.has_task(task_id):
        raise ProposalValidationError(f"Unknown task_id {task_id}")
    if not 0 < hours <= MAX_HOURS:
        raise ProposalValidationError(f"Invalid hours value: {hours}. Must be between 0 and 24.")

    confidence = item.get("confidence")
    if confidence is not None:
        confidence = _as_number(confidence, "confidence")
        if not 0.0 <= confidence <= 1.0:
            raise ProposalValidationError(f"Confidence must be between 0 and 1, got {confidence}")

    return ProposedEntry(
        description=description.strip(),
        project_id=project_id,
        task_id=task_id,
        hours=hours,
        confidence=confidence,
    )


def dedup_proposals(proposals: Iterable[ProposedEntry]) -> list[ProposedEntry]:
    seen = set()
    unique = []
    for proposal in proposals:
        key = proposal.dedup_key()
        if key in seen:
            logger.debug("Dropping duplicate proposal", description=proposal.description)
            continue
        seen.add(key)
        unique.append(proposal)
    return unique


def validate_proposals(items: Iterable[Any], context: AiContext) -> list[ProposedEntry]:
    """Validate every item, dropping (and logging) the ones that fail, then de-duplicate."""
    valid = []
    for item in items:
        try:
            valid.append(validate_proposal(item, context))
        except ProposalValidationError as e:
            logger.warning("Rejected AI proposal", reason=str(e))
    return dedup_proposals(valid)


def proposals_from_response(text: str, context: AiContext) -> list[ProposedEntry]:
    """Parse and validate a raw provider response. Malformed responses yield no proposals."""
    try:
        items = parse_response(text)
    except ProposalValidationError as e:
        logger.warning("Could not parse AI response", reason=str(e))
        logger.debug("Raw AI response", text=text)
        return []
    return validate_proposals(items, context)
