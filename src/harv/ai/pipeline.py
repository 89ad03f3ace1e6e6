"""AI-assisted time entry generation: propose, approve, create."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Sequence

import structlog

from harv.ai.context import AiContext, gather_context
from harv.ai.parsing import proposals_from_response
from harv.ai.prompt import build_prompt
from harv.ai.providers import AIProvider
from harv.errors import ProposalValidationError, RemoteMutationError
from harv.models import ProposedEntry, RunContext, TimeEntry
from harv.prompts import Prompter
from harv.timeparse import parse_hours

logger = structlog.get_logger()

MAX_DESCRIPTION_LENGTH = 500


@dataclass
class CreationFailure:
    proposal: ProposedEntry
    error: str


@dataclass
class GenerationReport:
    """Outcome of one generate run."""

    context: AiContext
    proposals: list[ProposedEntry] = field(default_factory=list)
    approved: list[ProposedEntry] = field(default_factory=list)
    created: list[TimeEntry] = field(default_factory=list)
    failures: list[CreationFailure] = field(default_factory=list)

    @property
    def created_hours(self) -> float:
        return sum(entry.hours or 0.0 for entry in self.created)


def format_proposal(proposal: ProposedEntry, context: AiContext) -> str:
    project = context.project_names.get(proposal.project_id, f"project {proposal.project_id}")
    label = f"{proposal.hours:.2f}h - {proposal.description} ({project})"
    if proposal.confidence is not None:
        label += f" [confidence: {proposal.confidence * 100:.0f}%]"
    return label


class GenerationPipeline:
    """Turns a free-text summary into stopped time entries."""

    def __init__(
        self,
        harvest,
        provider: AIProvider,
        prompter: Prompter,
        ctx: RunContext,
    ) -> None:
        self.harvest = harvest
        self.provider = provider
        self.prompter = prompter
        self.ctx = ctx

    def propose(self, summary: str, context: AiContext) -> list[ProposedEntry]:
        prompt = build_prompt(summary, context)
        logger.info("Requesting time entries", provider=self.provider.name.value)
        return proposals_from_response(self.provider.complete(prompt), context)

    def _footer(self, proposals: Sequence[ProposedEntry], context: AiContext):
        def footer(chosen: Sequence[int]) -> str:
            total = sum(proposals[i].hours for i in chosen)
            return (
                f"Total: {total:.2f}h selected "
                f"(remaining today: {context.remaining_hours:.2f}h)"
            )

        return footer

    def _edit(self, proposal: ProposedEntry) -> ProposedEntry:
        while True:
            answer = self.prompter.text(
                f"Hours for '{proposal.description}'", default=f"{proposal.hours:.2f}"
            )
            try:
                hours = parse_hours(answer)
                break
            except ProposalValidationError as e:
                logger.warning("Invalid hours", error=str(e))

        while True:
            description = self.prompter.text("Description", default=proposal.description).strip()
            if description and len(description) <= MAX_DESCRIPTION_LENGTH:
                break
            logger.warning(
                "Description must be between 1 and 500 characters", length=len(description)
            )

        return ProposedEntry(
            description=description,
            project_id=proposal.project_id,
            task_id=proposal.task_id,
            hours=hours,
            confidence=proposal.confidence,
        )

    def approve(
        self,
        proposals: list[ProposedEntry],
        context: AiContext,
        auto_approve: bool = False,
    ) -> list[ProposedEntry]:
        """Let the user pick, optionally edit and confirm the entries to create."""
        if not proposals or auto_approve:
            return list(proposals)

        chosen = self.prompter.multi_select(
            "Select the entries to create",
            [format_proposal(p, context) for p in proposals],
            defaults=[True] * len(proposals),
            footer=self._footer(proposals, context),
        )
        selected = [proposals[i] for i in chosen]
        if not selected:
            return []

        if self.prompter.confirm("Edit any of the selected entries?", default=False):
            selected = [self._edit(p) for p in selected]

        total = sum(p.hours for p in selected)
        if not self.prompter.confirm(
            f"Create {len(selected)} time entries totalling {total:.2f}h?", default=True
        ):
            return []
        return selected

    def _create_one(
        self, proposal: ProposedEntry, context: AiContext, today: date | None
    ) -> TimeEntry:
        try:
            return self.harvest.create_stopped_entry(
                proposal.description,
                proposal.project_id,
                proposal.task_id,
                proposal.hours,
                self.ctx,
                spent_date=today,
            )
        except RemoteMutationError as e:
            fallback = context.fallback_assignment()
            if e.status_code != 422 or fallback is None:
                raise
            if fallback == (proposal.project_id, proposal.task_id):
                raise
            project_id, task_id = fallback
            logger.warning(
                "Invalid project/task assignment, retrying with most recent entry's",
                description=proposal.description,
                project_id=project_id,
                task_id=task_id,
            )
            return self.harvest.create_stopped_entry(
                proposal.description,
                project_id,
                task_id,
                proposal.hours,
                self.ctx,
                spent_date=today,
            )

    def create(
        self,
        approved: Sequence[ProposedEntry],
        context: AiContext,
        today: date | None = None,
    ) -> tuple[list[TimeEntry], list[CreationFailure]]:
        """Create every approved entry; failures are collected, never fatal."""
        created: list[TimeEntry] = []
        failures: list[CreationFailure] = []
        for proposal in approved:
            try:
                created.append(self._create_one(proposal, context, today))
            except RemoteMutationError as e:
                logger.warning(
                    "Failed to create time entry", description=proposal.description, error=str(e)
                )
                failures.append(CreationFailure(proposal=proposal, error=str(e)))
        return created, failures

    def run(
        self,
        summary: str,
        target_hours: float,
        auto_approve: bool = False,
        today: date | None = None,
    ) -> GenerationReport:
        context = gather_context(self.harvest, target_hours, today=today)
        report = GenerationReport(context=context)
        report.proposals = self.propose(summary, context)
        report.approved = self.approve(report.proposals, context, auto_approve=auto_approve)
        report.created, report.failures = self.create(report.approved, context, today=today)
        return report
