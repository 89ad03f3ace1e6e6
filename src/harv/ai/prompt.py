"""Prompt construction for time-entry generation."""

from __future__ import annotations

import json

from harv.ai.context import AiContext

PROMPT_TEMPLATE = """\
You are a time tracking assistant. Turn the user's work summary into time
entries for Harvest.

USER'S WORK SUMMARY:
{summary}

CONTEXT:
- Target hours for today: {target_hours:.2f}
- Already logged: {logged_hours:.2f} hours
- Remaining to log: {remaining_hours:.2f} hours

{existing_entries}

AVAILABLE PROJECTS:
{projects}

AVAILABLE TASKS (per project):
{tasks}

INSTRUCTIONS:
1. Identify the distinct work activities in the summary.
2. Allocate the remaining {remaining_hours:.2f} hours across them.
3. Pick the best matching project_id and task_id for each activity, using only
   the ids listed above. The task must be assigned to the chosen project.
4. Prefer 2-5 entries unless the user clearly describes more activities.
5. Write clear, professional notes describing what was done.
6. Use decimal hours (1.5 means 1 hour 30 minutes).
7. The hours should add up to roughly {remaining_hours:.2f}.

MATCHING HINTS:
- Match projects on keywords and project names mentioned in the summary.
- When unsure, prefer general or administrative tasks.
- Typical task names: "Development" for coding, "Meeting" for calls,
  "Planning" for design work, "Bug Fix" for debugging, "Code Review" for
  reviewing pull requests, "Documentation" for writing docs.

OUTPUT FORMAT:
Respond with a single JSON object with a "time_entries" array. Each entry has:
- "description": what was done (string)
- "project_id": a project id from the list above (number)
- "task_id": a task id from the list above (number)
- "hours": decimal hours (number)
- "confidence": your confidence from 0.0 to 1.0 (number, optional)

Example:
{{
  "time_entries": [
    {{"description": "Implemented login flow", "project_id": 12345, "task_id": 67890, "hours": 3.5, "confidence": 0.9}},
    {{"description": "Sprint planning meeting", "project_id": 12345, "task_id": 67891, "hours": 1.0, "confidence": 1.0}}
  ]
}}
"""


def _existing_entries(context: AiContext) -> str:
    if not context.existing_entries:
        return "No time entries logged yet today."
    lines = [
        f"- {entry.hours or 0.0:.2f}h: {entry.notes or 'No description'}"
        for entry in context.existing_entries
    ]
    return f"Already logged today ({context.logged_hours:.2f}h total):\n" + "\n".join(lines)


def build_prompt(summary: str, context: AiContext) -> str:
    """Embed the summary, the project/task catalog and the remaining hours."""
    projects = [
        {"id": project.id, "name": project.name, "code": project.code}
        for project in context.projects
    ]
    tasks = [
        {"project_id": assignment.project_id, "task_id": assignment.task.id, "name": assignment.task.name}
        for assignment in context.tasks
    ]
    return PROMPT_TEMPLATE.format(
        summary=summary.strip(),
        target_hours=context.target_hours,
        logged_hours=context.logged_hours,
        remaining_hours=context.remaining_hours,
        existing_entries=_existing_entries(context),
        projects=json.dumps(projects, indent=2),
        tasks=json.dumps(tasks, indent=2),
    )
