"""Markdown report writing for equipment maintenance schedules."""

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Mapping, Sequence

from upkeep.models import Equipment
from upkeep.periodicity import DEFAULT_POLICY, DuePolicy
from upkeep.schedule import task_status

logger = logging.getLogger(__name__)


def _slug(name: str) -> str:
    slug = re.sub(r"[^\w-]+", "-", name.strip().lower()).strip("-")
    return slug or "equipment"


def render_equipment_markdown(
    equipment: Equipment,
    now: datetime | None = None,
    lexicon: Mapping[str, Sequence[str]] | None = None,
    policy: DuePolicy = DEFAULT_POLICY,
) -> str:
    """
    Render an equipment record and its schedule as markdown.

    Args:
        equipment: Equipment to render
        now: Reference time for overdue marks (defaults to current UTC time)
        lexicon: Periodicity unit lexicon
        policy: Fallback interval and never-completed baseline

    Returns:
        Markdown text
    """
    current = now or datetime.now(timezone.utc)
    statuses = [task_status(t, current, lexicon, policy) for t in equipment.maintenance_schedule]
    overdue_count = sum(1 for s in statuses if s.overdue)

    lines = []

    # Header
    lines.append(f"# {equipment.name}")
    lines.append("")
    type_text = equipment.type or "—"
    location_text = equipment.location or "—"
    lines.append(f"**Type:** {type_text} | **Location:** {location_text} | **ID:** `{equipment.id[:8]}`")
    status = f"{overdue_count} task(s) due" if overdue_count else "OK"
    lines.append(f"**Status:** {status}")
    lines.append("")

    # Rules section
    if equipment.important_rules:
        lines.append("## Important Rules")
        for rule in equipment.important_rules:
            lines.append(f"- {rule}")
        lines.append("")

    # Schedule section
    lines.append("## Maintenance Schedule")
    if not statuses:
        lines.append("_No tasks._")
    for s in statuses:
        box = "[ ]" if s.overdue else "[x]"
        period = s.task.periodicity or "unspecified"
        if s.task.last_completed_date is None:
            last = "never"
        else:
            last = s.task.last_completed_date.strftime("%Y-%m-%d")
        due = "now" if s.overdue else s.next_due.strftime("%Y-%m-%d")
        lines.append(
            f"- {box} **{s.task.task_name}** — {period} "
            f"(last: {last}, next: {due}, id: `{s.task.id[:8]}`)"
        )
        for i, step in enumerate(s.task.instructions, 1):
            lines.append(f"    {i}. {step}")
    lines.append("")

    return "\n".join(lines).rstrip() + "\n"


def write_equipment_markdown(
    equipment: Equipment,
    output_dir: str,
    now: datetime | None = None,
    lexicon: Mapping[str, Sequence[str]] | None = None,
    policy: DuePolicy = DEFAULT_POLICY,
) -> str:
    """
    Write the equipment report to ``<output_dir>/<slug>.md``.

    Returns:
        Path to the generated markdown file
    """
    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    filepath = output_path / f"{_slug(equipment.name)}-{equipment.id[:8]}.md"
    filepath.write_text(render_equipment_markdown(equipment, now, lexicon, policy), encoding="utf-8")
    logger.debug(f"Wrote report {filepath}")

    return str(filepath)
