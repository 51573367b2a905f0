"""Due-state queries and completion marking over stored equipment."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Mapping, Sequence

from upkeep.models import Equipment, Task
from upkeep.periodicity import DEFAULT_POLICY, DuePolicy, is_overdue, next_due_date


@dataclass(frozen=True)
class TaskStatus:
    task: Task
    next_due: datetime
    overdue: bool


def task_status(
    task: Task,
    now: datetime | None = None,
    lexicon: Mapping[str, Sequence[str]] | None = None,
    policy: DuePolicy = DEFAULT_POLICY,
) -> TaskStatus:
    current = now or datetime.now(timezone.utc)
    return TaskStatus(
        task=task,
        next_due=next_due_date(task.last_completed_date, task.periodicity, lexicon, policy),
        overdue=is_overdue(task.last_completed_date, task.periodicity, current, lexicon, policy),
    )


def overdue_tasks(
    equipment: Equipment,
    now: datetime | None = None,
    lexicon: Mapping[str, Sequence[str]] | None = None,
    policy: DuePolicy = DEFAULT_POLICY,
) -> list[Task]:
    """Tasks that need doing: never completed, or past their due date."""
    current = now or datetime.now(timezone.utc)
    return [
        t for t in equipment.maintenance_schedule
        if is_overdue(t.last_completed_date, t.periodicity, current, lexicon, policy)
    ]


def complete_task(equipment: Equipment, task_id: str, when: datetime | None = None) -> Task:
    """Mark a task done, updating its last completion date in place.

    Raises:
        KeyError: If the equipment has no task with this id
    """
    for task in equipment.maintenance_schedule:
        if task.id == task_id:
            task.last_completed_date = when or datetime.now(timezone.utc)
            return task
    raise KeyError(f"No task {task_id} on equipment {equipment.id}")


def find_equipment(equipment: Sequence[Equipment], equipment_id: str) -> Equipment:
    """Look up equipment by id or unique id prefix.

    Raises:
        KeyError: If no record, or more than one, matches
    """
    matches = [e for e in equipment if e.id == equipment_id or e.id.startswith(equipment_id)]
    exact = [e for e in matches if e.id == equipment_id]
    if exact:
        return exact[0]
    if len(matches) != 1:
        raise KeyError(f"No unique equipment matches '{equipment_id}'")
    return matches[0]
