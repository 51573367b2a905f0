"""Tests for due-state queries and task completion."""

from datetime import datetime, timezone

import pytest

from upkeep.models import Equipment, Task
from upkeep.periodicity import DuePolicy, Unit
from upkeep.schedule import complete_task, find_equipment, overdue_tasks, task_status

UTC = timezone.utc
NOW = datetime(2025, 6, 1, tzinfo=UTC)


@pytest.fixture
def boiler():
    return Equipment(
        id="a1b2c3d4e5",
        name="Ariston ABS 80",
        maintenance_schedule=[
            Task(id="t-filter", task_name="Очистка фильтра", periodicity="каждые 6 месяцев",
                 last_completed_date=datetime(2025, 3, 1, tzinfo=UTC)),
            Task(id="t-anode", task_name="Проверка анода", periodicity="раз в год",
                 last_completed_date=datetime(2024, 1, 1, tzinfo=UTC)),
            Task(id="t-valve", task_name="Проверка клапана", periodicity="раз в месяц"),
        ],
    )


class TestTaskStatus:

    def test_completed_recently(self, boiler):
        status = task_status(boiler.maintenance_schedule[0], NOW)
        assert status.overdue is False
        assert status.next_due == datetime(2025, 9, 1, tzinfo=UTC)

    def test_never_completed(self, boiler):
        status = task_status(boiler.maintenance_schedule[2], NOW)
        assert status.overdue is True
        assert status.next_due < NOW


class TestOverdueTasks:

    def test_overdue(self, boiler):
        assert [t.id for t in overdue_tasks(boiler, NOW)] == ["t-anode", "t-valve"]

    def test_policy_does_not_affect_never_completed(self, boiler):
        policy = DuePolicy(default_amount=10, default_unit=Unit.YEAR)
        assert "t-valve" in [t.id for t in overdue_tasks(boiler, NOW, policy=policy)]

    def test_no_tasks(self):
        assert overdue_tasks(Equipment(id="e", name="Empty"), NOW) == []


class TestCompleteTask:

    def test_marks_completed(self, boiler):
        task = complete_task(boiler, "t-valve", when=NOW)

        assert task.last_completed_date == NOW
        assert boiler.maintenance_schedule[2].last_completed_date == NOW
        assert "t-valve" not in [t.id for t in overdue_tasks(boiler, NOW)]

    def test_default_time_is_now(self, boiler):
        before = datetime.now(UTC)
        task = complete_task(boiler, "t-anode")
        assert task.last_completed_date >= before

    def test_unknown_task(self, boiler):
        with pytest.raises(KeyError):
            complete_task(boiler, "missing")


class TestFindEquipment:

    @pytest.fixture
    def equipment(self):
        return [
            Equipment(id="abc123", name="Boiler"),
            Equipment(id="abd456", name="Filter"),
            Equipment(id="abc", name="Short id"),
        ]

    def test_exact_id(self, equipment):
        assert find_equipment(equipment, "abc").name == "Short id"

    def test_unique_prefix(self, equipment):
        assert find_equipment(equipment, "abd").name == "Filter"

    def test_ambiguous_prefix(self, equipment):
        with pytest.raises(KeyError):
            find_equipment(equipment, "ab")

    def test_no_match(self, equipment):
        with pytest.raises(KeyError):
            find_equipment(equipment, "zzz")
