"""Periodicity parsing and due-date computation for maintenance tasks.

Task periodicity is stored as the phrase found in the manual ("каждые 6
месяцев", "every 2 years") and parsed on demand. Nothing here keeps state:
the same inputs always give the same outputs.
"""

from __future__ import annotations

import calendar
import enum
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Mapping, Sequence

from upkeep.lexicon import DEFAULT_LEXICON

_INTEGER_RE = re.compile(r"\d+")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Due date for intervals that run past the calendar (e.g. "15000 km or yearly")
FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)


class Unit(str, enum.Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


# Lexicon unit name -> (interval unit, amount multiplier)
_UNIT_SPECS: dict[str, tuple[Unit, int]] = {
    "day": (Unit.DAY, 1),
    "week": (Unit.DAY, 7),
    "month": (Unit.MONTH, 1),
    "half_year": (Unit.MONTH, 6),
    "year": (Unit.YEAR, 1),
}


@dataclass(frozen=True)
class ParsedPeriodicity:
    """A typed recurrence interval. Derived from a phrase, never stored."""

    amount: int
    unit: Unit

    def __post_init__(self) -> None:
        if self.amount < 1:
            raise ValueError(f"amount must be >= 1, got {self.amount}")


@dataclass(frozen=True)
class DuePolicy:
    """Fallbacks used when a phrase has no unit or a task was never completed.

    ``baseline`` stands in for the completion date of a task that has never
    been done, so its first due date lies in the past.
    """

    default_amount: int = 1
    default_unit: Unit = Unit.YEAR
    baseline: datetime = field(default=EPOCH)

    @property
    def default_interval(self) -> ParsedPeriodicity:
        return ParsedPeriodicity(self.default_amount, self.default_unit)


DEFAULT_POLICY = DuePolicy()


def policy_from_config(config) -> DuePolicy:
    """Build a DuePolicy from Config.default_interval_* settings."""
    return DuePolicy(
        default_amount=max(1, config.default_interval_amount),
        default_unit=Unit(config.default_interval_unit),
    )


def _classify_unit(
    phrase: str, lexicon: Mapping[str, Sequence[str]]
) -> tuple[Unit, int] | None:
    """Return the unit whose morpheme appears earliest in the phrase."""
    best: tuple[int, str] | None = None
    for name, morphemes in lexicon.items():
        if name not in _UNIT_SPECS:
            continue
        for morpheme in morphemes:
            index = phrase.find(morpheme)
            if index != -1 and (best is None or index < best[0]):
                best = (index, name)
    if best is None:
        return None
    return _UNIT_SPECS[best[1]]


def parse(
    phrase: str | None,
    lexicon: Mapping[str, Sequence[str]] | None = None,
    policy: DuePolicy = DEFAULT_POLICY,
) -> ParsedPeriodicity | None:
    """Parse a free-text recurrence phrase into a typed interval.

    Args:
        phrase: Recurrence phrase as written in the manual
        lexicon: Unit morphemes (defaults to the built-in ru/en lexicon)
        policy: Supplies the interval used when no unit is recognized

    Returns:
        ParsedPeriodicity, or None for an empty phrase
    """
    if phrase is None or not phrase.strip():
        return None

    text = phrase.lower()
    classified = _classify_unit(text, lexicon or DEFAULT_LEXICON)
    if classified is None:
        return policy.default_interval

    unit, multiplier = classified
    match = _INTEGER_RE.search(text)
    amount = int(match.group(0)) if match else 1
    return ParsedPeriodicity(max(amount, 1) * multiplier, unit)


def add_months(moment: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the end of the target month."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def next_due_date(
    last_completed: datetime | None,
    phrase: str | None,
    lexicon: Mapping[str, Sequence[str]] | None = None,
    policy: DuePolicy = DEFAULT_POLICY,
) -> datetime:
    """Compute when a task is next due.

    The interval is counted from ``last_completed``, or from the policy
    baseline when the task has never been completed. An interval that
    overflows the calendar gives FAR_FUTURE.
    """
    base = _as_utc(last_completed) if last_completed is not None else policy.baseline
    interval = parse(phrase, lexicon, policy) or policy.default_interval

    try:
        if interval.unit is Unit.DAY:
            return base + timedelta(days=interval.amount)
        if interval.unit is Unit.MONTH:
            return add_months(base, interval.amount)
        return add_months(base, interval.amount * 12)
    except (OverflowError, ValueError):
        return FAR_FUTURE


def is_overdue(
    last_completed: datetime | None,
    phrase: str | None,
    now: datetime | None = None,
    lexicon: Mapping[str, Sequence[str]] | None = None,
    policy: DuePolicy = DEFAULT_POLICY,
) -> bool:
    """True if the task was never completed or its due date has passed."""
    if last_completed is None:
        return True
    current = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    return current > next_due_date(last_completed, phrase, lexicon, policy)
