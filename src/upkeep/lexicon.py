"""Periodicity lexicon loading (unit morphemes per locale)."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

UNIT_NAMES = ("day", "week", "month", "half_year", "year")

# Substring morphemes; matching is done on the lower-cased phrase.
DEFAULT_LEXICON: dict[str, tuple[str, ...]] = {
    "day": ("день", "дня", "дней", "сут", "ежедневн", "day", "daily"),
    "week": ("недел", "week"),
    "month": ("месяц", "месяч", "month"),
    "half_year": ("полгода", "полугод", "semiannual", "half-year", "half a year"),
    "year": ("год", "лет", "year", "annual"),
}


def load_lexicon(path: str) -> dict[str, tuple[str, ...]]:
    """
    Load a unit lexicon from a YAML file.

    Expected structure::

        units:
          day: [день, day]
          month: [месяц, month]
          year: [год, year]

    Units absent from the file keep their built-in morphemes.

    Args:
        path: Path to YAML lexicon file

    Returns:
        Mapping of unit name to morphemes.
        Returns the built-in lexicon if the file doesn't exist or is malformed.
    """
    filepath = Path(path).expanduser()

    if not filepath.exists():
        logger.warning(f"Lexicon file not found: {path}")
        return dict(DEFAULT_LEXICON)

    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Error loading lexicon from {path}: {e}")
        return dict(DEFAULT_LEXICON)

    units = data.get("units") if isinstance(data, dict) else None
    if not isinstance(units, dict):
        logger.warning(f"Lexicon {path} has no 'units' mapping, using built-in lexicon")
        return dict(DEFAULT_LEXICON)

    lexicon = dict(DEFAULT_LEXICON)
    for unit, morphemes in units.items():
        if unit not in UNIT_NAMES:
            logger.warning(f"Ignoring unknown unit '{unit}' in lexicon {path}")
            continue
        if not isinstance(morphemes, list):
            continue
        cleaned = tuple(str(m).lower() for m in morphemes if str(m).strip())
        if cleaned:
            lexicon[unit] = cleaned

    return lexicon
