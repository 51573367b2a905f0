"""Local persistence of equipment and settings in a single JSON file."""

import json
import logging
from pathlib import Path

from upkeep.models import Equipment, Settings

logger = logging.getLogger(__name__)


class JsonStore:
    """Whole-collection read/replace store backed by one JSON file.

    Layout: ``{"equipment": [...], "settings": {...}}``.
    """

    def __init__(self, path: str):
        self.store_path = Path(path).expanduser()
        self._data: dict = {}
        self._load()

    def _load(self):
        """Load the store if it exists."""
        if self.store_path.exists():
            with open(self.store_path, encoding="utf-8") as f:
                self._data = json.load(f)

    def get_equipment(self) -> list[Equipment]:
        return [Equipment.model_validate(e) for e in self._data.get("equipment", [])]

    def save_equipment(self, equipment: list[Equipment]):
        """Replace the stored equipment list."""
        self._data["equipment"] = [e.model_dump(mode="json") for e in equipment]
        self.save()

    def get_settings(self) -> Settings:
        return Settings.model_validate(self._data.get("settings", {}))

    def save_settings(self, settings: Settings):
        """Replace the stored settings."""
        self._data["settings"] = settings.model_dump()
        self.save()

    def save(self):
        """Save the store using atomic write.

        Uses temp file + rename to ensure atomicity.
        """
        self.store_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.store_path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, ensure_ascii=False)
        tmp.replace(self.store_path)
        logger.debug(f"Saved store to {self.store_path}")
