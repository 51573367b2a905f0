"""Consolidation of per-chunk tasks into one schedule (the reduce step)."""

import json
import logging
from typing import Any, Sequence

from upkeep.completion import CompletionBackend, parse_completion_json
from upkeep.config import Config
from upkeep.errors import MalformedOutput
from upkeep.extractor import validate_tasks
from upkeep.models import EquipmentDraft, RawTask

logger = logging.getLogger(__name__)


def normalize_draft(data: dict[str, Any], max_rules: int) -> EquipmentDraft:
    """Coerce a merge response into an EquipmentDraft with every field defined."""
    schedule = data.get("maintenance_schedule")
    if not isinstance(schedule, list):
        schedule = []
    rules = data.get("important_rules")
    if not isinstance(rules, (list, str)):
        rules = None

    draft = EquipmentDraft.model_validate({
        "name": data.get("name"),
        "type": data.get("type"),
        "important_rules": rules,
    })
    draft.maintenance_schedule = validate_tasks(schedule)
    draft.important_rules = draft.important_rules[:max_rules]
    return draft


def render_merge_prompt(template: str, max_rules: int) -> str:
    """Fill {max_rules} into the merge prompt.

    Custom prompts often carry literal JSON braces; those are left untouched.
    """
    try:
        return template.format(max_rules=max_rules)
    except (KeyError, IndexError, ValueError):
        return template.replace("{max_rules}", str(max_rules))


class Merger:
    """Deduplicate tasks and pick the top safety rules with one completion call.

    Unlike chunk extraction, failures propagate: an unmerged list may hold
    duplicated or contradictory intervals.
    """

    def __init__(self, backend: CompletionBackend, config: Config):
        self.backend = backend
        self.config = config

    def merge(self, tasks: Sequence[RawTask], rules: Sequence[str]) -> EquipmentDraft:
        """Merge raw tasks and rules into an EquipmentDraft.

        Raises:
            UpstreamError: The completion call failed
            MalformedOutput: The completion is not a JSON object
        """
        payload = json.dumps(
            {"tasks": [t.model_dump() for t in tasks], "rules": list(rules)},
            ensure_ascii=False,
        )
        system_prompt = render_merge_prompt(self.config.merge_prompt, self.config.max_rules)

        logger.info(f"Merging {len(tasks)} tasks and {len(rules)} rules")
        response = self.backend.generate(
            system_prompt,
            payload,
            temperature=self.config.merge_temperature,
            max_tokens=self.config.max_tokens,
        )

        data = parse_completion_json(response, capability="merge")
        if not isinstance(data, dict):
            raise MalformedOutput("merge", f"expected a JSON object, got {type(data).__name__}")

        draft = normalize_draft(data, self.config.max_rules)
        logger.info(
            f"Merge produced {len(draft.maintenance_schedule)} tasks, "
            f"{len(draft.important_rules)} rules"
        )
        return draft
