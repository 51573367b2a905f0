"""Per-chunk maintenance task extraction (the map step)."""

import logging

from pydantic import ValidationError as SchemaError

from upkeep.completion import CompletionBackend, parse_completion_json
from upkeep.config import Config
from upkeep.models import RawTask

logger = logging.getLogger(__name__)


def validate_tasks(items: list) -> list[RawTask]:
    """Validate candidate task records, dropping any that fail the schema."""
    tasks = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.debug(f"Dropping task #{index}: not an object")
            continue
        try:
            tasks.append(RawTask.model_validate(item))
        except SchemaError as e:
            logger.debug(f"Dropping task #{index}: {e.error_count()} validation error(s)")
    return tasks


class ChunkExtractor:
    """Extract candidate maintenance tasks from one chunk of manual text.

    A bad chunk must not sink the whole document: every failure (upstream
    error, timeout, non-JSON or non-array output) yields an empty list.
    """

    def __init__(self, backend: CompletionBackend, config: Config):
        self.backend = backend
        self.config = config

    def extract(self, chunk: str) -> list[RawTask]:
        if not chunk.strip():
            return []

        try:
            response = self.backend.generate(
                self.config.chunk_prompt,
                chunk,
                temperature=self.config.chunk_temperature,
                max_tokens=self.config.max_tokens,
            )
            data = parse_completion_json(response)
        except Exception as e:
            logger.warning(f"Chunk extraction failed, skipping chunk: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Chunk extraction returned {type(data).__name__}, expected array; skipping chunk")
            return []

        tasks = validate_tasks(data)
        if self.config.verbose:
            logger.info(f"Chunk yielded {len(tasks)} of {len(data)} candidate tasks")
        return tasks
