"""Tests for per-chunk task extraction."""

from unittest.mock import MagicMock

import pytest

from upkeep.config import Config
from upkeep.errors import MalformedOutput, UpstreamError
from upkeep.extractor import ChunkExtractor, validate_tasks
from upkeep.models import RawTask


@pytest.fixture
def backend():
    return MagicMock()


@pytest.fixture
def extractor(backend):
    return ChunkExtractor(backend, Config())


class TestValidateTasks:

    def test_valid_items(self):
        tasks = validate_tasks([
            {"task_name": "Очистка фильтра", "periodicity": "каждые 6 месяцев",
             "instructions": ["Снять крышку", "Промыть фильтр"]},
        ])
        assert tasks == [RawTask(
            task_name="Очистка фильтра",
            periodicity="каждые 6 месяцев",
            instructions=["Снять крышку", "Промыть фильтр"],
        )]

    def test_drops_invalid_items(self):
        tasks = validate_tasks([
            {"task_name": "Check anode"},
            {"periodicity": "yearly"},
            {"task_name": "   "},
            "not an object",
            None,
            {"task_name": "Flush tank", "instructions": "Drain fully"},
        ])
        assert [t.task_name for t in tasks] == ["Check anode", "Flush tank"]
        assert tasks[1].instructions == ["Drain fully"]

    def test_missing_optional_fields_default(self):
        [task] = validate_tasks([{"task_name": "Inspect", "periodicity": None, "instructions": None}])
        assert task.periodicity == ""
        assert task.instructions == []


class TestChunkExtractor:

    def test_extracts_tasks(self, backend, extractor):
        backend.generate.return_value = (
            '```json\n[{"task_name": "Замена анода", "periodicity": "раз в год", '
            '"instructions": ["Слить воду"]}]\n```'
        )

        tasks = extractor.extract("Раздел 7. Обслуживание ...")

        assert len(tasks) == 1
        assert tasks[0].task_name == "Замена анода"
        assert tasks[0].periodicity == "раз в год"

    def test_uses_chunk_prompt_and_settings(self, backend):
        config = Config(chunk_prompt="extract tasks", max_tokens=1234)
        backend.generate.return_value = "[]"

        ChunkExtractor(backend, config).extract("chunk text")

        backend.generate.assert_called_once_with(
            "extract tasks", "chunk text", temperature=0.1, max_tokens=1234
        )

    def test_blank_chunk_skips_backend(self, backend, extractor):
        assert extractor.extract("   \n ") == []
        backend.generate.assert_not_called()

    def test_non_json_output_yields_empty(self, backend, extractor):
        backend.generate.return_value = "В этом фрагменте нет регламентных работ."
        assert extractor.extract("text") == []

    def test_object_instead_of_array_yields_empty(self, backend, extractor):
        backend.generate.return_value = '{"task_name": "Clean"}'
        assert extractor.extract("text") == []

    @pytest.mark.parametrize("error", [
        UpstreamError("completion", 500, "Internal Server Error"),
        UpstreamError("completion", None, "timed out after 60.0s"),
        MalformedOutput("completion", "unexpected response shape"),
        RuntimeError("boom"),
    ])
    def test_backend_failure_yields_empty(self, backend, extractor, error):
        backend.generate.side_effect = error
        assert extractor.extract("text") == []

    def test_invalid_items_dropped(self, backend, extractor):
        backend.generate.return_value = '[{"task_name": "Keep"}, {"instructions": ["orphan"]}, 42]'
        tasks = extractor.extract("text")
        assert [t.task_name for t in tasks] == ["Keep"]
