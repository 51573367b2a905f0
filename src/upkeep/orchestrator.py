"""Extraction job state machine: document -> chunks -> tasks -> merged schedule.

One ``ExtractionOrchestrator`` owns one ``ExtractionJob``. Phases only move
forward (Extracting -> Analyzing -> Merging) and every run ends back in
Idle, whether it succeeded, failed or was cancelled. Search is a separate
Searching -> Idle sub-flow whose results the user picks from before a run.
"""

from __future__ import annotations

import enum
import logging
import threading
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from upkeep.chunker import split_text
from upkeep.config import Config
from upkeep.errors import ExtractionCancelled, JobInProgress, UpkeepError, ValidationError
from upkeep.extractor import ChunkExtractor
from upkeep.merger import Merger
from upkeep.models import Equipment, EquipmentDraft, RawTask, SearchResult, Settings, Task
from upkeep.relay import RelayClient
from upkeep.sources import DocumentText, read_document

logger = logging.getLogger(__name__)

DEFAULT_EQUIPMENT_NAME = "Новое устройство"
DEFAULT_NETWORK_NAME = "Устройство из сети"
DEFAULT_EQUIPMENT_TYPE = "Оборудование"
DEFAULT_LOCATION = "Дом"


class Phase(str, enum.Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    EXTRACTING = "extracting"
    ANALYZING = "analyzing"
    MERGING = "merging"


_PIPELINE_ORDER = (Phase.IDLE, Phase.EXTRACTING, Phase.ANALYZING, Phase.MERGING)


class SourceKind(str, enum.Enum):
    URL = "url"
    FILE = "file"
    SEARCH_RESULT = "search_result"


@dataclass(frozen=True)
class Source:
    """Where the manual comes from."""

    kind: SourceKind
    location: str
    filename: str = ""

    @classmethod
    def from_search_result(cls, result: SearchResult) -> "Source":
        return cls(SourceKind.SEARCH_RESULT, result.url)


@dataclass
class ExtractionJob:
    """Observable state of the current job."""

    phase: Phase = Phase.IDLE
    progress_percent: int = 0
    error: Exception | None = None


def new_id() -> str:
    return uuid.uuid4().hex


def assemble_equipment(
    draft: EquipmentDraft,
    source: Source,
    model: str = "",
    location: str = "",
) -> Equipment:
    """Build an Equipment record from a merged draft.

    Name falls back through draft name, user-entered model, file name and a
    placeholder. Every task gets a fresh id and has never been completed.
    """
    if source.kind is SourceKind.FILE:
        guess = Path(source.filename or source.location).stem
    else:
        guess = DEFAULT_NETWORK_NAME
    name = draft.name or model.strip() or guess or DEFAULT_EQUIPMENT_NAME

    return Equipment(
        id=new_id(),
        name=name,
        type=draft.type or DEFAULT_EQUIPMENT_TYPE,
        location=location.strip() or DEFAULT_LOCATION,
        maintenance_schedule=[
            Task(
                id=new_id(),
                task_name=t.task_name,
                periodicity=t.periodicity,
                instructions=list(t.instructions),
                last_completed_date=None,
            )
            for t in draft.maintenance_schedule
        ],
        important_rules=list(draft.important_rules),
    )


class ExtractionOrchestrator:
    """Drives one extraction job at a time and reports its progress.

    Args:
        config: Runtime configuration
        settings: Capability credentials
        relay: Search and URL text extraction
        extractor: Map step
        merger: Reduce step
        on_change: Called with the job after every phase or progress change
    """

    def __init__(
        self,
        config: Config,
        settings: Settings,
        relay: RelayClient,
        extractor: ChunkExtractor,
        merger: Merger,
        on_change: Callable[[ExtractionJob], None] | None = None,
    ):
        self.config = config
        self.settings = settings
        self.relay = relay
        self.extractor = extractor
        self.merger = merger
        self.on_change = on_change
        self.job = ExtractionJob()
        self._cancelled = threading.Event()
        self._lock = threading.Lock()

    def cancel(self) -> None:
        """Ask the running job to stop after the in-flight call returns."""
        if self.job.phase is not Phase.IDLE:
            logger.info("Cancellation requested")
            self._cancelled.set()

    def search(self, model: str) -> list[SearchResult]:
        """Find candidate manuals for a model name (Searching -> Idle)."""
        if not model.strip():
            raise ValidationError("Model name is required for search")
        self._start(Phase.SEARCHING)
        try:
            return self.relay.search(model.strip(), self.settings)
        except Exception as e:
            self.job.error = e
            raise
        finally:
            self._finish()

    def run(self, source: Source, model: str = "", location: str = "") -> Equipment:
        """Turn a manual into an Equipment record with a maintenance schedule.

        Raises:
            JobInProgress: Another job has not returned to Idle yet
            ValidationError: Credentials are missing
            ExtractionCancelled: cancel() was called during the job
            UpkeepError: Any extraction, upstream or merge failure
        """
        self._start(Phase.EXTRACTING)
        try:
            document = self._extract(source)
            self._check_cancelled()
            chunks = split_text(
                document.text, self.config.max_chunk_size, self.config.chunk_overlap
            )
            logger.info(f"Document split into {len(chunks)} chunks")

            tasks = self._analyze(chunks)

            self._advance(Phase.MERGING)
            draft = self.merger.merge(tasks, document.rules)
            self._check_cancelled()

            equipment = assemble_equipment(draft, source, model, location)
            logger.info(
                f"Imported '{equipment.name}' with {len(equipment.maintenance_schedule)} tasks"
            )
            return equipment
        except Exception as e:
            self.job.error = e
            if isinstance(e, UpkeepError):
                logger.error(f"Extraction failed: {e.hint}")
            else:
                logger.exception("Extraction failed")
            raise
        finally:
            self._finish()

    def _extract(self, source: Source) -> DocumentText:
        if source.kind is SourceKind.FILE:
            return read_document(source.location, on_progress=self._set_progress)

        self._set_progress(10)
        text = self.relay.extract_text(source.location)
        self._set_progress(100)
        return DocumentText(text=text)

    def _analyze(self, chunks: list[str]) -> list[RawTask]:
        """Run the map step over chunks strictly in order."""
        self._advance(Phase.ANALYZING)
        tasks: list[RawTask] = []
        total = len(chunks)
        for i, chunk in enumerate(chunks):
            self._check_cancelled()
            chunk_tasks = self.extractor.extract(chunk)
            self._check_cancelled()
            tasks.extend(chunk_tasks)
            self._set_progress(round((i + 1) / total * 100))
            if self.config.verbose:
                logger.info(f"Processed chunk {i + 1}/{total}: {len(chunk_tasks)} tasks")
        return tasks

    def _start(self, phase: Phase) -> None:
        with self._lock:
            if self.job.phase is not Phase.IDLE:
                raise JobInProgress(f"A job is already {self.job.phase.value}")
            if phase is not Phase.SEARCHING:
                self._require_credentials()
            self._cancelled.clear()
            self.job.phase = phase
            self.job.progress_percent = 0
            self.job.error = None
        self._notify()

    def _require_credentials(self) -> None:
        if self.config.completion_backend == "relay" and not (
            self.settings.api_key and self.settings.folder_id
        ):
            raise ValidationError("YandexGPT credentials missing: set api_key and folder_id")

    def _advance(self, phase: Phase) -> None:
        current = _PIPELINE_ORDER.index(self.job.phase)
        if _PIPELINE_ORDER.index(phase) <= current:
            raise RuntimeError(f"Cannot move from {self.job.phase.value} back to {phase.value}")
        self.job.phase = phase
        self.job.progress_percent = 0
        self._notify()

    def _set_progress(self, percent: int) -> None:
        self.job.progress_percent = max(0, min(100, percent))
        self._notify()

    def _check_cancelled(self) -> None:
        if self._cancelled.is_set():
            raise ExtractionCancelled("Extraction cancelled")

    def _finish(self) -> None:
        self.job.phase = Phase.IDLE
        self.job.progress_percent = 0
        self._cancelled.clear()
        self._notify()

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self.job)


def build_orchestrator(
    config: Config,
    settings: Settings,
    on_change: Callable[[ExtractionJob], None] | None = None,
) -> ExtractionOrchestrator:
    """Wire transport, relay, completion backend and pipeline steps together."""
    from upkeep.completion import get_backend
    from upkeep.transport import select_transport

    transport = select_transport(config)
    backend = get_backend(config, transport, settings)
    return ExtractionOrchestrator(
        config,
        settings,
        relay=RelayClient(transport, config.relay_base_url),
        extractor=ChunkExtractor(backend, config),
        merger=Merger(backend, config),
        on_change=on_change,
    )
