"""
Prompt Architect Run History

A capped in-memory history of completed runs, and plain-text export of the
artifact.
"""

from collections import deque
from pathlib import Path
from typing import Callable, Deque, List, Optional

from prompt_architect.core.config import ArchitectConfig
from prompt_architect.core.constants import BLUEPRINT_FILENAME, DEFAULT_HISTORY_CAPACITY
from prompt_architect.core.logging_config import get_logger
from prompt_architect.pipeline.events import PipelineEvent, PipelineEventType, RunRecord

logger = get_logger("history")


class RunHistory:
    """Most recent RunRecords, newest first, bounded by capacity."""

    def __init__(self, capacity: int = DEFAULT_HISTORY_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._records: Deque[RunRecord] = deque(maxlen=capacity)

    @classmethod
    def from_config(cls, config: ArchitectConfig) -> 'RunHistory':
        return cls(config.pipeline.history_capacity)

    def add(self, record: RunRecord) -> None:
        self._records.appendleft(record)
        logger.debug(f"History holds {len(self._records)}/{self.capacity} runs")

    def attach(self, orchestrator) -> Callable[[], None]:
        """Record every completed run of an orchestrator; returns the unsubscriber."""

        def on_event(event: PipelineEvent) -> None:
            record = event.data.get("record")
            if event.type == PipelineEventType.RUN_COMPLETED and record is not None:
                self.add(record)

        return orchestrator.subscribe(on_event)

    @property
    def records(self) -> List[RunRecord]:
        return list(self._records)

    def latest(self) -> Optional[RunRecord]:
        return self._records[0] if self._records else None

    def find(self, run_id: str) -> Optional[RunRecord]:
        for record in self._records:
            if record.run_id == run_id:
                return record
        return None

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)


def write_blueprint(artifact: str, directory: Path, filename: str = BLUEPRINT_FILENAME) -> Path:
    """Write the artifact to a UTF-8 text file and return its path."""
    if not artifact:
        raise ValueError("No artifact to export")
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / filename
    path.write_text(artifact, encoding="utf-8")
    logger.info(f"Blueprint exported to {path}")
    return path
