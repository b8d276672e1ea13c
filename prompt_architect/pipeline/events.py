"""
Prompt Architect Pipeline Events

Observer channel for progressive rendering. Callbacks run synchronously on
the orchestrator's own task, in subscription order.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from prompt_architect.core.logging_config import get_logger

logger = get_logger("pipeline.events")


class PipelineEventType(Enum):
    """Kinds of pipeline events."""
    RUN_STARTED = "run_started"
    STAGE_STARTED = "stage_started"
    STAGE_RETRY = "stage_retry"
    STAGE_COMPLETED = "stage_completed"
    STAGE_FAILED = "stage_failed"
    RUN_COMPLETED = "run_completed"
    RUN_HALTED = "run_halted"
    RUN_RESET = "run_reset"


@dataclass
class PipelineEvent:
    """A single observable change in a pipeline run."""
    type: PipelineEventType
    run_id: Optional[str]
    stage_id: Optional[str] = None
    output: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "run_id": self.run_id,
            "stage_id": self.stage_id,
            "output": self.output,
            "data": dict(self.data),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RunRecord:
    """A run that completed with an artifact for a given media source."""
    run_id: str
    media_source: str
    media_kind: str
    artifact: str
    steering_modifier: str = ""
    completed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "media_source": self.media_source,
            "media_kind": self.media_kind,
            "artifact": self.artifact,
            "steering_modifier": self.steering_modifier,
            "completed_at": self.completed_at.isoformat(),
        }


PipelineObserver = Callable[[PipelineEvent], None]


class EventEmitter:
    """Fan-out of pipeline events to registered observers."""

    def __init__(self):
        self._observers: List[PipelineObserver] = []

    def subscribe(self, observer: PipelineObserver) -> Callable[[], None]:
        """Register an observer; returns a callable that unsubscribes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            self.unsubscribe(observer)

        return unsubscribe

    def unsubscribe(self, observer: PipelineObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def emit(self, event: PipelineEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"Pipeline observer error on {event.type.value}: {e}")
