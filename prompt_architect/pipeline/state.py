"""
Prompt Architect Pipeline State

Per-run stage statuses, outputs and the accumulated text context. The
orchestrator is the only writer; callers read snapshots.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from prompt_architect.agents.directory import AgentDirectory
from prompt_architect.core.constants import INGEST_STAGE_ID
from prompt_architect.core.exceptions import InvalidTransitionError, PipelineError, UnknownStageError
from prompt_architect.core.logging_config import get_logger
from prompt_architect.media.preprocessor import MediaPayload

logger = get_logger("pipeline.state")


class StageStatus(Enum):
    """Lifecycle state of a pipeline stage."""
    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


# Allowed forward transitions; IDLE is only reached through a reset
_TRANSITIONS = {
    StageStatus.IDLE: {StageStatus.PROCESSING},
    StageStatus.PROCESSING: {StageStatus.COMPLETED, StageStatus.ERROR},
    StageStatus.COMPLETED: set(),
    StageStatus.ERROR: set(),
}


@dataclass
class Stage:
    """A pipeline position with its live status and output."""
    id: str
    name: str
    description: str
    status: StageStatus = StageStatus.IDLE
    output: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "output": self.output,
        }


def build_context_seed(base_directive: str, steering_modifier: str = "") -> str:
    """Seed text for a run's accumulated context."""
    return f"Global System Directive: {base_directive}\nUser Modification: {steering_modifier or ''}"


class AccumulatedContext:
    """Append-only text record of completed stage outputs, in order."""

    def __init__(self, seed: str):
        self._seed = seed
        self._text = seed
        self._entries: List[Tuple[str, str]] = []

    @property
    def seed(self) -> str:
        return self._seed

    @property
    def text(self) -> str:
        return self._text

    @property
    def entries(self) -> List[Tuple[str, str]]:
        return list(self._entries)

    def append(self, stage_id: str, output: str) -> None:
        self._entries.append((stage_id, output))
        self._text += f"\n[{stage_id}]: {output}"

    def __str__(self) -> str:
        return self._text


@dataclass
class PipelineRun:
    """One dispatch of the stage sequence over a MediaPayload."""
    media: MediaPayload
    base_directive: str
    steering_modifier: str
    stages: List[Stage]
    context: AccumulatedContext
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    in_progress: bool = False
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def directive(self) -> str:
        return self.context.seed


class PipelineStateStore:
    """
    Holds the current run's stages and exposes them for observation.

    Stages are rebuilt from the agent directory whenever a run begins, so a
    stage only re-enters IDLE through a fresh run or a reset.
    """

    INGEST_STAGE_NAME = "Media Ingest"
    INGEST_STAGE_DESCRIPTION = "Analyzing source encoding and extracting visual keyframes."

    def __init__(self, directory: AgentDirectory):
        self.directory = directory
        self._run: Optional[PipelineRun] = None
        self._idle_stages = self._build_stages()

    def _build_stages(self) -> List[Stage]:
        stages = [Stage(INGEST_STAGE_ID, self.INGEST_STAGE_NAME, self.INGEST_STAGE_DESCRIPTION)]
        stages.extend(Stage(entry.id, entry.name, entry.description) for entry in self.directory)
        return stages

    @property
    def run(self) -> Optional[PipelineRun]:
        return self._run

    @property
    def in_progress(self) -> bool:
        return self._run is not None and self._run.in_progress

    def begin_run(self, media: MediaPayload, base_directive: str, steering_modifier: str = "") -> PipelineRun:
        """Replace the current run with a fresh one; the ingest stage is completed."""
        run = PipelineRun(
            media=media,
            base_directive=base_directive,
            steering_modifier=steering_modifier or "",
            stages=self._build_stages(),
            context=AccumulatedContext(build_context_seed(base_directive, steering_modifier)),
            in_progress=True,
        )
        self._run = run

        ingest = self._stage(INGEST_STAGE_ID)
        self._transition(ingest, StageStatus.PROCESSING)
        self._transition(ingest, StageStatus.COMPLETED)
        ingest.output = f"{media.kind.value.upper()} ingested. Calibrating sensors..."

        logger.debug(f"Run {run.run_id} started with {len(run.stages)} stages")
        return run

    def finish_run(self, run_id: str) -> None:
        if self.is_current(run_id) and self._run.in_progress:
            self._run.in_progress = False
            self._run.finished_at = datetime.now()

    def reset(self) -> None:
        """Discard the current run; every stage reads as idle again."""
        if self._run is not None:
            logger.info(f"Run {self._run.run_id} discarded")
        self._run = None

    def is_current(self, run_id: str) -> bool:
        return self._run is not None and self._run.run_id == run_id

    def _stage(self, stage_id: str) -> Stage:
        stages = self._run.stages if self._run else self._idle_stages
        for stage in stages:
            if stage.id == stage_id:
                return stage
        raise UnknownStageError(stage_id)

    def _active_stage(self, stage_id: str) -> Stage:
        if self._run is None:
            raise PipelineError(f"No active run to update stage '{stage_id}'")
        return self._stage(stage_id)

    def _transition(self, stage: Stage, status: StageStatus) -> None:
        if status not in _TRANSITIONS[stage.status]:
            raise InvalidTransitionError(stage.id, stage.status.value, status.value)
        stage.status = status

    def mark_processing(self, stage_id: str) -> Stage:
        stage = self._active_stage(stage_id)
        self._transition(stage, StageStatus.PROCESSING)
        stage.output = None
        return stage

    def set_interim_output(self, stage_id: str, message: str) -> Stage:
        """Show progress text on a processing stage without changing its status."""
        stage = self._active_stage(stage_id)
        if stage.status != StageStatus.PROCESSING:
            raise InvalidTransitionError(stage.id, stage.status.value, "interim output")
        stage.output = message
        return stage

    def mark_completed(self, stage_id: str, output: str) -> Stage:
        stage = self._active_stage(stage_id)
        self._transition(stage, StageStatus.COMPLETED)
        stage.output = output
        self._run.context.append(stage_id, output)
        return stage

    def mark_error(self, stage_id: str, diagnostic: str) -> Stage:
        stage = self._active_stage(stage_id)
        self._transition(stage, StageStatus.ERROR)
        stage.output = diagnostic
        return stage

    def get(self, stage_id: str) -> Stage:
        return replace(self._stage(stage_id))

    def snapshot(self) -> List[Stage]:
        """Copies of the current stages, safe to hand to renderers."""
        stages = self._run.stages if self._run else self._idle_stages
        return [replace(stage) for stage in stages]

    @property
    def context_text(self) -> Optional[str]:
        return self._run.context.text if self._run else None

    @property
    def artifact(self) -> Optional[str]:
        """Output of the final directory stage once it has completed."""
        if self._run is None:
            return None
        final = self._stage(self.directory.final_stage_id)
        return final.output if final.status == StageStatus.COMPLETED else None

    def to_dict(self) -> Dict[str, Any]:
        run = self._run
        return {
            "run_id": run.run_id if run else None,
            "in_progress": self.in_progress,
            "directive": run.directive if run else None,
            "media_kind": run.media.kind.value if run else None,
            "stages": [stage.to_dict() for stage in self.snapshot()],
            "artifact": self.artifact,
        }
