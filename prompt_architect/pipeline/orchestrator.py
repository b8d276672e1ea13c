"""
Prompt Architect Pipeline Orchestrator

Drives the fixed agent sequence over one MediaPayload: each stage sees the
context accumulated by the stages before it, runs through the retry policy,
and settles into completed or error before the next stage is dispatched.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from prompt_architect.agents.directory import AGENT_DIRECTORY, AgentDirectory, AgentDirectoryEntry
from prompt_architect.core.config import ArchitectConfig, get_config
from prompt_architect.core.constants import (
    BLOCKING_CREDENTIAL_STATES,
    DIAGNOSTIC_CAPACITY_EXHAUSTED,
    DIAGNOSTIC_CREDENTIAL_INVALID,
    DIAGNOSTIC_CANCELLED,
    DIAGNOSTIC_LINK_SEVERED,
    CredentialStatus,
    MediaKind,
)
from prompt_architect.core.exceptions import (
    CredentialInvalidError,
    CredentialRequiredError,
    PipelineBusyError,
    PipelineError,
    TransientCapacityError,
)
from prompt_architect.core.logging_config import get_logger
from prompt_architect.core.retry import RetryAttempt, RetryConfig, retry_async_call
from prompt_architect.llm.base import BaseAnalysisClient
from prompt_architect.media.preprocessor import MediaPayload, MediaPreprocessor

from .events import EventEmitter, PipelineEvent, PipelineEventType, PipelineObserver, RunRecord
from .state import PipelineRun, PipelineStateStore, Stage, StageStatus

logger = get_logger("pipeline.orchestrator")


class PipelineStatus(Enum):
    """Outcome of a pipeline run."""
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class PipelineResult:
    """Result from a pipeline run."""
    status: PipelineStatus
    run_id: Optional[str] = None
    artifact: Optional[str] = None
    failed_stage: Optional[str] = None
    error: Optional[str] = None
    credential_status: CredentialStatus = CredentialStatus.UNKNOWN
    duration_seconds: float = 0.0
    stages: List[Stage] = field(default_factory=list)
    record: Optional[RunRecord] = None

    @property
    def success(self) -> bool:
        return self.status == PipelineStatus.COMPLETED


def diagnose_failure(error: Exception) -> str:
    """Human-readable stage diagnostic for a settled failure."""
    if isinstance(error, TransientCapacityError):
        return DIAGNOSTIC_CAPACITY_EXHAUSTED
    if isinstance(error, CredentialInvalidError):
        return DIAGNOSTIC_CREDENTIAL_INVALID
    return DIAGNOSTIC_LINK_SEVERED


class PipelineOrchestrator:
    """
    Sequential multi-agent analysis pipeline.

    Features:
    - Stage order and model tiers driven by the agent directory
    - Accumulated text context handed from each stage to the next
    - Rate-limit retries with interim stage output
    - Halt on first unrecoverable failure (configurable)
    - Single active run; settlements from discarded runs are ignored

    Usage:
        orchestrator = PipelineOrchestrator(GeminiAnalysisClient())
        result = await orchestrator.ingest("shot.mp4", steering_modifier="anime style")
        print(result.artifact)
    """

    def __init__(
        self,
        client: BaseAnalysisClient,
        directory: AgentDirectory = AGENT_DIRECTORY,
        config: Optional[ArchitectConfig] = None,
        preprocessor: Optional[MediaPreprocessor] = None,
        retry_config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize the orchestrator.

        Args:
            client: External analysis client
            directory: Ordered agent table
            config: Configuration; the process-wide config when omitted
            preprocessor: Media preprocessor used by ingest()
            retry_config: Backoff policy; derived from config.retry when omitted
            sleep: Awaitable used for retry backoff
        """
        self.config = config or get_config()
        self.client = client
        self.directory = directory
        self.state = PipelineStateStore(directory)
        self.preprocessor = preprocessor or MediaPreprocessor(self.config.media)
        self.retry_config = retry_config or self.config.retry.to_retry_config()
        self.halt_on_error = self.config.pipeline.halt_on_error
        self.base_directive = self.config.pipeline.base_directive
        self._sleep = sleep
        self._events = EventEmitter()
        self._ingest_generation: Optional[int] = None
        self._generation = 0
        self._last_modifier = ""

    # =========================================================================
    # Observation
    # =========================================================================

    def subscribe(self, observer: PipelineObserver) -> Callable[[], None]:
        """Register a synchronous observer for pipeline events."""
        return self._events.subscribe(observer)

    def unsubscribe(self, observer: PipelineObserver) -> None:
        self._events.unsubscribe(observer)

    @property
    def stages(self) -> List[Stage]:
        return self.state.snapshot()

    @property
    def artifact(self) -> Optional[str]:
        return self.state.artifact

    @property
    def in_progress(self) -> bool:
        return self.state.in_progress

    @property
    def context(self) -> Optional[str]:
        return self.state.context_text

    @property
    def current_run(self) -> Optional[PipelineRun]:
        return self.state.run

    # =========================================================================
    # Commands
    # =========================================================================

    async def ingest(
        self,
        path: Union[str, Path],
        kind: Optional[MediaKind] = None,
        steering_modifier: str = "",
        credential_status: CredentialStatus = CredentialStatus.UNKNOWN
    ) -> PipelineResult:
        """
        Preprocess a media file and run the full pipeline over it.

        Args:
            path: Image or video file
            kind: Declared media kind; detected when omitted
            steering_modifier: Optional user steering text
            credential_status: Caller-owned credential state

        Returns:
            PipelineResult of the run
        """
        self._check_dispatch(credential_status)
        generation = self._generation
        self._ingest_generation = generation
        try:
            media = await self.preprocessor.prepare(path, kind)
        finally:
            if self._ingest_generation == generation:
                self._ingest_generation = None

        if generation != self._generation:
            logger.info(f"Ingest of {path} discarded by reset")
            return PipelineResult(status=PipelineStatus.CANCELLED, credential_status=credential_status)

        return await self.run(media, steering_modifier, credential_status=credential_status)

    async def run(
        self,
        media: MediaPayload,
        steering_modifier: Optional[str] = None,
        base_directive: Optional[str] = None,
        credential_status: CredentialStatus = CredentialStatus.UNKNOWN
    ) -> PipelineResult:
        """
        Start a fresh run over a MediaPayload.

        Args:
            media: Encoded still(s) to analyze
            steering_modifier: User steering text; empty when omitted
            base_directive: Replaces the editable base directive when given
            credential_status: Caller-owned credential state

        Returns:
            PipelineResult of the run
        """
        self._check_dispatch(credential_status)
        if base_directive is not None:
            self.base_directive = base_directive
        self._last_modifier = steering_modifier or ""

        run = self.state.begin_run(media, self.base_directive, self._last_modifier)
        return await self._dispatch(run, credential_status)

    async def rerun(
        self,
        steering_modifier: Optional[str] = None,
        base_directive: Optional[str] = None,
        credential_status: CredentialStatus = CredentialStatus.UNKNOWN
    ) -> PipelineResult:
        """
        Re-run every stage over the current media without re-ingesting.

        The previous steering modifier is reused when none is given.
        """
        run = self.state.run
        if run is None:
            raise PipelineError("Nothing to re-run: no media has been ingested")
        modifier = self._last_modifier if steering_modifier is None else steering_modifier
        return await self.run(run.media, modifier, base_directive, credential_status)

    def reset(self) -> None:
        """
        Discard the current run and restore the default base directive.

        An in-flight analysis call is not aborted; its result is dropped when
        it settles.
        """
        run = self.state.run
        self._generation += 1
        self._ingest_generation = None
        self.state.reset()
        self.base_directive = self.config.pipeline.base_directive
        self._last_modifier = ""
        self._events.emit(PipelineEvent(PipelineEventType.RUN_RESET, run.run_id if run else None))

    # =========================================================================
    # Dispatch
    # =========================================================================

    def _check_dispatch(self, credential_status: CredentialStatus) -> None:
        if self.state.in_progress:
            raise PipelineBusyError(self.state.run.run_id)
        if self._ingest_generation is not None:
            raise PipelineBusyError("ingest")
        if credential_status in BLOCKING_CREDENTIAL_STATES:
            raise CredentialRequiredError(credential_status.value)

    async def _dispatch(self, run: PipelineRun, credential_status: CredentialStatus) -> PipelineResult:
        start_time = datetime.now()
        run_id = run.run_id
        failed_stage: Optional[str] = None
        error_text: Optional[str] = None

        logger.info(
            f"Starting pipeline run {run_id}: {len(self.directory)} stages, "
            f"{len(run.media.frames)} frame(s) of {run.media.kind.value}"
        )
        self._emit(PipelineEventType.RUN_STARTED, run_id, data={"media_kind": run.media.kind.value})

        active_stage: Optional[str] = None
        try:
            for entry in self.directory:
                if not self.state.is_current(run_id):
                    return self._stale_result(run_id, credential_status, start_time)

                self.state.mark_processing(entry.id)
                active_stage = entry.id
                self._emit(PipelineEventType.STAGE_STARTED, run_id, entry.id, data={"tier": entry.tier.value})
                context = self.state.context_text

                try:
                    output = await retry_async_call(
                        self.client.analyze,
                        run.media,
                        entry.instructions,
                        context,
                        entry.tier,
                        config=self.retry_config,
                        on_retry=self._retry_observer(run_id, entry),
                        should_continue=lambda: self.state.is_current(run_id),
                        sleep=self._sleep,
                    )
                except Exception as e:
                    if not self.state.is_current(run_id):
                        return self._stale_result(run_id, credential_status, start_time)

                    diagnostic = diagnose_failure(e)
                    logger.error(f"Error in node {entry.id}: {e}")
                    self.state.mark_error(entry.id, diagnostic)
                    active_stage = None
                    self._emit(
                        PipelineEventType.STAGE_FAILED, run_id, entry.id, diagnostic,
                        data={"error": str(e), "error_type": type(e).__name__},
                    )

                    if failed_stage is None:
                        failed_stage, error_text = entry.id, str(e)
                    if isinstance(e, CredentialInvalidError):
                        credential_status = CredentialStatus.INVALID
                        break
                    if self.halt_on_error:
                        break
                    continue

                if not self.state.is_current(run_id):
                    return self._stale_result(run_id, credential_status, start_time)

                self.state.mark_completed(entry.id, output)
                active_stage = None
                if credential_status == CredentialStatus.UNKNOWN:
                    credential_status = CredentialStatus.VALID
                self._emit(PipelineEventType.STAGE_COMPLETED, run_id, entry.id, output)
                logger.debug(f"Node {entry.id} completed ({len(output)} chars)")
        except asyncio.CancelledError:
            self._abandon(run_id, active_stage)
            raise
        finally:
            self.state.finish_run(run_id)

        return self._settle(run, failed_stage, error_text, credential_status, start_time)

    def _abandon(self, run_id: str, stage_id: Optional[str]) -> None:
        """Settle a run whose task was cancelled mid-stage."""
        if not self.state.is_current(run_id):
            return
        logger.warning(f"Pipeline run {run_id} cancelled during node {stage_id}")
        if stage_id is not None:
            self.state.mark_error(stage_id, DIAGNOSTIC_CANCELLED)
            self._emit(
                PipelineEventType.STAGE_FAILED, run_id, stage_id, DIAGNOSTIC_CANCELLED,
                data={"error": "cancelled", "error_type": "CancelledError"},
            )
        self._emit(PipelineEventType.RUN_HALTED, run_id, stage_id, data={"error": "cancelled"})

    def _retry_observer(self, run_id: str, entry: AgentDirectoryEntry) -> Callable[[RetryAttempt], None]:
        def on_retry(attempt: RetryAttempt) -> None:
            if not self.state.is_current(run_id):
                return
            message = (
                f"Rate limit hit. Retrying in {attempt.delay:.0f}s... "
                f"({attempt.attempts_remaining} attempts left)"
            )
            self.state.set_interim_output(entry.id, message)
            self._emit(
                PipelineEventType.STAGE_RETRY, run_id, entry.id, message,
                data={"attempts_remaining": attempt.attempts_remaining, "delay": attempt.delay},
            )

        return on_retry

    def _settle(
        self,
        run: PipelineRun,
        failed_stage: Optional[str],
        error_text: Optional[str],
        credential_status: CredentialStatus,
        start_time: datetime
    ) -> PipelineResult:
        artifact = self.state.artifact
        all_completed = all(
            self.state.get(entry.id).status == StageStatus.COMPLETED for entry in self.directory
        )

        result = PipelineResult(
            status=PipelineStatus.COMPLETED if all_completed else PipelineStatus.FAILED,
            run_id=run.run_id,
            artifact=artifact,
            failed_stage=failed_stage,
            error=error_text,
            credential_status=credential_status,
            duration_seconds=self._get_duration(start_time),
            stages=self.state.snapshot(),
        )

        if all_completed:
            result.record = RunRecord(
                run_id=run.run_id,
                media_source=run.media.source,
                media_kind=run.media.kind.value,
                artifact=artifact,
                steering_modifier=run.steering_modifier,
            )
            logger.info(f"Pipeline run {run.run_id} completed in {result.duration_seconds:.1f}s")
            self._emit(PipelineEventType.RUN_COMPLETED, run.run_id, output=artifact,
                       data={"record": result.record})
        else:
            logger.warning(f"Pipeline run {run.run_id} halted at node {failed_stage}")
            self._emit(PipelineEventType.RUN_HALTED, run.run_id, failed_stage,
                       data={"error": error_text, "credential_status": credential_status.value})

        return result

    def _stale_result(self, run_id: str, credential_status: CredentialStatus, start_time: datetime) -> PipelineResult:
        logger.info(f"Discarding settlement for superseded run {run_id}")
        return PipelineResult(
            status=PipelineStatus.CANCELLED,
            run_id=run_id,
            credential_status=credential_status,
            duration_seconds=self._get_duration(start_time),
        )

    def _emit(
        self,
        event_type: PipelineEventType,
        run_id: Optional[str],
        stage_id: Optional[str] = None,
        output: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        self._events.emit(PipelineEvent(event_type, run_id, stage_id, output, data or {}))

    def _get_duration(self, start_time: datetime) -> float:
        return (datetime.now() - start_time).total_seconds()
