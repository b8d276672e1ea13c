"""
Prompt Architect Pipeline Module

Sequential orchestration of the analysis agents with observable stage state.
"""

from .events import EventEmitter, PipelineEvent, PipelineEventType, PipelineObserver, RunRecord
from .orchestrator import PipelineOrchestrator, PipelineResult, PipelineStatus, diagnose_failure
from .state import (
    AccumulatedContext,
    PipelineRun,
    PipelineStateStore,
    Stage,
    StageStatus,
    build_context_seed,
)

__all__ = [
    "AccumulatedContext",
    "EventEmitter",
    "PipelineEvent",
    "PipelineEventType",
    "PipelineObserver",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineRun",
    "PipelineStateStore",
    "PipelineStatus",
    "RunRecord",
    "Stage",
    "StageStatus",
    "build_context_seed",
    "diagnose_failure",
]
