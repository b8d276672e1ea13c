"""
Tests for Pipeline Orchestrator

Tests for prompt_architect/pipeline/orchestrator.py
"""

import asyncio

import pytest

from prompt_architect.agents.directory import AGENT_DIRECTORY
from prompt_architect.core.config import ArchitectConfig
from prompt_architect.core.constants import (
    DIAGNOSTIC_CANCELLED,
    DIAGNOSTIC_CAPACITY_EXHAUSTED,
    DIAGNOSTIC_CREDENTIAL_INVALID,
    DIAGNOSTIC_LINK_SEVERED,
    INGEST_STAGE_ID,
    NODE_SILENT,
    SYSTEM_PROMPT,
    CredentialStatus,
    ModelTier,
)
from prompt_architect.core.exceptions import (
    AnalysisServiceError,
    CredentialInvalidError,
    CredentialRequiredError,
    PipelineBusyError,
    PipelineError,
    TransientCapacityError,
)
from prompt_architect.llm.base import BaseAnalysisClient
from prompt_architect.pipeline.events import PipelineEventType
from prompt_architect.pipeline.orchestrator import PipelineOrchestrator, PipelineStatus, diagnose_failure
from prompt_architect.pipeline.state import StageStatus, build_context_seed


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


class GatedClient(BaseAnalysisClient):
    """Client whose first call blocks until released."""

    def __init__(self):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def analyze(self, media, instructions, context, tier=ModelTier.FAST):
        self.calls += 1
        call = self.calls
        if call == 1:
            self.started.set()
            await self.release.wait()
        return f"out-{call}"


class GatedPreprocessor:
    """Preprocessor that blocks until released."""

    def __init__(self, payload):
        self.payload = payload
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def prepare(self, path, kind=None):
        self.started.set()
        await self.release.wait()
        return self.payload


@pytest.fixture
def config():
    return ArchitectConfig()


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def make_orchestrator(config, sleep):
    def factory(client, **kwargs):
        kwargs.setdefault("config", config)
        return PipelineOrchestrator(client, sleep=sleep, **kwargs)
    return factory


@pytest.fixture
def events():
    return []


class TestDiagnoseFailure:
    """Tests for stage diagnostics."""

    def test_capacity(self):
        """Test exhausted rate limiting diagnostic."""
        assert diagnose_failure(TransientCapacityError("429")) == DIAGNOSTIC_CAPACITY_EXHAUSTED

    def test_credential(self):
        """Test rejected credential diagnostic."""
        assert diagnose_failure(CredentialInvalidError("bad key")) == DIAGNOSTIC_CREDENTIAL_INVALID

    def test_anything_else(self):
        """Test generic failure diagnostic."""
        assert diagnose_failure(RuntimeError("boom")) == DIAGNOSTIC_LINK_SEVERED


class TestPipelineRun:
    """Tests for a full pipeline run."""

    @pytest.mark.asyncio
    async def test_stages_called_in_directory_order(self, make_orchestrator, fake_client, image_payload):
        """Test every stage is called once, in order, with its tier."""
        orchestrator = make_orchestrator(fake_client)

        result = await orchestrator.run(image_payload)

        assert result.success
        assert [c["instructions"] for c in fake_client.calls] == [e.instructions for e in AGENT_DIRECTORY]
        assert [c["tier"] for c in fake_client.calls] == [e.tier for e in AGENT_DIRECTORY]
        assert all(c["media"] is image_payload for c in fake_client.calls)

    @pytest.mark.asyncio
    async def test_context_accumulates(self, make_orchestrator, fake_client, image_payload):
        """Test stage N sees exactly the outputs of stages 1..N-1."""
        orchestrator = make_orchestrator(fake_client)

        await orchestrator.run(image_payload, steering_modifier="anime style")

        seed = build_context_seed(SYSTEM_PROMPT, "anime style")
        expected = seed
        for index, entry in enumerate(AGENT_DIRECTORY):
            assert fake_client.calls[index]["context"] == expected
            expected += f"\n[{entry.id}]: out-{index + 1}"
        assert orchestrator.context == expected

    @pytest.mark.asyncio
    async def test_second_stage_context_example(self, make_orchestrator, client_factory, image_payload):
        """Test the style stage receives the seed plus the analyst output."""
        client = client_factory(["X"])
        orchestrator = make_orchestrator(client)

        await orchestrator.run(image_payload, steering_modifier="", base_directive="B")

        assert client.calls[1]["context"] == "Global System Directive: B\nUser Modification: \n[analyst]: X"

    @pytest.mark.asyncio
    async def test_identical_inputs_identical_seed(self, make_orchestrator, fake_client, image_payload):
        """Test two runs with the same inputs start from the same context."""
        orchestrator = make_orchestrator(fake_client)

        await orchestrator.run(image_payload, steering_modifier="m")
        await orchestrator.run(image_payload, steering_modifier="m")

        assert fake_client.calls[0]["context"] == fake_client.calls[7]["context"]

    @pytest.mark.asyncio
    async def test_artifact_is_optimizer_output(self, make_orchestrator, client_factory, image_payload):
        """Test the artifact is the final stage's output."""
        client = client_factory(["a", "b", "c", "d", "e", "f", "FINAL PROMPT"])
        orchestrator = make_orchestrator(client)

        result = await orchestrator.run(image_payload)

        assert result.status == PipelineStatus.COMPLETED
        assert result.artifact == "FINAL PROMPT"
        assert orchestrator.artifact == "FINAL PROMPT"
        assert result.record.artifact == "FINAL PROMPT"
        assert result.record.media_source == "still.jpg"
        assert result.credential_status == CredentialStatus.VALID
        assert not orchestrator.in_progress

    @pytest.mark.asyncio
    async def test_empty_answer_is_not_an_error(self, make_orchestrator, client_factory, image_payload):
        """Test the silent sentinel completes the stage."""
        orchestrator = make_orchestrator(client_factory([NODE_SILENT]))

        result = await orchestrator.run(image_payload)

        assert result.success
        assert orchestrator.state.get("analyst").output == NODE_SILENT

    @pytest.mark.asyncio
    async def test_event_sequence(self, make_orchestrator, fake_client, image_payload, events):
        """Test observers see the run unfold stage by stage."""
        orchestrator = make_orchestrator(fake_client)
        orchestrator.subscribe(events.append)

        await orchestrator.run(image_payload)

        types = [e.type for e in events]
        assert types[0] == PipelineEventType.RUN_STARTED
        assert types[-1] == PipelineEventType.RUN_COMPLETED
        assert types[1:-1] == [PipelineEventType.STAGE_STARTED, PipelineEventType.STAGE_COMPLETED] * 7
        assert events[-1].data["record"].artifact == "out-7"

    @pytest.mark.asyncio
    async def test_one_stage_processing_at_a_time(self, make_orchestrator, image_payload):
        """Test no later stage is dispatched before the current one settles."""
        observed = []

        class InspectingClient(BaseAnalysisClient):
            async def analyze(self, media, instructions, context, tier=ModelTier.FAST):
                processing = [s.id for s in orchestrator.stages if s.status == StageStatus.PROCESSING]
                observed.append(processing)
                return "ok"

        orchestrator = make_orchestrator(InspectingClient())
        await orchestrator.run(image_payload)

        assert observed == [[entry.id] for entry in AGENT_DIRECTORY]

    @pytest.mark.asyncio
    async def test_ingest_image(self, make_orchestrator, fake_client, image_file):
        """Test ingest preprocesses the file and runs every stage."""
        orchestrator = make_orchestrator(fake_client)

        result = await orchestrator.ingest(image_file, steering_modifier="noir")

        assert result.success
        assert orchestrator.state.get(INGEST_STAGE_ID).status == StageStatus.COMPLETED
        assert len(fake_client.calls[0]["media"].frames) == 1
        assert fake_client.calls[0]["context"].endswith("User Modification: noir")


class TestPipelineFailures:
    """Tests for failure handling."""

    @pytest.mark.asyncio
    async def test_halt_on_error(self, make_orchestrator, client_factory, image_payload, events):
        """Test a failed stage halts the run and leaves later stages idle."""
        client = client_factory(["X", AnalysisServiceError("HTTP 500", 500)])
        orchestrator = make_orchestrator(client)
        orchestrator.subscribe(events.append)

        result = await orchestrator.run(image_payload)

        assert result.status == PipelineStatus.FAILED
        assert result.failed_stage == "style"
        assert result.artifact is None
        assert len(client.calls) == 2
        assert orchestrator.state.get("style").status == StageStatus.ERROR
        assert orchestrator.state.get("style").output == DIAGNOSTIC_LINK_SEVERED
        for stage_id in AGENT_DIRECTORY.stage_ids[2:]:
            assert orchestrator.state.get(stage_id).status == StageStatus.IDLE
        assert events[-1].type == PipelineEventType.RUN_HALTED
        assert not orchestrator.in_progress

    @pytest.mark.asyncio
    async def test_continue_after_error(self, config, make_orchestrator, client_factory, image_payload):
        """Test continue mode skips the failed stage's output."""
        config.pipeline.halt_on_error = False
        client = client_factory(["X", RuntimeError("boom")])
        orchestrator = make_orchestrator(client)

        result = await orchestrator.run(image_payload)

        assert len(client.calls) == 7
        assert result.status == PipelineStatus.FAILED
        assert result.failed_stage == "style"
        assert "[style]" not in client.calls[2]["context"]
        assert client.calls[2]["context"].endswith("\n[analyst]: X")

    @pytest.mark.asyncio
    async def test_credential_failure_always_halts(self, config, make_orchestrator, client_factory, image_payload):
        """Test a rejected credential halts even in continue mode."""
        config.pipeline.halt_on_error = False
        client = client_factory([CredentialInvalidError("Requested entity was not found.", 404)])
        orchestrator = make_orchestrator(client)

        result = await orchestrator.run(image_payload)

        assert len(client.calls) == 1
        assert result.credential_status == CredentialStatus.INVALID
        assert orchestrator.state.get("analyst").output == DIAGNOSTIC_CREDENTIAL_INVALID

    @pytest.mark.asyncio
    async def test_capacity_exhausted(self, make_orchestrator, client_factory, image_payload, sleep, events):
        """Test a persistently rate-limited stage is retried then fails."""
        client = client_factory([TransientCapacityError("429", 429)] * 4)
        orchestrator = make_orchestrator(client)
        orchestrator.subscribe(events.append)

        result = await orchestrator.run(image_payload)

        assert len(client.calls) == 4
        assert sleep.delays == [2.0, 4.0, 8.0]
        assert result.failed_stage == "analyst"
        assert orchestrator.state.get("analyst").output == DIAGNOSTIC_CAPACITY_EXHAUSTED
        retries = [e for e in events if e.type == PipelineEventType.STAGE_RETRY]
        assert [e.data["attempts_remaining"] for e in retries] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_retry_interim_output(self, make_orchestrator, client_factory, image_payload):
        """Test the retry observer shows progress without changing status."""
        client = client_factory([TransientCapacityError("429", 429)])
        orchestrator = make_orchestrator(client)
        interim = []

        def on_event(event):
            if event.type == PipelineEventType.STAGE_RETRY:
                stage = orchestrator.state.get(event.stage_id)
                interim.append((stage.status, stage.output))

        orchestrator.subscribe(on_event)
        result = await orchestrator.run(image_payload)

        assert result.success
        assert interim == [(StageStatus.PROCESSING, "Rate limit hit. Retrying in 2s... (3 attempts left)")]
        assert orchestrator.state.get("analyst").output == "out-2"


class TestPipelineControl:
    """Tests for dispatch guards, reset and re-run."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [CredentialStatus.MISSING, CredentialStatus.INVALID])
    async def test_credential_refusal(self, make_orchestrator, fake_client, image_payload, status):
        """Test dispatch is refused without a usable credential."""
        orchestrator = make_orchestrator(fake_client)

        with pytest.raises(CredentialRequiredError):
            await orchestrator.run(image_payload, credential_status=status)

        assert fake_client.calls == []
        assert orchestrator.current_run is None

    @pytest.mark.asyncio
    async def test_busy_rejection(self, make_orchestrator, image_payload):
        """Test a second dispatch is rejected while a run is in progress."""
        client = GatedClient()
        orchestrator = make_orchestrator(client)

        task = asyncio.create_task(orchestrator.run(image_payload))
        await client.started.wait()

        with pytest.raises(PipelineBusyError):
            await orchestrator.run(image_payload)

        client.release.set()
        result = await task
        assert result.success

    @pytest.mark.asyncio
    async def test_stale_settlement_ignored(self, make_orchestrator, image_payload, events):
        """Test a call settling after reset does not touch the state."""
        client = GatedClient()
        orchestrator = make_orchestrator(client)
        orchestrator.subscribe(events.append)

        task = asyncio.create_task(orchestrator.run(image_payload))
        await client.started.wait()
        orchestrator.reset()
        client.release.set()
        result = await task

        assert result.status == PipelineStatus.CANCELLED
        assert client.calls == 1
        assert all(s.status == StageStatus.IDLE for s in orchestrator.stages)
        assert PipelineEventType.STAGE_COMPLETED not in [e.type for e in events]

    @pytest.mark.asyncio
    async def test_new_run_after_reset_unaffected_by_stale_call(self, make_orchestrator, image_payload):
        """Test a stale settlement cannot corrupt the run that replaced it."""
        client = GatedClient()
        orchestrator = make_orchestrator(client)

        stale = asyncio.create_task(orchestrator.run(image_payload))
        await client.started.wait()
        orchestrator.reset()

        fresh = await orchestrator.run(image_payload)
        client.release.set()
        stale_result = await stale

        assert fresh.success
        assert fresh.artifact == "out-8"
        assert stale_result.status == PipelineStatus.CANCELLED
        assert orchestrator.artifact == "out-8"
        assert orchestrator.state.get("analyst").output == "out-2"

    @pytest.mark.asyncio
    async def test_reset_during_ingest(self, make_orchestrator, fake_client, image_payload, image_file):
        """Test media prepared after a reset is discarded."""
        preprocessor = GatedPreprocessor(image_payload)
        orchestrator = make_orchestrator(fake_client, preprocessor=preprocessor)

        task = asyncio.create_task(orchestrator.ingest(image_file))
        await preprocessor.started.wait()

        with pytest.raises(PipelineBusyError):
            await orchestrator.run(image_payload)

        orchestrator.reset()
        preprocessor.release.set()
        result = await task

        assert result.status == PipelineStatus.CANCELLED
        assert fake_client.calls == []

    @pytest.mark.asyncio
    async def test_reset_restores_defaults(self, make_orchestrator, fake_client, image_payload, events):
        """Test reset clears the run and the directive override."""
        orchestrator = make_orchestrator(fake_client)
        orchestrator.subscribe(events.append)
        await orchestrator.run(image_payload, base_directive="custom")

        orchestrator.reset()

        assert orchestrator.current_run is None
        assert orchestrator.artifact is None
        assert orchestrator.base_directive == SYSTEM_PROMPT
        assert events[-1].type == PipelineEventType.RUN_RESET

    @pytest.mark.asyncio
    async def test_rerun_reuses_media_and_modifier(self, make_orchestrator, fake_client, video_payload):
        """Test rerun dispatches over the same media without re-ingesting."""
        orchestrator = make_orchestrator(fake_client)
        first = await orchestrator.run(video_payload, steering_modifier="slow motion")

        second = await orchestrator.rerun()

        assert second.success
        assert second.run_id != first.run_id
        assert fake_client.calls[7]["media"] is video_payload
        assert fake_client.calls[7]["context"] == fake_client.calls[0]["context"]

    @pytest.mark.asyncio
    async def test_rerun_with_new_modifier(self, make_orchestrator, fake_client, image_payload):
        """Test rerun takes a new steering modifier."""
        orchestrator = make_orchestrator(fake_client)
        await orchestrator.run(image_payload, steering_modifier="first")

        await orchestrator.rerun(steering_modifier="second")

        assert fake_client.calls[7]["context"].endswith("User Modification: second")

    @pytest.mark.asyncio
    async def test_rerun_without_media(self, make_orchestrator, fake_client):
        """Test rerun before any ingest is rejected."""
        orchestrator = make_orchestrator(fake_client)

        with pytest.raises(PipelineError):
            await orchestrator.rerun()

    @pytest.mark.asyncio
    async def test_cancelled_task_releases_pipeline(self, make_orchestrator, image_payload, events):
        """Test cancelling a dispatching task clears the busy flag and marks the stage."""
        client = GatedClient()
        orchestrator = make_orchestrator(client)
        orchestrator.subscribe(events.append)

        task = asyncio.create_task(orchestrator.run(image_payload))
        await client.started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert not orchestrator.in_progress
        assert orchestrator.state.get("analyst").status == StageStatus.ERROR
        assert orchestrator.state.get("analyst").output == DIAGNOSTIC_CANCELLED
        assert events[-1].type == PipelineEventType.RUN_HALTED

        result = await orchestrator.run(image_payload)
        assert result.success

    @pytest.mark.asyncio
    async def test_run_allowed_after_reset_during_ingest(self, make_orchestrator, fake_client, image_payload, image_file):
        """Test a reset during ingest frees the pipeline for a new dispatch."""
        preprocessor = GatedPreprocessor(image_payload)
        orchestrator = make_orchestrator(fake_client, preprocessor=preprocessor)

        stale = asyncio.create_task(orchestrator.ingest(image_file))
        await preprocessor.started.wait()
        orchestrator.reset()

        fresh = await orchestrator.run(image_payload)
        preprocessor.release.set()
        stale_result = await stale

        assert fresh.success
        assert stale_result.status == PipelineStatus.CANCELLED
        assert len(fake_client.calls) == 7
        assert not orchestrator.in_progress
        assert orchestrator.artifact == fresh.artifact

    @pytest.mark.asyncio
    async def test_reset_during_backoff_stops_retries(self, config, client_factory, image_payload):
        """Test a run reset while backing off makes no further calls."""
        client = client_factory([TransientCapacityError("429", 429)] * 4)
        delays = []

        async def resetting_sleep(delay):
            delays.append(delay)
            orchestrator.reset()

        orchestrator = PipelineOrchestrator(client, config=config, sleep=resetting_sleep)

        result = await orchestrator.run(image_payload)

        assert result.status == PipelineStatus.CANCELLED
        assert len(client.calls) == 1
        assert delays == [2.0]
        assert all(s.status == StageStatus.IDLE for s in orchestrator.stages)
