"""
Pytest Configuration and Fixtures

Shared fixtures for all tests.
"""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from prompt_architect.core.constants import MediaKind, ModelTier
from prompt_architect.llm.base import BaseAnalysisClient
from prompt_architect.media.preprocessor import EncodedFrame, MediaPayload


def make_jpeg(color=(200, 40, 40), size=(16, 12)) -> bytes:
    """Encode a solid-color test image as JPEG."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG")
    return buffer.getvalue()


class FakeAnalysisClient(BaseAnalysisClient):
    """
    Scripted analysis client.

    Each call pops the next scripted outcome: a string is returned, an
    exception instance is raised. When the script runs out, the stage
    instructions' first line is echoed back.
    """

    def __init__(self, script: Optional[List[Any]] = None):
        self.script = list(script or [])
        self.calls: List[Dict[str, Any]] = []

    async def analyze(self, media, instructions, context, tier=ModelTier.FAST):
        self.calls.append({
            "media": media,
            "instructions": instructions,
            "context": context,
            "tier": tier,
        })
        if self.script:
            outcome = self.script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return f"out-{len(self.calls)}"


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = tempfile.mkdtemp()
    yield Path(temp_path)
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def jpeg_bytes() -> bytes:
    """Small JPEG image."""
    return make_jpeg()


@pytest.fixture
def image_file(temp_dir) -> Path:
    """PNG file on disk, so ingest has to re-encode it."""
    path = temp_dir / "still.png"
    Image.new("RGBA", (20, 10), (10, 200, 30, 128)).save(path, format="PNG")
    return path


@pytest.fixture
def image_payload(jpeg_bytes) -> MediaPayload:
    """Single-frame image payload."""
    return MediaPayload.from_image_bytes(jpeg_bytes, source="still.jpg")


@pytest.fixture
def video_payload() -> MediaPayload:
    """Three-frame video payload."""
    frames = tuple(
        EncodedFrame(make_jpeg((i * 60, 10, 10)), timestamp=t)
        for i, t in enumerate((0.1, 2.5, 4.9))
    )
    return MediaPayload(kind=MediaKind.VIDEO, frames=frames, source="clip.mp4")


@pytest.fixture
def fake_client() -> FakeAnalysisClient:
    """Analysis client that echoes numbered outputs."""
    return FakeAnalysisClient()


@pytest.fixture
def client_factory():
    """Build a FakeAnalysisClient from a script of outcomes."""
    return FakeAnalysisClient


@pytest.fixture
def sample_config() -> Dict[str, Any]:
    """Sample configuration for testing."""
    return {
        "project_name": "Prompt Architect",
        "version": "2.0.0",
        "model": {
            "tier_models": {
                "fast": "gemini-test-flash",
                "reasoning": "gemini-test-pro"
            },
            "timeout": 30.0
        },
        "retry": {
            "max_attempts": 3,
            "base_delay": 1.0
        },
        "media": {
            "jpeg_quality": 70,
            "load_timeout": 5.0
        },
        "pipeline": {
            "halt_on_error": False,
            "history_capacity": 5
        }
    }


@pytest.fixture(autouse=True)
def no_api_key(monkeypatch):
    """Keep real credentials out of every test."""
    for name in ("GOOGLE_API_KEY", "GEMINI_API_KEY", "API_KEY"):
        monkeypatch.delenv(name, raising=False)
