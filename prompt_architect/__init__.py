"""
Prompt Architect - Multi-Agent Visual Prompt Synthesis

Turns an image or short video into a reusable text-to-image/video prompt
blueprint by passing the media through a fixed chain of analysis agents,
each building on the findings of the ones before it.

Version: 2.0.0
"""

__version__ = "2.0.0"
__author__ = "Prompt Architect Team"
__project__ = "Prompt Architect"

from pathlib import Path

# Load environment variables early - before any other imports that might need them
from prompt_architect.core.env_loader import ensure_env_loaded
ensure_env_loaded()

# Package root directory
PACKAGE_ROOT = Path(__file__).parent
PROJECT_ROOT = PACKAGE_ROOT.parent

from .core.startup import initialize
from .agents import AGENT_DIRECTORY, AgentDirectory, AgentDirectoryEntry
from .history import RunHistory, RunRecord, write_blueprint
from .llm import GeminiAnalysisClient
from .media import MediaPayload, MediaPreprocessor
from .pipeline import PipelineOrchestrator, PipelineResult, PipelineStatus

__all__ = [
    # Version info
    "__version__",
    "__author__",
    "__project__",
    # Paths
    "PACKAGE_ROOT",
    "PROJECT_ROOT",
    # Startup
    "initialize",
    # Pipeline
    "AGENT_DIRECTORY",
    "AgentDirectory",
    "AgentDirectoryEntry",
    "GeminiAnalysisClient",
    "MediaPayload",
    "MediaPreprocessor",
    "PipelineOrchestrator",
    "PipelineResult",
    "PipelineStatus",
    "RunHistory",
    "RunRecord",
    "write_blueprint",
]
