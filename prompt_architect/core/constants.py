"""
Prompt Architect Constants

Global constants used throughout the Prompt Architect system.
"""

from enum import Enum
from typing import Dict, Tuple

# =============================================================================
# VERSION INFO
# =============================================================================
VERSION = "2.0.0"
PROJECT_NAME = "Prompt Architect"

# =============================================================================
# MEDIA
# =============================================================================

class MediaKind(Enum):
    """Kind of ingested media."""
    IMAGE = "image"
    VIDEO = "video"


JPEG_MIME_TYPE = "image/jpeg"
DEFAULT_JPEG_QUALITY = 80

# Video sampling: start offset and near-end offset in seconds, middle is D/2
FRAME_START_OFFSET = 0.1
FRAME_END_OFFSET = 0.1
VIDEO_FRAME_COUNT = 3

DEFAULT_MEDIA_LOAD_TIMEOUT = 30.0

# =============================================================================
# MODEL TIERS
# =============================================================================

class ModelTier(Enum):
    """Model tier used for a pipeline stage."""
    FAST = "fast"
    REASONING = "reasoning"


DEFAULT_TIER_MODELS: Dict[ModelTier, str] = {
    ModelTier.FAST: "gemini-3-flash-preview",
    ModelTier.REASONING: "gemini-3-pro-preview",
}

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"

# Returned by the analysis client when the service produced no text
NODE_SILENT = "NODE_SILENT"

# =============================================================================
# CREDENTIALS
# =============================================================================

class CredentialStatus(Enum):
    """Caller-owned state of the API credential."""
    UNKNOWN = "unknown"
    VALID = "valid"
    MISSING = "missing"
    INVALID = "invalid"


BLOCKING_CREDENTIAL_STATES: Tuple[CredentialStatus, ...] = (
    CredentialStatus.MISSING,
    CredentialStatus.INVALID,
)

# =============================================================================
# DIRECTIVES
# =============================================================================

SYSTEM_PROMPT = (
    "You are a sophisticated Multi-Agent Prompt Engineering System specialized in both "
    "static and temporal visual analysis.\n"
    "Your goal is to perform a deep visual audit of the provided media (image or video) "
    "and construct a prompt that captures its technical, emotional, and stylistic essence.\n"
    "Use professional terminology suitable for high-end generative models like "
    "Midjourney v6, Luma Dream Machine, Sora, or Runway Gen-3."
)

DEFAULT_DIRECTIVE = "Analyze visual material."

OPERATIONAL_CONSTRAINTS = (
    "1. Use dense, technical terminology only.",
    "2. Analyze physics, optics, lighting, and material science.",
    "3. For video frames: Prioritize temporal shifts and motion persistence.",
    "4. Avoid conversational filler. Output the raw architectural data.",
)

# =============================================================================
# STAGE DIAGNOSTICS
# =============================================================================

INGEST_STAGE_ID = "input"

DIAGNOSTIC_CAPACITY_EXHAUSTED = (
    "Capacity exhausted: the service kept rate-limiting this node. "
    "Consider switching to an alternate API key."
)
DIAGNOSTIC_CREDENTIAL_INVALID = (
    "Credential rejected: the configured API key could not be found or authorised. "
    "Select a valid key and re-run."
)
DIAGNOSTIC_LINK_SEVERED = "Link severed: neural node failed to respond."

DIAGNOSTIC_CANCELLED = "Link aborted: dispatch was cancelled before the node responded."

BLUEPRINT_FILENAME = "synthesized_blueprint.txt"
DEFAULT_HISTORY_CAPACITY = 10
