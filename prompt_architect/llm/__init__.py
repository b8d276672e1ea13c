"""
Prompt Architect LLM Module

External analysis client for the multimodal generation service.
"""

from .base import BaseAnalysisClient, compose_prompt
from .gemini_client import GeminiAnalysisClient, classify_http_error, extract_text

__all__ = [
    "BaseAnalysisClient",
    "GeminiAnalysisClient",
    "classify_http_error",
    "compose_prompt",
    "extract_text",
]
