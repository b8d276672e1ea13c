"""
Prompt Architect Gemini Client

Single-request client for the Gemini generateContent endpoint. Media frames
travel as inline_data parts, followed by one composed text part.
"""

from typing import Any, Dict, Optional

import httpx

from prompt_architect.core.config import ModelConfig
from prompt_architect.core.constants import NODE_SILENT, ModelTier
from prompt_architect.core.env_loader import get_api_key, get_google_api_key
from prompt_architect.core.exceptions import (
    AnalysisError,
    AnalysisServiceError,
    CredentialInvalidError,
    TransientCapacityError,
)
from prompt_architect.core.logging_config import get_logger
from prompt_architect.media.preprocessor import MediaPayload

from .base import BaseAnalysisClient, compose_prompt

logger = get_logger("llm.gemini")

CAPACITY_MARKERS = ("429", "resource_exhausted", "rate limit", "quota")
CREDENTIAL_MARKERS = (
    "api key not valid",
    "api_key_invalid",
    "requested entity was not found",
    "permission_denied",
    "unauthenticated",
)


def _error_details(response: httpx.Response) -> Dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {"message": response.text}
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        return payload["error"]
    return {"message": response.text}


def classify_http_error(status_code: int, message: str, status: str = "") -> AnalysisError:
    """
    Map an HTTP failure from the service onto the error taxonomy.

    Rate limits and quota exhaustion are transient; rejected or unknown
    credentials are credential failures; everything else is a service error.
    """
    haystack = f"{status} {message}".lower()

    if status_code == 429 or any(marker in haystack for marker in CAPACITY_MARKERS):
        return TransientCapacityError(f"Rate limited (HTTP {status_code}): {message}", status_code)

    if status_code in (401, 403) or any(marker in haystack for marker in CREDENTIAL_MARKERS):
        return CredentialInvalidError(f"Credential rejected (HTTP {status_code}): {message}", status_code)

    return AnalysisServiceError(f"HTTP {status_code}: {message}", status_code)


def extract_text(result: Dict[str, Any]) -> str:
    """Concatenate the text parts of the first candidate."""
    candidates = result.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))


class GeminiAnalysisClient(BaseAnalysisClient):
    """Client for Google Gemini multimodal analysis."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        config: Optional[ModelConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the client.

        Args:
            api_key: Gemini API key; read from the environment when omitted
            config: Model tiers, endpoint and timeout
            http_client: Shared AsyncClient; one is created when omitted
        """
        self.config = config or ModelConfig()
        self.api_key = api_key or get_api_key(self.config.api_key_env) or get_google_api_key()
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=self.config.timeout)

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-goog-api-key": self.api_key or "",
        }

    def build_request_body(self, media: MediaPayload, instructions: str, context: str) -> Dict[str, Any]:
        """Inline media parts in frame order, then the composed prompt."""
        parts = [
            {"inline_data": {"mime_type": frame.mime_type, "data": frame.base64}}
            for frame in media.frames
        ]
        parts.append({"text": compose_prompt(instructions, context)})

        body: Dict[str, Any] = {"contents": [{"parts": parts}]}

        generation_config = {}
        if self.config.temperature is not None:
            generation_config["temperature"] = self.config.temperature
        if self.config.max_output_tokens is not None:
            generation_config["maxOutputTokens"] = self.config.max_output_tokens
        if generation_config:
            body["generationConfig"] = generation_config
        return body

    async def analyze(
        self,
        media: MediaPayload,
        instructions: str,
        context: str,
        tier: ModelTier = ModelTier.FAST
    ) -> str:
        if not self.api_key:
            raise CredentialInvalidError("No Gemini API key configured")

        model = self.config.model_for(tier)
        url = f"{self.config.base_url}/{model}:generateContent"
        body = self.build_request_body(media, instructions, context)

        logger.debug(f"Calling {model} with {len(media.frames)} frame(s)")

        try:
            response = await self._http.post(url, json=body, headers=self._get_headers())
        except httpx.TimeoutException as e:
            raise AnalysisServiceError(f"Request to {model} timed out: {e}")
        except httpx.HTTPError as e:
            raise AnalysisServiceError(f"Transport error calling {model}: {e}")

        if response.status_code >= 400:
            details = _error_details(response)
            raise classify_http_error(
                response.status_code,
                str(details.get("message", "")),
                str(details.get("status", "")),
            )

        try:
            result = response.json()
        except ValueError:
            raise AnalysisServiceError(f"Malformed response from {model}", response.status_code)
        if not isinstance(result, dict):
            raise AnalysisServiceError(f"Unexpected response shape from {model}", response.status_code)

        text = extract_text(result)
        if not text.strip():
            logger.info(f"{model} returned no text; using {NODE_SILENT}")
            return NODE_SILENT
        return text

    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()
