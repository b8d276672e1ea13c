"""
Prompt Architect Custom Exceptions

Exception classes for media ingestion, analysis calls and pipeline control.
"""


class PromptArchitectError(Exception):
    """Base exception for all Prompt Architect errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================

class ConfigurationError(PromptArchitectError):
    """Raised when there's an issue with configuration."""
    pass


class MissingConfigError(ConfigurationError):
    """Raised when a required configuration is missing."""
    pass


class InvalidConfigError(ConfigurationError):
    """Raised when a configuration value is invalid."""
    pass


# =============================================================================
# MEDIA ERRORS
# =============================================================================

class MediaError(PromptArchitectError):
    """Base exception for media preprocessing errors."""
    pass


class MediaLoadError(MediaError):
    """Raised when a media file cannot be read or decoded."""

    def __init__(self, path: str, reason: str):
        message = f"Failed to load media '{path}': {reason}"
        super().__init__(message, {"path": path, "reason": reason})


class UnsupportedMediaError(MediaError):
    """Raised when the declared media kind is not image or video."""
    pass


class FrameExtractionError(MediaError):
    """Raised when a still cannot be captured from a video."""

    def __init__(self, path: str, timestamp: float, reason: str):
        message = f"Frame capture at {timestamp:.2f}s failed for '{path}': {reason}"
        super().__init__(message, {"path": path, "timestamp": timestamp, "reason": reason})


class MediaTimeoutError(MediaError):
    """Raised when a video never becomes loaded/seekable within the timeout."""

    def __init__(self, path: str, timeout: float):
        message = f"Video '{path}' did not become seekable within {timeout:.1f}s"
        super().__init__(message, {"path": path, "timeout": timeout})


# =============================================================================
# ANALYSIS (EXTERNAL SERVICE) ERRORS
# =============================================================================

class AnalysisError(PromptArchitectError):
    """Base exception for failures of the external analysis call."""

    def __init__(self, message: str, status_code: int = None, details: dict = None):
        details = dict(details or {})
        if status_code is not None:
            details.setdefault("status_code", status_code)
        super().__init__(message, details)
        self.status_code = status_code


class TransientCapacityError(AnalysisError):
    """Raised when the service signals rate limiting or quota exhaustion."""
    pass


class CredentialInvalidError(AnalysisError):
    """Raised when the configured credential cannot be found or authorised."""
    pass


class AnalysisServiceError(AnalysisError):
    """Raised for any other service, transport or response failure."""
    pass


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class PipelineError(PromptArchitectError):
    """Base exception for pipeline errors."""
    pass


class PipelineBusyError(PipelineError):
    """Raised when a dispatch is requested while a run is in progress."""

    def __init__(self, run_id: str):
        message = f"Pipeline run '{run_id}' is still in progress"
        super().__init__(message, {"run_id": run_id})


class CredentialRequiredError(PipelineError):
    """Raised when a dispatch is requested without a usable credential."""

    def __init__(self, status: str):
        message = f"Cannot dispatch pipeline with credential status '{status}'"
        super().__init__(message, {"credential_status": status})


class InvalidTransitionError(PipelineError):
    """Raised when a stage status change violates the stage lifecycle."""

    def __init__(self, stage_id: str, current: str, requested: str):
        message = f"Stage '{stage_id}' cannot move from {current} to {requested}"
        super().__init__(message, {"stage": stage_id, "from": current, "to": requested})


class UnknownStageError(PipelineError):
    """Raised when a stage identifier is not part of the pipeline."""

    def __init__(self, stage_id: str):
        message = f"Unknown pipeline stage: '{stage_id}'"
        super().__init__(message, {"stage": stage_id})
