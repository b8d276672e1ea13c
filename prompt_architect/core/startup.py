"""
Startup validation and environment checks.

Loads configuration, routes logs into a session file under the configured
logs directory, and reports whether a Gemini credential is available.
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .config import ArchitectConfig, load_config, set_config
from .constants import CredentialStatus
from .env_loader import get_api_key, get_google_api_key
from .logging_config import LogLevel, create_session_log, get_logger, setup_logging

logger = get_logger("core.startup")


@dataclass
class ValidationResult:
    """Result of environment validation."""
    valid: bool
    credential_status: CredentialStatus = CredentialStatus.UNKNOWN
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_environment(config: ArchitectConfig) -> ValidationResult:
    """
    Check that a Gemini API key is available.

    The key is only checked for presence; whether the service accepts it is
    known after the first call.
    """
    errors = []
    warnings = []

    api_key = get_api_key(config.model.api_key_env) or get_google_api_key()
    if not api_key:
        errors.append(
            f"No Gemini API key found. Set {config.model.api_key_env} "
            "(or GEMINI_API_KEY) in the environment or .env"
        )

    for binary in (config.media.ffmpeg_binary, config.media.ffprobe_binary):
        if shutil.which(binary) is None:
            warnings.append(f"{binary} not found on PATH - video ingest will be unavailable")

    return ValidationResult(
        valid=len(errors) == 0,
        credential_status=CredentialStatus.UNKNOWN if api_key else CredentialStatus.MISSING,
        errors=errors,
        warnings=warnings
    )


def configure_logging(config: ArchitectConfig, session_prefix: Optional[str] = "session") -> Optional[Path]:
    """
    Set up logging from configuration.

    With a session prefix, records also go to a timestamped file under
    config.logs_dir and its path is returned.
    """
    level = LogLevel.DEBUG if config.verbose_logging else LogLevel.INFO
    if session_prefix is None:
        setup_logging(level=level, verbose=config.verbose_logging)
        return None
    return create_session_log(config.logs_dir, session_prefix, level=level, verbose=config.verbose_logging)


def initialize(config_path: Optional[Path] = None, session_prefix: Optional[str] = "session") -> ValidationResult:
    """
    Load configuration, install it process-wide and set up logging.

    Returns the environment validation result; its credential_status can be
    passed straight to the orchestrator.
    """
    config = load_config(config_path)
    set_config(config)
    log_file = configure_logging(config, session_prefix)

    logger.info(f"Starting {config.project_name} {config.version}")
    if log_file:
        logger.info(f"Session log: {log_file}")

    result = validate_environment(config)
    for error in result.errors:
        logger.error(f"  - {error}")
    for warning in result.warnings:
        logger.warning(f"  - {warning}")
    return result
