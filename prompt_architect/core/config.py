"""
Prompt Architect Configuration Management

Centralized configuration system with JSON loading and validation.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError, InvalidConfigError, MissingConfigError
from .constants import (
    DEFAULT_HISTORY_CAPACITY,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MEDIA_LOAD_TIMEOUT,
    DEFAULT_TIER_MODELS,
    FRAME_END_OFFSET,
    FRAME_START_OFFSET,
    GEMINI_BASE_URL,
    PROJECT_NAME,
    SYSTEM_PROMPT,
    VERSION,
    ModelTier,
)
from .retry import RetryConfig, TRANSIENT_EXCEPTIONS


@dataclass
class ModelConfig:
    """Configuration for the Gemini analysis endpoint."""
    tier_models: Dict[ModelTier, str] = field(default_factory=lambda: dict(DEFAULT_TIER_MODELS))
    base_url: str = GEMINI_BASE_URL
    api_key_env: str = "GOOGLE_API_KEY"
    timeout: float = 120.0
    temperature: Optional[float] = None
    max_output_tokens: Optional[int] = None

    def model_for(self, tier: ModelTier) -> str:
        """Resolve the model name used for a tier."""
        try:
            return self.tier_models[tier]
        except KeyError:
            raise MissingConfigError(f"No model configured for tier: {tier.value}")

    @classmethod
    def from_dict(cls, data: dict) -> 'ModelConfig':
        tier_models = dict(DEFAULT_TIER_MODELS)
        for tier_name, model in data.get('tier_models', {}).items():
            try:
                tier_models[ModelTier(tier_name)] = model
            except ValueError:
                raise InvalidConfigError(f"Unknown model tier: {tier_name}")
        return cls(
            tier_models=tier_models,
            base_url=data.get('base_url', GEMINI_BASE_URL),
            api_key_env=data.get('api_key_env', "GOOGLE_API_KEY"),
            timeout=data.get('timeout', 120.0),
            temperature=data.get('temperature'),
            max_output_tokens=data.get('max_output_tokens'),
        )

    def to_dict(self) -> dict:
        return {
            'tier_models': {tier.value: model for tier, model in self.tier_models.items()},
            'base_url': self.base_url,
            'api_key_env': self.api_key_env,
            'timeout': self.timeout,
            'temperature': self.temperature,
            'max_output_tokens': self.max_output_tokens,
        }


@dataclass
class RetrySettings:
    """Backoff settings for rate-limited analysis calls."""
    max_attempts: int = 4
    base_delay: float = 2.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = False

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            exponential_base=self.exponential_base,
            jitter=self.jitter,
            retryable_exceptions=TRANSIENT_EXCEPTIONS,
        )


@dataclass
class MediaConfig:
    """Media preprocessing settings."""
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    load_timeout: float = DEFAULT_MEDIA_LOAD_TIMEOUT
    start_offset: float = FRAME_START_OFFSET
    end_offset: float = FRAME_END_OFFSET
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"


@dataclass
class PipelineSettings:
    """Pipeline behaviour settings."""
    base_directive: str = SYSTEM_PROMPT
    halt_on_error: bool = True
    history_capacity: int = DEFAULT_HISTORY_CAPACITY


@dataclass
class ArchitectConfig:
    """Main configuration class for Prompt Architect."""

    project_name: str = PROJECT_NAME
    version: str = VERSION
    logs_dir: Path = field(default_factory=lambda: Path("logs"))

    model: ModelConfig = field(default_factory=ModelConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)
    media: MediaConfig = field(default_factory=MediaConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)

    verbose_logging: bool = False

    def validate(self) -> None:
        """Raise InvalidConfigError for values the pipeline cannot run with."""
        if self.retry.max_attempts < 1:
            raise InvalidConfigError("retry.max_attempts must be at least 1")
        if self.retry.base_delay < 0 or self.retry.max_delay < 0:
            raise InvalidConfigError("retry delays must be non-negative")
        if not 1 <= self.media.jpeg_quality <= 95:
            raise InvalidConfigError("media.jpeg_quality must be between 1 and 95")
        if self.media.load_timeout <= 0:
            raise InvalidConfigError("media.load_timeout must be positive")
        if self.pipeline.history_capacity < 1:
            raise InvalidConfigError("pipeline.history_capacity must be at least 1")

    @classmethod
    def from_dict(cls, data: dict) -> 'ArchitectConfig':
        """Create ArchitectConfig from dictionary."""
        config = cls()

        config.project_name = data.get('project_name', config.project_name)
        config.version = data.get('version', config.version)
        config.verbose_logging = data.get('verbose_logging', config.verbose_logging)

        if 'paths' in data:
            config.logs_dir = Path(data['paths'].get('logs_dir', 'logs'))

        if 'model' in data:
            config.model = ModelConfig.from_dict(data['model'])

        if 'retry' in data:
            retry_data = data['retry']
            config.retry = RetrySettings(
                max_attempts=retry_data.get('max_attempts', 4),
                base_delay=retry_data.get('base_delay', 2.0),
                max_delay=retry_data.get('max_delay', 60.0),
                exponential_base=retry_data.get('exponential_base', 2.0),
                jitter=retry_data.get('jitter', False),
            )

        if 'media' in data:
            media_data = data['media']
            config.media = MediaConfig(
                jpeg_quality=media_data.get('jpeg_quality', DEFAULT_JPEG_QUALITY),
                load_timeout=media_data.get('load_timeout', DEFAULT_MEDIA_LOAD_TIMEOUT),
                start_offset=media_data.get('start_offset', FRAME_START_OFFSET),
                end_offset=media_data.get('end_offset', FRAME_END_OFFSET),
                ffmpeg_binary=media_data.get('ffmpeg_binary', "ffmpeg"),
                ffprobe_binary=media_data.get('ffprobe_binary', "ffprobe"),
            )

        if 'pipeline' in data:
            pipe_data = data['pipeline']
            config.pipeline = PipelineSettings(
                base_directive=pipe_data.get('base_directive', SYSTEM_PROMPT),
                halt_on_error=pipe_data.get('halt_on_error', True),
                history_capacity=pipe_data.get('history_capacity', DEFAULT_HISTORY_CAPACITY),
            )

        config.validate()
        return config

    def to_dict(self) -> Dict[str, Any]:
        return {
            'project_name': self.project_name,
            'version': self.version,
            'verbose_logging': self.verbose_logging,
            'paths': {'logs_dir': str(self.logs_dir)},
            'model': self.model.to_dict(),
            'retry': {
                'max_attempts': self.retry.max_attempts,
                'base_delay': self.retry.base_delay,
                'max_delay': self.retry.max_delay,
                'exponential_base': self.retry.exponential_base,
                'jitter': self.retry.jitter,
            },
            'media': {
                'jpeg_quality': self.media.jpeg_quality,
                'load_timeout': self.media.load_timeout,
                'start_offset': self.media.start_offset,
                'end_offset': self.media.end_offset,
                'ffmpeg_binary': self.media.ffmpeg_binary,
                'ffprobe_binary': self.media.ffprobe_binary,
            },
            'pipeline': {
                'base_directive': self.pipeline.base_directive,
                'halt_on_error': self.pipeline.halt_on_error,
                'history_capacity': self.pipeline.history_capacity,
            },
        }


def load_config(config_path: Path = None) -> ArchitectConfig:
    """
    Load configuration from JSON file.

    Args:
        config_path: Path to configuration file. If None, uses default.

    Returns:
        Loaded ArchitectConfig instance
    """
    if config_path is None:
        config_path = Path("config/prompt_architect.json")
    config_path = Path(config_path)

    if not config_path.exists():
        return ArchitectConfig()

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidConfigError(f"Invalid JSON in config file: {e}")
    except OSError as e:
        raise ConfigurationError(f"Failed to load config: {e}")

    return ArchitectConfig.from_dict(data)


def save_config(config: ArchitectConfig, config_path: Path) -> None:
    """Write configuration to a JSON file."""
    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)


# Global config instance
_config: Optional[ArchitectConfig] = None


def get_config() -> ArchitectConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def set_config(config: ArchitectConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
