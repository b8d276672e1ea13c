"""
Prompt Architect Core Module

Contains core systems including configuration, constants, exceptions,
logging, retry handling and startup.
"""

from .config import ArchitectConfig, load_config, save_config, get_config, set_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger
from .retry import RetryConfig, RetryAttempt, retry_async_call, ANALYSIS_RETRY_CONFIG
from .startup import ValidationResult, configure_logging, initialize, validate_environment
