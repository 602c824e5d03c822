"""Configuration management module for Job Watch."""

from .environment import EnvironmentConfig, load_environment_config, parse_recipients
from .exceptions import ConfigurationError
from .loader import load_config
from .models import (
    AdvancedConfig,
    AppConfig,
    CheckConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    NotificationsConfig,
)

__all__ = [
    # Main loader functions
    "load_config",
    "load_environment_config",
    "parse_recipients",
    # Configuration models
    "AppConfig",
    "CheckConfig",
    "LoggingConfig",
    "AdvancedConfig",
    "NotificationsConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
