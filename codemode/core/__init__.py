"""
Core functionality for codemode.
"""

from .config import (
    CapabilityConfig,
    ConfigManager,
    LoggingConfig,
    ProjectConfig,
    SandboxConfig,
)
from .exceptions import (
    CapabilityError,
    CapabilityNotFoundError,
    CodeModeError,
    ConfigurationError,
    ExecutionError,
    ExecutionTimeoutError,
    GuestRuntimeError,
    GuestSyntaxError,
    RuntimeNotFoundError,
    UnknownCapabilityError,
    format_error_message,
)
from .logging import get_logger, setup_logging

__all__ = [
    "CapabilityConfig",
    "CapabilityError",
    "CapabilityNotFoundError",
    "CodeModeError",
    "ConfigManager",
    "ConfigurationError",
    "ExecutionError",
    "ExecutionTimeoutError",
    "GuestRuntimeError",
    "GuestSyntaxError",
    "LoggingConfig",
    "ProjectConfig",
    "RuntimeNotFoundError",
    "SandboxConfig",
    "UnknownCapabilityError",
    "format_error_message",
    "get_logger",
    "setup_logging",
]
