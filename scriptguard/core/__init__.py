"""Core - configuration, logging and shared error types."""

from scriptguard.core.config import Settings, get_settings, llm_available
from scriptguard.core.errors import (
    ErrorResponse,
    ScriptGuardError,
    StorageError,
    MalformedImport,
    CollaboratorError,
    RuleGenerationError,
    RemediationError,
)
from scriptguard.core.logging import configure_logging, get_logger

__all__ = [
    # Config
    "Settings",
    "get_settings",
    "llm_available",
    # Errors
    "ErrorResponse",
    "ScriptGuardError",
    "StorageError",
    "MalformedImport",
    "CollaboratorError",
    "RuleGenerationError",
    "RemediationError",
    # Logging
    "configure_logging",
    "get_logger",
]
