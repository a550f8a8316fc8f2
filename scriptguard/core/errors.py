"""
Error types shared across the rule engine and its API.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


class ScriptGuardError(Exception):
    """Base exception for the rule engine."""

    code = "SCRIPT_GUARD_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(code=self.code, message=self.message, details=self.details)


class StorageError(ScriptGuardError):
    """Underlying key-value persistence could not be read or written."""

    code = "STORAGE_UNAVAILABLE"


class MalformedImport(ScriptGuardError):
    """An import blob failed structural validation."""

    code = "MALFORMED_IMPORT"


class CollaboratorError(ScriptGuardError):
    """The external text-generation collaborator failed or replied with garbage."""

    code = "COLLABORATOR_FAILURE"


class RuleGenerationError(ScriptGuardError):
    """AI rule generation could not produce rules."""

    code = "RULE_GENERATION_FAILED"


class RemediationError(ScriptGuardError):
    """Script rewrite could not be produced."""

    code = "REMEDIATION_FAILED"
