"""Pydantic models for moderation API requests and responses."""

from pydantic import BaseModel, Field


class RecheckRequest(BaseModel):
    """Script to re-check against the rules."""

    text: str = Field(..., description="Script or transcript text")


class RewriteRequest(BaseModel):
    """Script to rewrite, with the violations found so far."""

    script: str = Field(..., description="Original script text")
    violations: list[str] = Field(default_factory=list, description="Violation descriptions")


class RewriteResponse(BaseModel):
    """Compliant rewrite of a script."""

    script: str
