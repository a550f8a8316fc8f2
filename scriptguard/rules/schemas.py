"""Pydantic models for rules domain API requests and responses."""

from pydantic import BaseModel, Field

from scriptguard.rules.models import Rule


class RulesListResponse(BaseModel):
    """Response listing rules."""

    rules: list[Rule]
    total: int


class CheckRequest(BaseModel):
    """Text to check against the local rule set."""

    text: str = Field(..., description="Free text, e.g. a video script")


class BriefResponse(BaseModel):
    """Compiled policy brief for prompt embedding."""

    brief: str
    active_rules: int


class ImportResponse(BaseModel):
    """Outcome of a rule import."""

    imported: bool
    total: int
