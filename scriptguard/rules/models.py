"""Rule domain models.

Attributes are snake_case; serialized documents (storage, export blobs, API
payloads) use camelCase keys. Both spellings are accepted on input.
"""

from __future__ import annotations

import time
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def check_forbidden_words(words: list[str] | None) -> list[str] | None:
    """Reject empty entries in a forbidden word list."""
    if words and any(not word for word in words):
        raise ValueError("forbidden words must be non-empty strings")
    return words


# =============================================================================
# Enumerations
# =============================================================================


class RuleCategory(str, Enum):
    """Policy rule categories, in brief rendering order."""

    OVERCLAIMS = "overclaims"
    MEDICAL_SUPPLEMENT = "medical_supplement"
    FORBIDDEN_PAIRINGS = "forbidden_pairings"
    VIOLENCE_SAFETY = "violence_safety"
    PLATFORM_MENTIONS = "platform_mentions"
    BEFORE_AFTER = "before_after"
    OTHER = "other"


class Severity(str, Enum):
    """Rule severity, ordered by increasing risk weight."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# =============================================================================
# Rules
# =============================================================================


class ForbiddenPairing(BaseModel):
    """Two words whose joint presence in a text is a violation."""

    model_config = ConfigDict(frozen=True)

    word1: str = Field(..., min_length=1)
    word2: str = Field(..., min_length=1)


class _RuleFields(BaseModel):
    """Fields shared by stored rules and rule drafts."""

    model_config = _CAMEL

    category: RuleCategory = Field(default=RuleCategory.OTHER)
    title: str = Field(..., description="Human-readable rule title")
    description: str = Field(default="")
    forbidden_words: list[str] = Field(default_factory=list)
    forbidden_pairings: list[ForbiddenPairing] = Field(default_factory=list)
    examples: list[str] = Field(default_factory=list, description="Informational only")
    severity: Severity = Field(default=Severity.MEDIUM)
    is_active: bool = Field(default=True)

    @field_validator("forbidden_words")
    @classmethod
    def _words_not_empty(cls, words: list[str]) -> list[str]:
        return check_forbidden_words(words)


class NewRule(_RuleFields):
    """A rule before the store assigns its identity and timestamps."""


class Rule(_RuleFields):
    """A stored policy rule. Immutable; updates produce a new record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1, description="Stable unique identifier")
    created_at: int = Field(default_factory=now_ms, description="Epoch milliseconds")
    updated_at: int = Field(default_factory=now_ms, description="Epoch milliseconds")

    def apply(self, changes: RuleUpdate, updated_at: int | None = None) -> Rule:
        """Return a new rule with ``changes`` merged in and ``updated_at`` refreshed."""
        data = self.model_dump()
        data.update(changes.model_dump(exclude_unset=True, exclude_none=True))
        data["updated_at"] = updated_at if updated_at is not None else now_ms()
        return Rule.model_validate(data)


class RuleUpdate(BaseModel):
    """Partial rule changes. Only explicitly set fields are applied."""

    model_config = _CAMEL

    category: RuleCategory | None = None
    title: str | None = None
    description: str | None = None
    forbidden_words: list[str] | None = None
    forbidden_pairings: list[ForbiddenPairing] | None = None
    examples: list[str] | None = None
    severity: Severity | None = None
    is_active: bool | None = None

    @field_validator("forbidden_words")
    @classmethod
    def _words_not_empty(cls, words: list[str] | None) -> list[str] | None:
        return check_forbidden_words(words)


class RulesMetadata(BaseModel):
    """Derived projection of the rule store, recomputed on every write."""

    model_config = _CAMEL

    last_updated: int
    total_rules: int
    active_rules: int
    source: str
    version: str


# =============================================================================
# Violation Reports
# =============================================================================


class ViolationFinding(BaseModel):
    """A single rule violation found in a text."""

    model_config = _CAMEL

    rule_id: str = "ai-check"
    rule_title: str = ""
    violation: str = ""
    severity: str = Severity.MEDIUM.value
    suggestion: str = ""


class ViolationCheckResult(BaseModel):
    """Outcome of checking one text against the rule set."""

    model_config = _CAMEL

    is_violating: bool = False
    violated_rules: list[ViolationFinding] = Field(default_factory=list)
    overall_risk: int = Field(default=0, ge=0, le=100)
    explanation: str = ""
