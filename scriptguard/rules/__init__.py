"""Rules domain - rule store, matcher and policy brief compiler.

The HTTP routes live in ``scriptguard.rules.router``.
"""

from .models import (
    RuleCategory,
    Severity,
    ForbiddenPairing,
    NewRule,
    Rule,
    RuleUpdate,
    RulesMetadata,
    ViolationFinding,
    ViolationCheckResult,
    now_ms,
)
from .store import (
    RuleStore,
    RulesReadResult,
    default_rules,
    build_metadata,
    parse_export_blob,
)
from .matcher import (
    SEVERITY_WEIGHTS,
    DEFAULT_SEVERITY_WEIGHT,
    MAX_RISK,
    severity_weight,
    calculate_risk,
    find_violations,
    check_text,
)
from .brief import BRIEF_HEADING, CATEGORY_ORDER, build_brief

__all__ = [
    # Models
    "RuleCategory",
    "Severity",
    "ForbiddenPairing",
    "NewRule",
    "Rule",
    "RuleUpdate",
    "RulesMetadata",
    "ViolationFinding",
    "ViolationCheckResult",
    "now_ms",
    # Store
    "RuleStore",
    "RulesReadResult",
    "default_rules",
    "build_metadata",
    "parse_export_blob",
    # Matcher
    "SEVERITY_WEIGHTS",
    "DEFAULT_SEVERITY_WEIGHT",
    "MAX_RISK",
    "severity_weight",
    "calculate_risk",
    "find_violations",
    "check_text",
    # Brief
    "BRIEF_HEADING",
    "CATEGORY_ORDER",
    "build_brief",
]
