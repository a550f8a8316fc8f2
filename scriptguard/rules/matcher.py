"""Rule matcher - deterministic evaluation of a text against policy rules.

Pure functions only: no storage access, no network, no clock.
"""

from __future__ import annotations

import re
from functools import lru_cache
from typing import Iterable

from scriptguard.rules.models import (
    ForbiddenPairing,
    Rule,
    Severity,
    ViolationCheckResult,
    ViolationFinding,
)


# =============================================================================
# Risk Scoring
# =============================================================================

SEVERITY_WEIGHTS: dict[str, int] = {
    Severity.LOW.value: 10,
    Severity.MEDIUM.value: 25,
    Severity.HIGH.value: 40,
    Severity.CRITICAL.value: 60,
}
DEFAULT_SEVERITY_WEIGHT = 20
MAX_RISK = 100

NO_VIOLATION_EXPLANATION = "No policy violations found."


def severity_weight(severity: Severity | str) -> int:
    """Risk weight of one finding with the given severity."""
    key = severity.value if isinstance(severity, Severity) else str(severity)
    return SEVERITY_WEIGHTS.get(key, DEFAULT_SEVERITY_WEIGHT)


def calculate_risk(findings: Iterable[ViolationFinding]) -> int:
    """Sum of finding weights, capped at MAX_RISK."""
    return min(MAX_RISK, sum(severity_weight(f.severity) for f in findings))


def clamp_risk(value: float) -> int:
    """Coerce an arbitrary score into the 0-100 risk range."""
    return max(0, min(MAX_RISK, int(round(value))))


def violation_explanation(count: int) -> str:
    """Templated explanation for a local check with ``count`` findings."""
    if count == 0:
        return NO_VIOLATION_EXPLANATION
    return f"Found {count} violation(s); fix them before posting."


# =============================================================================
# Matching
# =============================================================================


@lru_cache(maxsize=1024)
def _pairing_pattern(word1: str, word2: str) -> re.Pattern[str]:
    first, second = re.escape(word1), re.escape(word2)
    return re.compile(f"{first}.*{second}|{second}.*{first}", re.IGNORECASE | re.DOTALL)


def contains_word(text: str, word: str) -> bool:
    """Case-insensitive literal substring test."""
    return word.lower() in text.lower()


def matches_pairing(text: str, pairing: ForbiddenPairing) -> bool:
    """True if both words occur in the text, in either order."""
    return _pairing_pattern(pairing.word1, pairing.word2).search(text) is not None


def find_violations(text: str, rules: Iterable[Rule]) -> list[ViolationFinding]:
    """All findings for the active rules, in evaluation order, not deduplicated."""
    findings: list[ViolationFinding] = []

    for rule in rules:
        if not rule.is_active:
            continue

        for word in rule.forbidden_words:
            if contains_word(text, word):
                findings.append(
                    ViolationFinding(
                        rule_id=rule.id,
                        rule_title=rule.title,
                        violation=f'found forbidden word: "{word}"',
                        severity=rule.severity.value,
                        suggestion=f'Avoid the word "{word}" and use a different expression.',
                    )
                )

        for pairing in rule.forbidden_pairings:
            if matches_pairing(text, pairing):
                findings.append(
                    ViolationFinding(
                        rule_id=rule.id,
                        rule_title=rule.title,
                        violation=(
                            f'found forbidden pairing: "{pairing.word1}" + "{pairing.word2}"'
                        ),
                        severity=rule.severity.value,
                        suggestion=(
                            f'Avoid using "{pairing.word1}" together with "{pairing.word2}".'
                        ),
                    )
                )

    return findings


def check_text(text: str, rules: Iterable[Rule]) -> ViolationCheckResult:
    """Evaluate a text against a rule set."""
    findings = find_violations(text, rules)
    return ViolationCheckResult(
        is_violating=bool(findings),
        violated_rules=findings,
        overall_risk=calculate_risk(findings),
        explanation=violation_explanation(len(findings)),
    )
