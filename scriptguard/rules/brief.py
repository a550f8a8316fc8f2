"""Rule prompt compiler - renders active rules as a policy brief for an LLM."""

from __future__ import annotations

from typing import Iterable

from scriptguard.rules.models import Rule, RuleCategory

BRIEF_HEADING = "TIKTOK POLICY & FORBIDDEN WORDS (STRICT ENFORCEMENT):"

# Enum declaration order is the rendering order.
CATEGORY_ORDER: tuple[RuleCategory, ...] = tuple(RuleCategory)


def build_brief(rules: Iterable[Rule]) -> str:
    """Render active rules grouped by category with continuous numbering.

    Example output:
        TIKTOK POLICY & FORBIDDEN WORDS (STRICT ENFORCEMENT):
        1. Overclaims:
           - Forbidden words: หายขาด, การันตี
        2. Forbidden Word Pairings:
           - Forbidden pairings: "ลด" + "ไขมัน"
    """
    grouped: dict[RuleCategory, list[Rule]] = {category: [] for category in CATEGORY_ORDER}
    for rule in rules:
        if rule.is_active:
            grouped[rule.category].append(rule)

    lines = [BRIEF_HEADING]
    index = 1
    for category in CATEGORY_ORDER:
        for rule in grouped[category]:
            lines.append(f"{index}. {rule.title}:")
            if rule.forbidden_words:
                lines.append(f"   - Forbidden words: {', '.join(rule.forbidden_words)}")
            if rule.forbidden_pairings:
                pairings = ", ".join(
                    f'"{p.word1}" + "{p.word2}"' for p in rule.forbidden_pairings
                )
                lines.append(f"   - Forbidden pairings: {pairings}")
            index += 1

    return "\n".join(lines) + "\n"
