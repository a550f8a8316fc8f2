"""Moderation services - AI-assisted recheck, rule generation and rewrites.

All three services compile the active rules into a policy brief and hand it
to a text-generation collaborator. Only the recheck path degrades silently;
generation and rewrite failures are raised to the caller.
"""

from __future__ import annotations

import asyncio
import json
from datetime import date
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from scriptguard.core.errors import CollaboratorError, RemediationError, RuleGenerationError
from scriptguard.core.logging import get_logger
from scriptguard.rules.brief import build_brief
from scriptguard.rules.matcher import check_text, clamp_risk
from scriptguard.rules.models import (
    NewRule,
    Rule,
    RuleCategory,
    Severity,
    ViolationCheckResult,
    ViolationFinding,
    now_ms,
)
from scriptguard.rules.store import RuleStore
from scriptguard.moderation.collaborator import TextGenerator

logger = get_logger(__name__)


# =============================================================================
# Prompts
# =============================================================================


def build_recheck_prompt(text: str, brief: str) -> str:
    """Prompt asking the model for a ViolationCheckResult-shaped JSON verdict."""
    return f"""
You are a TikTok content moderator. Analyze this script for policy violations.

Script:
"{text}"

TikTok Rules:
{brief}

Check for:
1. Explicit forbidden words
2. Implied forbidden meanings (even if exact words aren't used)
3. Context-based violations
4. Subtle overclaims
5. Hidden platform mentions

Return JSON:
{{
  "isViolating": boolean,
  "violatedRules": [
    {{
      "ruleId": "ai-check",
      "ruleTitle": "string",
      "violation": "string describing the issue found",
      "severity": "low" | "medium" | "high" | "critical",
      "suggestion": "how to fix it"
    }}
  ],
  "overallRisk": number (0-100),
  "explanation": "string in Thai"
}}

Return only valid JSON, no markdown.
"""


def build_generation_prompt(year: int) -> str:
    """Prompt asking the model for a fresh list of policy rules."""
    categories = " | ".join(f'"{c.value}"' for c in RuleCategory)
    severities = " | ".join(f'"{s.value}"' for s in Severity)
    return f"""
You are an expert on TikTok Community Guidelines and Advertising Policies.
Compile the latest TikTok Community Guidelines for {year}.
Focus on content creation rules, especially for:
1. Health and medical claims
2. Beauty and cosmetic claims
3. Financial claims
4. Violence and safety
5. Prohibited content
6. Advertising restrictions
7. Platform rules about mentioning other social media

Return a JSON object {{"rules": [...]}} where each rule has this structure:
{{
  "category": {categories},
  "title": "Rule title in Thai",
  "description": "Rule description in Thai",
  "forbiddenWords": ["word1", "word2"],
  "forbiddenPairings": [{{"word1": "word", "word2": "word"}}],
  "examples": ["Example violation in Thai"],
  "severity": {severities}
}}

Make sure to include Thai language forbidden words and examples.
Focus on the Thailand market and Thai language content.
Return only valid JSON, no markdown.
"""


def build_rewrite_prompt(script: str, violations: list[str], brief: str) -> str:
    """Prompt asking the model to make a script compliant with minimal edits."""
    return f"""
You are a professional TikTok Script Editor.
I have a video transcript/script that contains policy violations.

Original Script:
"{script}"

Violations Detected: {", ".join(violations)}

TIKTOK RULES:
{brief}

TASK:
Rewrite the content to be 100% compliant with TikTok policies.

CRITICAL INSTRUCTIONS:
1. PRESERVE STRUCTURE: Keep the original timestamps (e.g., [00:12]) and speaker labels exactly as they are. Do not remove or reorder them.
2. TARGETED FIXES: Only change the specific words or phrases that violate the policy (e.g., change "รักษา" to "ดูแล", "ขาว" to "กระจ่างใส").
3. MAINTAIN MEANING: Keep the original tone and context as much as possible.
4. LANGUAGE: Output the rewritten script in Thai.

Example Input:
[00:05] Speaker 1: ครีมนี้รักษาฝ้าให้หายขาดได้ทันที

Example Output:
[00:05] Speaker 1: ครีมนี้ช่วยดูแลปัญหาฝ้าให้แลดูจางลง
"""


# =============================================================================
# External Reports
# =============================================================================


class ExternalViolationReport(BaseModel):
    """Lenient view of a collaborator verdict; every field is optional."""

    is_violating: bool = Field(default=False, alias="isViolating")
    violated_rules: list[ViolationFinding] = Field(default_factory=list, alias="violatedRules")
    overall_risk: float = Field(default=0, alias="overallRisk", allow_inf_nan=False)
    explanation: str = ""

    model_config = {"populate_by_name": True}


def _drop_nulls(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _drop_nulls(v) for k, v in value.items() if v is not None}
    if isinstance(value, list):
        return [_drop_nulls(v) for v in value if v is not None]
    return value


def parse_external_report(payload: str) -> ExternalViolationReport:
    """Parse a collaborator reply.

    Raises:
        CollaboratorError: if the reply is not a JSON object of the expected shape.
    """
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise CollaboratorError("AI verdict is not valid JSON") from e

    if not isinstance(data, dict):
        raise CollaboratorError("AI verdict is not a JSON object")

    try:
        return ExternalViolationReport.model_validate(_drop_nulls(data))
    except ValidationError as e:
        raise CollaboratorError(
            "AI verdict has an unexpected shape", {"errors": e.error_count()}
        ) from e


def merge_results(
    local: ViolationCheckResult, external: ExternalViolationReport
) -> ViolationCheckResult:
    """Combine local and external verdicts; local findings always come first."""
    return ViolationCheckResult(
        is_violating=local.is_violating or external.is_violating,
        violated_rules=[*local.violated_rules, *external.violated_rules],
        overall_risk=max(local.overall_risk, clamp_risk(external.overall_risk)),
        explanation=external.explanation or local.explanation,
    )


# =============================================================================
# Violation Reconciler
# =============================================================================


class ViolationReconciler:
    """Local rule check first, AI check only when the text looks clean."""

    def __init__(self, store: RuleStore, generator: TextGenerator | None = None):
        self.store = store
        self.generator = generator

    async def recheck(self, text: str) -> ViolationCheckResult:
        """Check a script, consulting the collaborator only for locally clean text.

        Never raises because of the collaborator; any external failure
        returns the local result unchanged.
        """
        rules = self.store.active_rules()
        local = check_text(text, rules)

        if local.is_violating:
            return local

        if self.generator is None:
            logger.debug("ai_recheck_skipped", reason="no_collaborator")
            return local

        prompt = build_recheck_prompt(text, build_brief(rules))
        try:
            payload = await self.generator.generate(prompt, json_output=True)
            external = parse_external_report(payload)
        except CollaboratorError as e:
            logger.warning("ai_recheck_failed", error=e.message, details=e.details)
            return local
        except Exception as e:
            logger.warning("ai_recheck_failed", error=str(e), error_type=type(e).__name__)
            return local

        return merge_results(local, external)

    def recheck_sync(self, text: str) -> ViolationCheckResult:
        """Synchronous wrapper for recheck.

        For use in non-async contexts.
        """
        return asyncio.run(self.recheck(text))


# =============================================================================
# Rule Generator
# =============================================================================


def _rules_from_payload(payload: str) -> list[dict[str, Any]]:
    try:
        data = json.loads(payload)
    except ValueError as e:
        raise RuleGenerationError("Generated rules are not valid JSON") from e

    if isinstance(data, dict):
        data = data.get("rules")
    if not isinstance(data, list):
        raise RuleGenerationError("Generated payload has no rule list")
    return [item for item in data if isinstance(item, dict)]


class RuleGenerator:
    """Asks the collaborator for new rules and merges them into the store."""

    def __init__(self, store: RuleStore, generator: TextGenerator):
        self.store = store
        self.generator = generator

    async def generate(self) -> list[Rule]:
        """Generate rules and append those with unseen titles.

        Returns:
            The merged rule list as saved.

        Raises:
            RuleGenerationError: if the collaborator fails or replies with garbage.
        """
        prompt = build_generation_prompt(date.today().year)
        try:
            payload = await self.generator.generate(prompt, json_output=True)
        except CollaboratorError as e:
            logger.error("rule_generation_failed", error=e.message)
            raise RuleGenerationError("Failed to generate rules from AI") from e

        stamp = now_ms()
        existing = self.store.load()
        merged = list(existing)
        seen_titles = {rule.title.lower() for rule in existing}

        for index, item in enumerate(_rules_from_payload(payload)):
            words = item.get("forbiddenWords") or []
            if isinstance(words, list):
                words = [w for w in words if w]

            try:
                draft = NewRule.model_validate(
                    {
                        "category": item.get("category") or RuleCategory.OTHER,
                        "title": item.get("title"),
                        "description": item.get("description") or "",
                        "forbidden_words": words,
                        "forbidden_pairings": item.get("forbiddenPairings") or [],
                        "examples": item.get("examples") or [],
                        "severity": item.get("severity") or Severity.MEDIUM,
                    }
                )
            except ValidationError as e:
                logger.info("generated_rule_skipped", index=index, errors=e.error_count())
                continue

            if draft.title.lower() in seen_titles:
                continue

            merged.append(
                Rule.model_validate(
                    {
                        **draft.model_dump(),
                        "id": f"ai-rule-{stamp}-{index}",
                        "created_at": stamp,
                        "updated_at": stamp,
                    }
                )
            )
            seen_titles.add(draft.title.lower())

        self.store.save(merged)
        logger.info("rules_generated", added=len(merged) - len(existing), total=len(merged))
        return merged

    def generate_sync(self) -> list[Rule]:
        """Synchronous wrapper for generate."""
        return asyncio.run(self.generate())


# =============================================================================
# Script Rewriter
# =============================================================================


class ScriptRewriter:
    """Rewrites a script so it complies with the active rules."""

    def __init__(self, store: RuleStore, generator: TextGenerator):
        self.store = store
        self.generator = generator

    async def rewrite(self, script: str, violations: list[str]) -> str:
        """Return the compliant rewrite of ``script``.

        Raises:
            RemediationError: if the collaborator fails.
        """
        brief = build_brief(self.store.active_rules())
        prompt = build_rewrite_prompt(script, violations, brief)
        try:
            return await self.generator.generate(prompt)
        except CollaboratorError as e:
            logger.error("script_rewrite_failed", error=e.message)
            raise RemediationError("Failed to rewrite script.") from e

    def rewrite_sync(self, script: str, violations: list[str]) -> str:
        """Synchronous wrapper for rewrite."""
        return asyncio.run(self.rewrite(script, violations))
