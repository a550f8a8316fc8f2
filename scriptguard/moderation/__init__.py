"""Moderation domain - AI-assisted recheck and remediation.

The HTTP routes live in ``scriptguard.moderation.router``.
"""

from .collaborator import TextGenerator, OpenAIGenerator, get_generator, set_generator
from .service import (
    ViolationReconciler,
    RuleGenerator,
    ScriptRewriter,
    ExternalViolationReport,
    parse_external_report,
    merge_results,
    build_recheck_prompt,
    build_generation_prompt,
    build_rewrite_prompt,
)

__all__ = [
    # Collaborator
    "TextGenerator",
    "OpenAIGenerator",
    "get_generator",
    "set_generator",
    # Services
    "ViolationReconciler",
    "RuleGenerator",
    "ScriptRewriter",
    "ExternalViolationReport",
    "parse_external_report",
    "merge_results",
    # Prompts
    "build_recheck_prompt",
    "build_generation_prompt",
    "build_rewrite_prompt",
]
