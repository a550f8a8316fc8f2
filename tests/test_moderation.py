"""
Tests for the AI-assisted moderation services.

The collaborator is always a FakeGenerator or a fake OpenAI client; no
network calls are made.
"""

import asyncio
import json
from types import SimpleNamespace

import pytest

from conftest import FakeGenerator
from scriptguard.core.config import Settings
from scriptguard.core.errors import CollaboratorError, RemediationError, RuleGenerationError
from scriptguard.moderation import (
    OpenAIGenerator,
    RuleGenerator,
    ScriptRewriter,
    ViolationReconciler,
    merge_results,
    parse_external_report,
)
from scriptguard.moderation import collaborator
from scriptguard.rules import RuleStore, RuleUpdate, ViolationFinding, check_text
from scriptguard.rules.models import ViolationCheckResult

CLEAN_TEXT = "สวัสดีครับ วันนี้อากาศดี"
VIOLATING_TEXT = "ครีมนี้รักษาฝ้า"


def _reply(**fields) -> str:
    return json.dumps(fields, ensure_ascii=False)


# =============================================================================
# Recheck
# =============================================================================


class TestRecheck:
    """Test the local-first, AI-second violation check."""

    def test_collaborator_failure_returns_local_result(
        self, store: RuleStore, broken_generator: FakeGenerator
    ):
        local = check_text(CLEAN_TEXT, store.active_rules())

        result = ViolationReconciler(store, broken_generator).recheck_sync(CLEAN_TEXT)

        assert result == local
        assert result.is_violating is False
        assert broken_generator.calls == 1

    def test_unexpected_collaborator_exception_returns_local_result(self, store: RuleStore):
        generator = FakeGenerator(error=RuntimeError("socket closed"))

        result = ViolationReconciler(store, generator).recheck_sync(CLEAN_TEXT)

        assert result == check_text(CLEAN_TEXT, store.active_rules())

    def test_local_violation_skips_collaborator(
        self, store: RuleStore, clean_generator: FakeGenerator
    ):
        result = ViolationReconciler(store, clean_generator).recheck_sync(VIOLATING_TEXT)

        assert result.is_violating is True
        assert clean_generator.calls == 0

    def test_without_collaborator_returns_local_result(self, store: RuleStore):
        result = ViolationReconciler(store, None).recheck_sync(CLEAN_TEXT)
        assert result == check_text(CLEAN_TEXT, store.active_rules())

    def test_clean_verdict_takes_external_explanation(
        self, store: RuleStore, clean_generator: FakeGenerator
    ):
        result = ViolationReconciler(store, clean_generator).recheck_sync(CLEAN_TEXT)

        assert result.is_violating is False
        assert result.overall_risk == 0
        assert result.explanation == "ok"

    def test_external_violation_is_merged(self, store: RuleStore):
        generator = FakeGenerator(
            reply=_reply(
                isViolating=True,
                violatedRules=[
                    {
                        "ruleTitle": "Implied medical claim",
                        "violation": "implies curing",
                        "severity": "high",
                        "suggestion": "soften the claim",
                    }
                ],
                overallRisk=70,
                explanation="พบการกล่าวอ้างแฝง",
            )
        )

        result = ViolationReconciler(store, generator).recheck_sync(CLEAN_TEXT)

        assert result.is_violating is True
        assert result.overall_risk == 70
        assert result.explanation == "พบการกล่าวอ้างแฝง"
        assert len(result.violated_rules) == 1
        assert result.violated_rules[0].rule_id == "ai-check"
        assert result.violated_rules[0].rule_title == "Implied medical claim"

    def test_external_risk_is_clamped(self, store: RuleStore):
        generator = FakeGenerator(reply=_reply(isViolating=True, overallRisk=250))
        result = ViolationReconciler(store, generator).recheck_sync(CLEAN_TEXT)
        assert result.overall_risk == 100

    @pytest.mark.parametrize(
        "reply",
        [
            "{}",
            '{"isViolating": null, "violatedRules": null, "explanation": null}',
        ],
    )
    def test_missing_fields_fall_back_to_defaults(self, store: RuleStore, reply: str):
        local = check_text(CLEAN_TEXT, store.active_rules())

        result = ViolationReconciler(store, FakeGenerator(reply=reply)).recheck_sync(CLEAN_TEXT)

        assert result == local

    @pytest.mark.parametrize(
        "reply",
        ["", "not json", "[1, 2]", '{"violatedRules": "many"}', '{"overallRisk": "high"}'],
    )
    def test_garbage_reply_returns_local_result(self, store: RuleStore, reply: str):
        result = ViolationReconciler(store, FakeGenerator(reply=reply)).recheck_sync(CLEAN_TEXT)
        assert result == check_text(CLEAN_TEXT, store.active_rules())

    @pytest.mark.parametrize(
        "reply",
        ['{"isViolating": false, "overallRisk": NaN}', '{"overallRisk": 1e999}'],
    )
    def test_non_finite_risk_returns_local_result(self, store: RuleStore, reply: str):
        result = ViolationReconciler(store, FakeGenerator(reply=reply)).recheck_sync(CLEAN_TEXT)
        assert result == check_text(CLEAN_TEXT, store.active_rules())

    def test_prompt_carries_text_and_brief(
        self, store: RuleStore, clean_generator: FakeGenerator
    ):
        ViolationReconciler(store, clean_generator).recheck_sync(CLEAN_TEXT)

        prompt = clean_generator.prompts[0]
        assert CLEAN_TEXT in prompt
        assert "STRICT ENFORCEMENT" in prompt
        assert "หายขาด" in prompt
        assert clean_generator.json_flags == [True]

    def test_brief_excludes_inactive_rules(
        self, store: RuleStore, clean_generator: FakeGenerator
    ):
        store.update("rule-005", RuleUpdate(is_active=False))

        ViolationReconciler(store, clean_generator).recheck_sync(CLEAN_TEXT)

        assert "YouTube" not in clean_generator.prompts[0]

    def test_recheck_with_failing_storage(
        self, failing_store: RuleStore, broken_generator: FakeGenerator
    ):
        result = ViolationReconciler(failing_store, broken_generator).recheck_sync(VIOLATING_TEXT)
        assert result.is_violating is True

    def test_recheck_is_awaitable(self, store: RuleStore, clean_generator: FakeGenerator):
        result = asyncio.run(ViolationReconciler(store, clean_generator).recheck(CLEAN_TEXT))
        assert isinstance(result, ViolationCheckResult)


class TestMergeResults:
    """Test merge semantics in isolation."""

    def test_local_findings_come_first(self):
        local = ViolationCheckResult(
            is_violating=True,
            violated_rules=[ViolationFinding(rule_id="rule-001", severity="low")],
            overall_risk=10,
            explanation="local",
        )
        external = parse_external_report(
            _reply(violatedRules=[{"ruleTitle": "ai"}], overallRisk=5, explanation="")
        )

        merged = merge_results(local, external)

        assert [f.rule_id for f in merged.violated_rules] == ["rule-001", "ai-check"]
        assert merged.overall_risk == 10
        assert merged.explanation == "local"
        assert merged.is_violating is True

    def test_external_verdict_alone_flags_violation(self):
        local = ViolationCheckResult(explanation="clean")
        external = parse_external_report(_reply(isViolating=True, overallRisk=33.3))

        merged = merge_results(local, external)

        assert merged.is_violating is True
        assert merged.overall_risk == 33

    def test_parse_rejects_non_object(self):
        with pytest.raises(CollaboratorError):
            parse_external_report('"just a string"')

    def test_parse_accepts_snake_case(self):
        report = parse_external_report('{"is_violating": true, "overall_risk": 12}')
        assert report.is_violating is True
        assert report.overall_risk == 12


# =============================================================================
# Rule Generation
# =============================================================================


class TestRuleGenerator:
    """Test AI rule generation and merging."""

    def test_new_rules_are_appended(self, store: RuleStore):
        generator = FakeGenerator(
            reply=_reply(
                rules=[
                    {
                        "category": "overclaims",
                        "title": "Miracle promises",
                        "description": "ห้ามสัญญาผลลัพธ์ปาฏิหาริย์",
                        "forbiddenWords": ["ปาฏิหาริย์", ""],
                        "forbiddenPairings": [{"word1": "เห็นผล", "word2": "ทันที"}],
                        "examples": ["เห็นผลทันทีแบบปาฏิหาริย์"],
                        "severity": "high",
                    }
                ]
            )
        )

        merged = RuleGenerator(store, generator).generate_sync()

        assert len(merged) == 7
        added = merged[-1]
        assert added.id.startswith("ai-rule-")
        assert added.title == "Miracle promises"
        assert added.forbidden_words == ["ปาฏิหาริย์"]
        assert added.forbidden_pairings[0].word2 == "ทันที"
        assert added.is_active is True
        assert store.get(added.id) == added
        assert generator.json_flags == [True]

    def test_duplicate_titles_are_skipped(self, store: RuleStore):
        generator = FakeGenerator(
            reply=_reply(
                rules=[
                    {"title": "OVERCLAIMS / การกล่าวอ้างเกินจริง", "forbiddenWords": ["x"]},
                    {"title": "Fresh rule", "forbiddenWords": ["y"]},
                    {"title": "fresh RULE", "forbiddenWords": ["z"]},
                ]
            )
        )

        merged = RuleGenerator(store, generator).generate_sync()

        assert [rule.title for rule in merged[6:]] == ["Fresh rule"]

    def test_invalid_entries_are_skipped(self, store: RuleStore):
        generator = FakeGenerator(
            reply=_reply(
                rules=[
                    {"description": "no title"},
                    {"title": "Bad severity", "severity": "extreme"},
                    {"title": "Bad category", "category": "gossip"},
                    "not an object",
                    {"title": "Minimal"},
                ]
            )
        )

        merged = RuleGenerator(store, generator).generate_sync()

        added = merged[6:]
        assert [rule.title for rule in added] == ["Minimal"]
        assert added[0].category == "other"
        assert added[0].severity == "medium"

    def test_non_list_forbidden_words_are_skipped(self, store: RuleStore):
        generator = FakeGenerator(
            reply=_reply(
                rules=[
                    {"title": "Scalar words", "forbiddenWords": 5},
                    {"title": "String words", "forbiddenWords": "รักษา"},
                    {"title": "Listed words", "forbiddenWords": ["รักษา", ""]},
                ]
            )
        )

        merged = RuleGenerator(store, generator).generate_sync()

        added = merged[6:]
        assert [rule.title for rule in added] == ["Listed words"]
        assert added[0].forbidden_words == ["รักษา"]

    def test_bare_list_payload_is_accepted(self, store: RuleStore):
        generator = FakeGenerator(reply=json.dumps([{"title": "Listed"}]))
        merged = RuleGenerator(store, generator).generate_sync()
        assert merged[-1].title == "Listed"

    def test_generated_ids_are_unique(self, store: RuleStore):
        generator = FakeGenerator(reply=_reply(rules=[{"title": "One"}, {"title": "Two"}]))
        merged = RuleGenerator(store, generator).generate_sync()
        ids = [rule.id for rule in merged]
        assert len(ids) == len(set(ids))

    @pytest.mark.parametrize("reply", ["not json", '{"rules": "nope"}', "42"])
    def test_garbage_payload_raises_and_keeps_store(self, store: RuleStore, reply: str):
        before = store.load()

        with pytest.raises(RuleGenerationError):
            RuleGenerator(store, FakeGenerator(reply=reply)).generate_sync()

        assert store.load() == before

    def test_collaborator_failure_raises(self, store: RuleStore, broken_generator: FakeGenerator):
        with pytest.raises(RuleGenerationError) as exc_info:
            RuleGenerator(store, broken_generator).generate_sync()
        assert exc_info.value.code == "RULE_GENERATION_FAILED"


# =============================================================================
# Script Rewriting
# =============================================================================


class TestScriptRewriter:
    """Test compliant script rewriting."""

    def test_returns_collaborator_text(self, store: RuleStore):
        generator = FakeGenerator(reply="[00:05] Speaker 1: ครีมนี้ช่วยดูแลปัญหาฝ้า")

        script = ScriptRewriter(store, generator).rewrite_sync(
            "[00:05] Speaker 1: ครีมนี้รักษาฝ้า", ['found forbidden word: "รักษา"']
        )

        assert script == "[00:05] Speaker 1: ครีมนี้ช่วยดูแลปัญหาฝ้า"
        prompt = generator.prompts[0]
        assert "ครีมนี้รักษาฝ้า" in prompt
        assert 'found forbidden word: "รักษา"' in prompt
        assert "STRICT ENFORCEMENT" in prompt
        assert generator.json_flags == [False]

    def test_failure_raises_remediation_error(
        self, store: RuleStore, broken_generator: FakeGenerator
    ):
        with pytest.raises(RemediationError) as exc_info:
            ScriptRewriter(store, broken_generator).rewrite_sync("script", [])
        assert exc_info.value.message == "Failed to rewrite script."


# =============================================================================
# OpenAI Collaborator
# =============================================================================


class _FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: _FakeCompletions) -> SimpleNamespace:
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


class TestOpenAIGenerator:
    """Test the OpenAI-backed collaborator against a fake client."""

    @pytest.fixture
    def settings(self) -> Settings:
        return Settings(openai_api_key="test-key", llm_model="test-model")

    def test_returns_message_content(self, settings: Settings):
        completions = _FakeCompletions(content="hello")
        generator = OpenAIGenerator(settings, client=_client(completions))

        assert asyncio.run(generator.generate("prompt")) == "hello"
        call = completions.calls[0]
        assert call["model"] == "test-model"
        assert call["messages"] == [{"role": "user", "content": "prompt"}]
        assert "response_format" not in call

    def test_json_output_requests_json_mode(self, settings: Settings):
        completions = _FakeCompletions(content="{}")
        generator = OpenAIGenerator(settings, client=_client(completions))

        asyncio.run(generator.generate("prompt", json_output=True))

        assert completions.calls[0]["response_format"] == {"type": "json_object"}

    def test_empty_reply_raises(self, settings: Settings):
        generator = OpenAIGenerator(settings, client=_client(_FakeCompletions(content="")))
        with pytest.raises(CollaboratorError):
            asyncio.run(generator.generate("prompt"))

    def test_transport_error_is_wrapped(self, settings: Settings):
        completions = _FakeCompletions(error=ConnectionError("reset by peer"))
        generator = OpenAIGenerator(settings, client=_client(completions))

        with pytest.raises(CollaboratorError) as exc_info:
            asyncio.run(generator.generate("prompt"))

        assert "reset by peer" in exc_info.value.details["error"]

    def test_get_generator_without_api_key(self, monkeypatch):
        monkeypatch.setattr(collaborator, "get_settings", lambda: Settings(openai_api_key=None))
        collaborator.set_generator(None)

        assert collaborator.get_generator() is None

    def test_set_generator_overrides(self):
        fake = FakeGenerator(reply="x")
        collaborator.set_generator(fake)
        try:
            assert collaborator.get_generator() is fake
        finally:
            collaborator.set_generator(None)
