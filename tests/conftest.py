"""Pytest fixtures for test suite."""

import pytest

from scriptguard.core.errors import CollaboratorError, StorageError
from scriptguard.rules import (
    ForbiddenPairing,
    Rule,
    RuleCategory,
    RuleStore,
    Severity,
)
from scriptguard.storage import InMemoryKeyValueStore


# =============================================================================
# Storage Fakes
# =============================================================================


class FailingKeyValueStore:
    """Storage port whose backend is down."""

    def __init__(self, fail_reads: bool = True, fail_writes: bool = True):
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes
        self.writes: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        if self.fail_reads:
            raise StorageError("backend unavailable", {"key": key})
        return self.writes.get(key)

    def set(self, key: str, value: str) -> None:
        if self.fail_writes:
            raise StorageError("backend unavailable", {"key": key})
        self.writes[key] = value

    def remove(self, key: str) -> None:
        if self.fail_writes:
            raise StorageError("backend unavailable", {"key": key})
        self.writes.pop(key, None)


# =============================================================================
# Collaborator Fakes
# =============================================================================


class FakeGenerator:
    """Async text generator returning a canned reply or raising."""

    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []
        self.json_flags: list[bool] = []

    async def generate(self, prompt: str, *, json_output: bool = False) -> str:
        self.prompts.append(prompt)
        self.json_flags.append(json_output)
        if self.error is not None:
            raise self.error
        return self.reply or ""

    @property
    def calls(self) -> int:
        return len(self.prompts)


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def kv() -> InMemoryKeyValueStore:
    """Empty in-memory key-value storage."""
    return InMemoryKeyValueStore()


@pytest.fixture
def store(kv: InMemoryKeyValueStore) -> RuleStore:
    """Rule store over empty in-memory storage."""
    return RuleStore(kv)


@pytest.fixture
def failing_store() -> RuleStore:
    """Rule store whose storage backend fails every call."""
    return RuleStore(FailingKeyValueStore())


@pytest.fixture
def word_rule() -> Rule:
    """Critical rule forbidding the word 'รักษา'."""
    return Rule(
        id="rule-word",
        category=RuleCategory.MEDICAL_SUPPLEMENT,
        title="Medical words",
        forbidden_words=["รักษา"],
        severity=Severity.CRITICAL,
    )


@pytest.fixture
def pairing_rule() -> Rule:
    """High rule forbidding 'ลด' together with 'ไขมัน'."""
    return Rule(
        id="rule-pair",
        category=RuleCategory.FORBIDDEN_PAIRINGS,
        title="Pairings",
        forbidden_pairings=[ForbiddenPairing(word1="ลด", word2="ไขมัน")],
        severity=Severity.HIGH,
    )


@pytest.fixture
def clean_generator() -> FakeGenerator:
    """Collaborator that judges text as clean."""
    return FakeGenerator(
        reply='{"isViolating": false, "violatedRules": [], "overallRisk": 0, "explanation": "ok"}'
    )


@pytest.fixture
def broken_generator() -> FakeGenerator:
    """Collaborator that fails like a network error."""
    return FakeGenerator(error=CollaboratorError("connection reset"))
