"""
Rule store - durable, queryable collection of policy rules.

Rules and their metadata live as two JSON documents in a key-value storage
port. The store never raises storage failures to its callers: reads fall
back to the built-in defaults and writes are logged and dropped.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import TypeAdapter, ValidationError

from scriptguard.core.errors import MalformedImport, StorageError
from scriptguard.core.logging import get_logger
from scriptguard.rules.models import (
    NewRule,
    Rule,
    RuleCategory,
    RulesMetadata,
    RuleUpdate,
    now_ms,
)
from scriptguard.storage.kv import KeyValueStore

logger = get_logger(__name__)

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "default_rules.yaml"
DEFAULT_RULES_KEY = "tiktok_rules"
DEFAULT_METADATA_KEY = "tiktok_rules_metadata"

METADATA_SOURCE = "Local Database"
METADATA_VERSION = "1.0.0"

_RULE_LIST = TypeAdapter(list[Rule])


# =============================================================================
# Default Rule Set
# =============================================================================


@lru_cache
def _default_rule_data() -> tuple[dict, ...]:
    with open(DEFAULT_RULES_PATH, "r", encoding="utf-8") as f:
        return tuple(yaml.safe_load(f))


def default_rules() -> list[Rule]:
    """Build the built-in rule set, stamped with the current time."""
    stamp = now_ms()
    return [
        Rule.model_validate({**data, "created_at": stamp, "updated_at": stamp})
        for data in _default_rule_data()
    ]


def build_metadata(rules: list[Rule], source: str = METADATA_SOURCE) -> RulesMetadata:
    """Project a rule list onto its metadata record."""
    return RulesMetadata(
        last_updated=now_ms(),
        total_rules=len(rules),
        active_rules=sum(1 for rule in rules if rule.is_active),
        source=source,
        version=METADATA_VERSION,
    )


# =============================================================================
# Read Results
# =============================================================================


@dataclass(frozen=True)
class RulesReadResult:
    """Outcome of reading the persisted rule collection.

    ``rules`` is None when nothing was ever persisted or the read failed;
    ``error`` tells the two apart.
    """

    rules: list[Rule] | None = None
    error: StorageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def parse_export_blob(blob: str) -> list[Rule]:
    """Parse an export document into rules.

    Raises:
        MalformedImport: if the blob is not JSON, has no ``rules`` array or
            any entry is not a valid rule.
    """
    try:
        data = json.loads(blob)
    except (TypeError, ValueError) as e:
        raise MalformedImport("Import blob is not valid JSON") from e

    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise MalformedImport("Import blob has no 'rules' array")

    try:
        return _RULE_LIST.validate_python(data["rules"])
    except ValidationError as e:
        raise MalformedImport(
            "Import blob contains invalid rules", {"errors": e.error_count()}
        ) from e


# =============================================================================
# Rule Store
# =============================================================================


class RuleStore:
    """Rule collection persisted through a key-value storage port."""

    def __init__(
        self,
        storage: KeyValueStore,
        rules_key: str = DEFAULT_RULES_KEY,
        metadata_key: str = DEFAULT_METADATA_KEY,
    ):
        self.storage = storage
        self.rules_key = rules_key
        self.metadata_key = metadata_key
        self.last_error: StorageError | None = None
        self._last_stamp = 0

    # =========================================================================
    # Persistence
    # =========================================================================

    def read_rules(self) -> RulesReadResult:
        """Read the persisted collection without applying any fallback."""
        try:
            raw = self.storage.get(self.rules_key)
        except StorageError as e:
            return RulesReadResult(error=e)

        if raw is None:
            return RulesReadResult()

        try:
            return RulesReadResult(rules=_RULE_LIST.validate_json(raw))
        except ValidationError as e:
            return RulesReadResult(
                error=StorageError("Stored rules are unreadable", {"errors": e.error_count()})
            )

    def load(self) -> list[Rule]:
        """Return all rules.

        Initializes storage with the default set when nothing was persisted
        yet. Falls back to the defaults, without writing, when the read fails.
        """
        result = self.read_rules()
        self.last_error = result.error

        if result.rules is not None:
            return result.rules

        if not result.ok:
            logger.warning(
                "rules_read_failed",
                key=self.rules_key,
                error=result.error.message,
            )
            return default_rules()

        rules = default_rules()
        self.save(rules)
        return rules

    def save(self, rules: list[Rule]) -> None:
        """Replace the persisted collection and recompute metadata."""
        try:
            self.storage.set(
                self.rules_key,
                _RULE_LIST.dump_json(rules, by_alias=True).decode("utf-8"),
            )
            self._write_metadata(build_metadata(rules))
        except StorageError as e:
            self.last_error = e
            logger.warning("rules_write_failed", key=self.rules_key, error=e.message)

    def _write_metadata(self, metadata: RulesMetadata) -> None:
        self.storage.set(self.metadata_key, metadata.model_dump_json(by_alias=True))

    # =========================================================================
    # CRUD
    # =========================================================================

    def _next_id(self, taken: set[str]) -> str:
        stamp = max(now_ms(), self._last_stamp + 1)
        while f"rule-{stamp}" in taken:
            stamp += 1
        self._last_stamp = stamp
        return f"rule-{stamp}"

    def add(self, new_rule: NewRule) -> Rule:
        """Store a new rule under a freshly assigned id."""
        rules = self.load()
        stamp = now_ms()
        rule = Rule.model_validate(
            {
                **new_rule.model_dump(),
                "id": self._next_id({r.id for r in rules}),
                "created_at": stamp,
                "updated_at": stamp,
            }
        )
        rules.append(rule)
        self.save(rules)
        return rule

    def get(self, rule_id: str) -> Rule | None:
        """Get a rule by ID."""
        for rule in self.load():
            if rule.id == rule_id:
                return rule
        return None

    def update(self, rule_id: str, changes: RuleUpdate) -> Rule | None:
        """Apply partial changes to a rule.

        Returns:
            The new rule record, or None if no rule has that id.
        """
        rules = self.load()
        for index, rule in enumerate(rules):
            if rule.id == rule_id:
                updated = rule.apply(changes)
                rules[index] = updated
                self.save(rules)
                return updated
        return None

    def delete(self, rule_id: str) -> bool:
        """Delete a rule. Returns True if a rule was removed."""
        rules = self.load()
        remaining = [rule for rule in rules if rule.id != rule_id]
        if len(remaining) == len(rules):
            return False
        self.save(remaining)
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def active_rules(self) -> list[Rule]:
        """Rules eligible for matching and for the policy brief."""
        return [rule for rule in self.load() if rule.is_active]

    def search(self, query: str) -> list[Rule]:
        """Case-insensitive substring search over title, description, words and examples."""
        needle = query.lower()
        return [
            rule
            for rule in self.load()
            if needle in rule.title.lower()
            or needle in rule.description.lower()
            or any(needle in word.lower() for word in rule.forbidden_words)
            or any(needle in example.lower() for example in rule.examples)
        ]

    def get_by_category(self, category: RuleCategory | str) -> list[Rule]:
        """Get rules in exactly the given category."""
        return [rule for rule in self.load() if rule.category == category]

    def get_metadata(self) -> RulesMetadata:
        """Return the last computed metadata.

        Derived from the default set when metadata was never written, and a
        zeroed record when the stored metadata cannot be read.
        """
        try:
            raw = self.storage.get(self.metadata_key)
            if raw is None:
                return build_metadata(default_rules(), source="Default")
            return RulesMetadata.model_validate_json(raw)
        except (StorageError, ValidationError) as e:
            logger.warning("metadata_read_failed", key=self.metadata_key, error=str(e))
            return RulesMetadata(
                last_updated=now_ms(),
                total_rules=0,
                active_rules=0,
                source="Unknown",
                version=METADATA_VERSION,
            )

    # =========================================================================
    # Bulk Operations
    # =========================================================================

    def export_rules(self) -> str:
        """Serialize all rules and metadata as a JSON backup document."""
        rules = self.load()
        metadata = self.get_metadata()
        document = {
            "rules": _RULE_LIST.dump_python(rules, mode="json", by_alias=True),
            "metadata": metadata.model_dump(mode="json", by_alias=True),
        }
        return json.dumps(document, ensure_ascii=False, indent=2)

    def import_rules(self, blob: str) -> bool:
        """Replace the store with the rules of an export document.

        Returns False, leaving the store untouched, when the blob is malformed.
        """
        try:
            rules = parse_export_blob(blob)
        except MalformedImport as e:
            logger.info("rules_import_rejected", reason=e.message)
            return False

        self.save(rules)
        return True

    def reset_to_default(self) -> None:
        """Replace the store with the built-in default rule set."""
        self.save(default_rules())
