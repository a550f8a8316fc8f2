"""
Key-value storage port and its adapters.

The rule store persists two JSON documents under stable keys. It only needs
get/set/remove-by-key string storage, so any backend that honours
``KeyValueStore`` can sit behind it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from scriptguard.core.errors import StorageError
from scriptguard.storage.database import get_db


@runtime_checkable
class KeyValueStore(Protocol):
    """String storage addressed by key.

    Implementations raise ``StorageError`` when the backend is unavailable.
    """

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dictionary-backed store for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        """List stored keys (diagnostics only)."""
        return list(self._data)


class SqlKeyValueStore:
    """Key-value store backed by the ``kv_store`` table.

    Every backend failure is re-raised as ``StorageError`` so callers deal
    with a single error type regardless of the database in use.
    """

    def get(self, key: str) -> str | None:
        try:
            with get_db() as conn:
                result = conn.execute(
                    text("SELECT value FROM kv_store WHERE storage_key = :key"),
                    {"key": key},
                )
                row = result.fetchone()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to read key {key!r}", {"key": key}) from e

        if row:
            return row[0]
        return None

    def set(self, key: str, value: str) -> None:
        try:
            with get_db() as conn:
                conn.execute(
                    text("""
                    INSERT INTO kv_store (storage_key, value, updated_at)
                    VALUES (:key, :value, :updated_at)
                    ON CONFLICT (storage_key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """),
                    {
                        "key": key,
                        "value": value,
                        "updated_at": datetime.now(timezone.utc).isoformat(),
                    },
                )
                conn.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write key {key!r}", {"key": key}) from e

    def remove(self, key: str) -> None:
        try:
            with get_db() as conn:
                conn.execute(
                    text("DELETE FROM kv_store WHERE storage_key = :key"),
                    {"key": key},
                )
                conn.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to remove key {key!r}", {"key": key}) from e
