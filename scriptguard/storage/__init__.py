"""Storage domain - database connection and the key-value storage port."""

from scriptguard.storage.database import (
    get_db,
    get_db_path,
    set_db_path,
    get_engine,
    reset_engine,
    init_db,
    reset_db,
    get_table_stats,
)
from scriptguard.storage.kv import (
    KeyValueStore,
    InMemoryKeyValueStore,
    SqlKeyValueStore,
)

__all__ = [
    # Database
    "get_db",
    "get_db_path",
    "set_db_path",
    "get_engine",
    "reset_engine",
    "init_db",
    "reset_db",
    "get_table_stats",
    # Key-value port
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "SqlKeyValueStore",
]
