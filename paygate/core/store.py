"""
Persistence store contract and implementations.

Components treat the store as their source of truth: they read on load and
write on every mutation. Values are scalars (int, bool, str, aware datetime).
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional, Protocol, Union

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Engine

from paygate.core.clock import normalize
from paygate.core.database import create_all_tables, get_db_session, kv_entries

logger = logging.getLogger("paygate")

Value = Union[int, bool, str, datetime]


class KeyValueStore(Protocol):
    """
    Durable key/value storage.

    Implementations must handle:
    - Missing keys (return None)
    - Atomic multi-key writes via set_many
    - Deletion by writing None through set_many, or via delete
    """

    def get(self, key: str) -> Optional[Value]:
        ...

    def set(self, key: str, value: Value) -> None:
        ...

    def set_many(self, values: Mapping[str, Optional[Value]]) -> None:
        """Write all values as one logical unit; None removes the key."""
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryStore:
    """Dictionary-backed store for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Mapping[str, Value]] = None):
        self._data: Dict[str, Value] = dict(initial or {})

    def get(self, key: str) -> Optional[Value]:
        return self._data.get(key)

    def set(self, key: str, value: Value) -> None:
        self._data[key] = value

    def set_many(self, values: Mapping[str, Optional[Value]]) -> None:
        staged = dict(self._data)
        for key, value in values.items():
            if value is None:
                staged.pop(key, None)
            else:
                staged[key] = value
        self._data = staged

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return sorted(self._data)


def _encode(value: Value):
    # bool first: bool is a subclass of int
    if isinstance(value, bool):
        return "bool", "true" if value else "false"
    if isinstance(value, int):
        return "int", str(value)
    if isinstance(value, datetime):
        return "datetime", normalize(value).isoformat()
    if isinstance(value, str):
        return "str", value
    raise TypeError(f"Unsupported store value type: {type(value).__name__}")


def _decode(key: str, value_type: str, raw: Optional[str]) -> Optional[Value]:
    try:
        if value_type == "bool":
            if raw not in ("true", "false"):
                raise ValueError(raw)
            return raw == "true"
        if value_type == "int":
            return int(raw)
        if value_type == "datetime":
            return normalize(datetime.fromisoformat(raw))
        if value_type == "str":
            return raw
        raise ValueError(f"unknown value_type {value_type}")
    except (TypeError, ValueError):
        logger.warning(
            "[store] unreadable value, treating as missing",
            extra={"key": key, "value_type": value_type},
        )
        return None


class SqlKeyValueStore:
    """Store backed by the kv_entries table (SQLAlchemy Core)."""

    def __init__(self, engine: Engine, *, create_tables: bool = True):
        self._engine = engine
        if create_tables:
            create_all_tables(engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def get(self, key: str) -> Optional[Value]:
        with get_db_session(self._engine) as session:
            row = session.execute(
                select(kv_entries).where(kv_entries.c.key == key)
            ).first()
        if row is None:
            return None
        return _decode(key, row.value_type, row.value)

    def set(self, key: str, value: Value) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, Optional[Value]]) -> None:
        now = datetime.now(timezone.utc)
        encoded = {key: _encode(value) for key, value in values.items() if value is not None}
        with get_db_session(self._engine) as session:
            if values:
                session.execute(delete(kv_entries).where(kv_entries.c.key.in_(list(values))))
            for key, (value_type, raw) in encoded.items():
                session.execute(
                    insert(kv_entries).values(
                        key=key,
                        value_type=value_type,
                        value=raw,
                        updated_at=now,
                    )
                )

    def delete(self, key: str) -> None:
        with get_db_session(self._engine) as session:
            session.execute(delete(kv_entries).where(kv_entries.c.key == key))


# Typed readers. Wrong or missing values fall back to the caller's default.

def read_int(store: KeyValueStore, key: str, default: int = 0) -> int:
    value = store.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return default
    return value


def read_bool(store: KeyValueStore, key: str, default: bool = False) -> bool:
    value = store.get(key)
    return value if isinstance(value, bool) else default


def read_datetime(store: KeyValueStore, key: str) -> Optional[datetime]:
    value = store.get(key)
    return normalize(value) if isinstance(value, datetime) else None


def read_str(store: KeyValueStore, key: str) -> Optional[str]:
    value = store.get(key)
    return value if isinstance(value, str) else None
