"""Storage interface for durable client-side state."""

from __future__ import annotations

import json
from typing import Any, Protocol

SESSION_ID_KEY = "anonymous_session_id"
USER_CREDITS_KEY = "aidraw_user_credits"
ANONYMOUS_CREDITS_KEY = "aidraw_anonymous_credits"
CREDIT_TRANSACTIONS_KEY = "aidraw_credit_transactions"
TRANSFERRED_SESSIONS_KEY = "aidraw_transferred_sessions"
HISTORY_KEY = "aidraw_history"


class KeyValueStore(Protocol):
    def migrate(self) -> None: ...

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


def load_json(store: KeyValueStore, key: str, *, default: Any) -> Any:
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return default


def dump_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set(key, json.dumps(value, ensure_ascii=False))


def load_int(store: KeyValueStore, key: str, *, default: int = 0) -> int:
    raw = store.get(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default
