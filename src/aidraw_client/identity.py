"""Actor identity resolution: authenticated user id or persisted anonymous session id."""

from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass

from aidraw_client.models import ActorIdentity
from aidraw_client.storage.base import SESSION_ID_KEY, KeyValueStore

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class Actor:
    """An authenticated caller. Anonymous callers are represented by ``None``."""

    user_id: int


def generate_session_id() -> str:
    """Return ``sess_<epoch-millis>_<base36 random>``."""
    timestamp = int(time.time() * 1000)
    random_part = "".join(secrets.choice(_BASE36) for _ in range(11))
    return f"sess_{timestamp}_{random_part}"


class IdentityResolver:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def session_id(self) -> str:
        """Return the persisted session id, creating it on first use."""
        existing = self.store.get(SESSION_ID_KEY)
        if existing:
            return existing
        created = generate_session_id()
        self.store.set(SESSION_ID_KEY, created)
        return created

    def resolve(self, actor: Actor | None = None) -> ActorIdentity:
        if actor is not None:
            return ActorIdentity(user_id=actor.user_id)
        return ActorIdentity(session_id=self.session_id())
