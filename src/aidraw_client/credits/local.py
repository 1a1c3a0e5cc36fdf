"""Credits kept in the local key-value store.

Local mode tracks one integer balance per actor class: one for the signed-in
user and one for the anonymous session. ``usedCredits`` is not tracked, so a
local balance always reports ``usedCredits=0`` and ``totalCredits`` equal to
the remaining balance.
"""

from __future__ import annotations

import logging
import threading
from datetime import UTC, datetime

from pydantic import ValidationError as PayloadValidationError

from aidraw_client.credits.base import insufficient_credits_message
from aidraw_client.errors import StorageError, ValidationError
from aidraw_client.models import ActorIdentity, CreditBalance, CreditTransaction, Page, SufficiencyCheck
from aidraw_client.storage.base import (
    ANONYMOUS_CREDITS_KEY,
    CREDIT_TRANSACTIONS_KEY,
    USER_CREDITS_KEY,
    KeyValueStore,
    dump_json,
    load_int,
    load_json,
)

logger = logging.getLogger(__name__)

LOCAL_FREE_DAILY_CREDITS = 5


class LocalCreditsBackend:
    def __init__(self, store: KeyValueStore, *, initial_credits: int = 0) -> None:
        self.store = store
        self.initial_credits = initial_credits
        # Read-modify-write of a balance key plus its ledger entry.
        self._lock = threading.Lock()

    def get_balance(self, identity: ActorIdentity) -> CreditBalance:
        remaining = self._read(identity)
        return CreditBalance(
            total_credits=remaining,
            used_credits=0,
            remaining_credits=remaining,
            free_daily_credits=LOCAL_FREE_DAILY_CREDITS,
            is_anonymous=identity.is_anonymous,
        )

    def check_sufficient(self, identity: ActorIdentity, required: int) -> SufficiencyCheck:
        remaining = self._read(identity)
        sufficient = remaining >= required
        return SufficiencyCheck(
            sufficient=sufficient,
            required=required,
            message="" if sufficient else insufficient_credits_message(required, remaining),
        )

    def grant(self, identity: ActorIdentity, amount: int, description: str) -> bool:
        if amount <= 0:
            raise ValidationError("Credit amount must be positive")
        with self._lock:
            balance = self._read(identity) + amount
            self.store.set(_balance_key(identity), str(balance))
            self._append_transaction(
                identity,
                transaction_type="BONUS",
                description=description,
                change=amount,
                balance_after=balance,
            )
        logger.info("local_credits event=grant anonymous=%s amount=%d balance=%d", identity.is_anonymous, amount, balance)
        return True

    def consume(self, identity: ActorIdentity, amount: int, description: str) -> bool:
        if amount < 0:
            raise ValidationError("Credit amount must not be negative")
        with self._lock:
            before = self._read(identity)
            balance = max(before - amount, 0)
            self.store.set(_balance_key(identity), str(balance))
            self._append_transaction(
                identity,
                transaction_type="CONSUME",
                description=description,
                change=balance - before,
                balance_after=balance,
            )
        logger.info("local_credits event=consume anonymous=%s amount=%d balance=%d", identity.is_anonymous, amount, balance)
        return True

    def transfer(self, session_id: str, user_id: int) -> bool:
        """Move the whole anonymous balance onto the user balance."""
        anonymous = ActorIdentity(session_id=session_id)
        user = ActorIdentity(user_id=user_id)
        with self._lock:
            moved = self._read(anonymous)
            if moved <= 0:
                return True
            balance = self._read(user) + moved
            self.store.set(USER_CREDITS_KEY, str(balance))
            self.store.set(ANONYMOUS_CREDITS_KEY, "0")
            self._append_transaction(
                user,
                transaction_type="BONUS",
                description="Transferred from anonymous session",
                change=moved,
                balance_after=balance,
            )
        logger.info("local_credits event=transfer moved=%d balance=%d", moved, balance)
        return True

    def list_transactions(
        self,
        identity: ActorIdentity,
        page_num: int = 1,
        page_size: int = 10,
        transaction_type: str | None = None,
    ) -> Page[CreditTransaction]:
        owner = _owner(identity)
        rows = [
            row
            for row in load_json(self.store, CREDIT_TRANSACTIONS_KEY, default=[])
            if row.get("owner") == owner
            and (transaction_type is None or row.get("transactionType") == transaction_type)
        ]
        try:
            items = [CreditTransaction.model_validate(row) for row in rows]
        except PayloadValidationError as exc:
            logger.error("local_credits event=corrupt_transactions error=%s", exc)
            raise StorageError("Stored transactions are unreadable") from exc
        return Page[CreditTransaction].from_items(items, page_num=page_num, page_size=page_size)

    def _read(self, identity: ActorIdentity) -> int:
        return max(load_int(self.store, _balance_key(identity), default=self.initial_credits), 0)

    def _append_transaction(
        self,
        identity: ActorIdentity,
        *,
        transaction_type: str,
        description: str,
        change: int,
        balance_after: int,
    ) -> None:
        rows = load_json(self.store, CREDIT_TRANSACTIONS_KEY, default=[])
        next_id = max((int(row.get("id", 0)) for row in rows), default=0) + 1
        entry = CreditTransaction(
            id=next_id,
            transaction_type=transaction_type,
            description=description,
            credits_change=change,
            balance_after=balance_after,
            is_increase=change > 0,
            created_time=datetime.now(tz=UTC).isoformat(),
        ).to_wire()
        entry["owner"] = _owner(identity)
        # Newest first, same as history.
        rows.insert(0, entry)
        dump_json(self.store, CREDIT_TRANSACTIONS_KEY, rows)


def _balance_key(identity: ActorIdentity) -> str:
    return ANONYMOUS_CREDITS_KEY if identity.is_anonymous else USER_CREDITS_KEY


def _owner(identity: ActorIdentity) -> str:
    return "anonymous" if identity.is_anonymous else "user"
