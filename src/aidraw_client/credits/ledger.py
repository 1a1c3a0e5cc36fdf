"""Credits service used by the rest of the application.

The ledger wraps whichever ``CreditsBackend`` the composition root bound and
applies the caller-facing failure policy:

- balance and transaction reads fail soft (log, return a default);
- sufficiency checks fail closed (log, report "not sufficient");
- spending surfaces its errors because it gates a paid action.
"""

from __future__ import annotations

import logging

from aidraw_client.credits.base import CreditsBackend
from aidraw_client.errors import AdapterError, BusinessError, ValidationError
from aidraw_client.identity import Actor, IdentityResolver
from aidraw_client.models import CreditBalance, CreditTransaction, Page, SufficiencyCheck
from aidraw_client.storage.base import TRANSFERRED_SESSIONS_KEY, KeyValueStore, dump_json, load_json

logger = logging.getLogger(__name__)

ANONYMOUS_NO_CREDITS = "You don't have enough credits. Sign in to get 10 bonus credits!"
USER_NO_CREDITS = "You don't have enough credits. Login tomorrow to receive 5 free daily credits."


class CreditsLedger:
    def __init__(self, backend: CreditsBackend, identity: IdentityResolver, store: KeyValueStore) -> None:
        self.backend = backend
        self.identity = identity
        self.store = store

    def get_balance(self, actor: Actor | None = None) -> CreditBalance:
        identity = self.identity.resolve(actor)
        try:
            return self.backend.get_balance(identity)
        except AdapterError as exc:
            logger.warning(
                "credits event=balance_fallback anonymous=%s error=%s",
                identity.is_anonymous,
                exc.message,
            )
            return CreditBalance.fallback(is_anonymous=identity.is_anonymous)

    def check_sufficient(self, actor: Actor | None = None, required: int = 1) -> SufficiencyCheck:
        identity = self.identity.resolve(actor)
        try:
            return self.backend.check_sufficient(identity, required)
        except AdapterError as exc:
            logger.warning("credits event=check_failed required=%d error=%s", required, exc.message)
            return SufficiencyCheck(
                sufficient=False,
                required=required,
                message=f"Could not verify credits: {exc.message}",
            )

    def spend(self, actor: Actor | None = None, amount: int = 1, description: str = "AI drawing") -> bool:
        check = self.check_sufficient(actor, amount)
        if not check.sufficient:
            raise BusinessError(check.message or self.insufficient_message(actor))
        return self.backend.consume(self.identity.resolve(actor), amount, description)

    def grant(self, actor: Actor | None, amount: int, description: str = "Credit top-up") -> bool:
        identity = self.identity.resolve(actor)
        try:
            return self.backend.grant(identity, amount, description)
        except AdapterError as exc:
            logger.warning("credits event=grant_failed amount=%d error=%s", amount, exc.message)
            return False

    def transfer_anonymous_to_user(self, actor: Actor | None) -> bool:
        """Move the anonymous session balance onto ``actor`` once per session.

        Returns False when this session was already transferred or when the
        backend rejects the transfer.
        """
        if actor is None:
            raise ValidationError("Sign in before transferring anonymous credits")
        session_id = self.identity.session_id()
        transferred: list[str] = load_json(self.store, TRANSFERRED_SESSIONS_KEY, default=[])
        if session_id in transferred:
            logger.info("credits event=transfer_skipped reason=already_transferred user_id=%s", actor.user_id)
            return False

        try:
            ok = self.backend.transfer(session_id, actor.user_id)
        except AdapterError as exc:
            logger.warning("credits event=transfer_failed user_id=%s error=%s", actor.user_id, exc.message)
            return False
        if ok:
            transferred.append(session_id)
            dump_json(self.store, TRANSFERRED_SESSIONS_KEY, transferred)
            logger.info("credits event=transfer_done user_id=%s", actor.user_id)
        return ok

    def list_transactions(
        self,
        actor: Actor | None = None,
        page_num: int = 1,
        page_size: int = 10,
        transaction_type: str | None = None,
    ) -> Page[CreditTransaction]:
        if page_size < 1:
            raise ValidationError("Page size must be at least 1")
        identity = self.identity.resolve(actor)
        try:
            return self.backend.list_transactions(identity, page_num, page_size, transaction_type)
        except AdapterError as exc:
            logger.warning("credits event=transactions_fallback error=%s", exc.message)
            return Page[CreditTransaction].empty(page_size)

    @staticmethod
    def insufficient_message(actor: Actor | None) -> str:
        return USER_NO_CREDITS if actor is not None else ANONYMOUS_NO_CREDITS
