"""Credits backend interface shared by the local and remote implementations."""

from __future__ import annotations

from typing import Protocol

from aidraw_client.models import ActorIdentity, CreditBalance, CreditTransaction, Page, SufficiencyCheck


class CreditsBackend(Protocol):
    def get_balance(self, identity: ActorIdentity) -> CreditBalance: ...

    def check_sufficient(self, identity: ActorIdentity, required: int) -> SufficiencyCheck: ...

    def grant(self, identity: ActorIdentity, amount: int, description: str) -> bool: ...

    def consume(self, identity: ActorIdentity, amount: int, description: str) -> bool: ...

    def transfer(self, session_id: str, user_id: int) -> bool: ...

    def list_transactions(
        self,
        identity: ActorIdentity,
        page_num: int = 1,
        page_size: int = 10,
        transaction_type: str | None = None,
    ) -> Page[CreditTransaction]: ...


def insufficient_credits_message(required: int, remaining: int) -> str:
    return f"Insufficient credits: {required} required, {remaining} available"
