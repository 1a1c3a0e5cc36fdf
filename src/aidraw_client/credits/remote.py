"""Credits served by the remote REST backend."""

from __future__ import annotations

import logging
from typing import Any

from aidraw_client.models import ActorIdentity, CreditBalance, CreditTransaction, Page, SufficiencyCheck
from aidraw_client.transport.rest_client import RestClient, expected_payload

logger = logging.getLogger(__name__)


class RemoteCreditsBackend:
    def __init__(self, client: RestClient) -> None:
        self.client = client

    def get_balance(self, identity: ActorIdentity) -> CreditBalance:
        data = self.client.get("/credits", params=identity.as_params()).unwrap_object()
        with expected_payload("credits"):
            balance = CreditBalance.model_validate(data)
        # The server does not always echo the flag back.
        if "isAnonymous" not in data:
            balance = balance.model_copy(update={"is_anonymous": identity.is_anonymous})
        return balance

    def check_sufficient(self, identity: ActorIdentity, required: int) -> SufficiencyCheck:
        payload = self.client.post(
            "/credits/check",
            body={**identity.as_params(), "requiredCredits": required},
        ).unwrap_object()
        with expected_payload("credits/check"):
            return SufficiencyCheck(
                sufficient=bool(payload.get("hasEnoughCredits", False)),
                required=int(payload.get("requiredCredits") or required),
                message=str(payload.get("message") or ""),
            )

    def grant(self, identity: ActorIdentity, amount: int, description: str) -> bool:
        self.client.post(
            "/credits/add",
            body={**identity.as_params(), "amount": amount, "description": description},
        ).unwrap()
        return True

    def consume(self, identity: ActorIdentity, amount: int, description: str) -> bool:
        # Task submission already deducted these on the server.
        logger.debug("remote_credits event=consume_skipped amount=%d", amount)
        return True

    def transfer(self, session_id: str, user_id: int) -> bool:
        self.client.post(
            "/credits/transfer",
            body={"sessionId": session_id, "userId": user_id},
        ).unwrap()
        return True

    def list_transactions(
        self,
        identity: ActorIdentity,
        page_num: int = 1,
        page_size: int = 10,
        transaction_type: str | None = None,
    ) -> Page[CreditTransaction]:
        params: dict[str, Any] = {
            **identity.as_params(),
            "pageNum": page_num,
            "pageSize": page_size,
            "transactionType": transaction_type,
        }
        data = self.client.get("/credits/transactions", params=params).unwrap()
        with expected_payload("credits/transactions"):
            return Page[CreditTransaction].from_payload(data, page_size=page_size)
