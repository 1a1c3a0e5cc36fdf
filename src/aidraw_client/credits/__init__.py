"""Credit balances, sufficiency checks, and the credit ledger."""

from aidraw_client.credits.base import CreditsBackend
from aidraw_client.credits.ledger import CreditsLedger
from aidraw_client.credits.local import LocalCreditsBackend
from aidraw_client.credits.remote import RemoteCreditsBackend

__all__ = ["CreditsBackend", "CreditsLedger", "LocalCreditsBackend", "RemoteCreditsBackend"]
