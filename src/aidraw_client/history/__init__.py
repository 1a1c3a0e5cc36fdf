"""Generated image history and favorites."""

from aidraw_client.history.base import HistoryBackend
from aidraw_client.history.local import LocalHistoryBackend
from aidraw_client.history.remote import RemoteHistoryBackend
from aidraw_client.history.service import HistoryService

__all__ = ["HistoryBackend", "HistoryService", "LocalHistoryBackend", "RemoteHistoryBackend"]
