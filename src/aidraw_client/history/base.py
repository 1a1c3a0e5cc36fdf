"""History backend interface shared by the local and remote implementations."""

from __future__ import annotations

from typing import Protocol

from aidraw_client.models import ActorIdentity, HistoryRecord, Page


class HistoryBackend(Protocol):
    def list(self, identity: ActorIdentity, page_num: int = 1, page_size: int = 12) -> Page[HistoryRecord]: ...

    def list_favorites(
        self, identity: ActorIdentity, page_num: int = 1, page_size: int = 12
    ) -> Page[HistoryRecord]: ...

    def search(
        self, identity: ActorIdentity, keyword: str, page_num: int = 1, page_size: int = 12
    ) -> Page[HistoryRecord]: ...

    def toggle_favorite(self, record_id: int) -> bool: ...

    def delete(self, record_id: int) -> bool: ...

    def batch_delete(self, record_ids: list[int]) -> bool: ...

    def increment_view(self, record_id: int) -> bool: ...

    def increment_download(self, record_id: int) -> bool: ...

    def popular_prompts(self, limit: int = 10) -> list[str]: ...
