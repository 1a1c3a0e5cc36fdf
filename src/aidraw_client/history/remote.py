"""History records served by the remote REST backend."""

from __future__ import annotations

from typing import Any

from aidraw_client.models import ActorIdentity, HistoryRecord, Page
from aidraw_client.transport.rest_client import RestClient, expected_payload


class RemoteHistoryBackend:
    def __init__(self, client: RestClient) -> None:
        self.client = client

    def list(self, identity: ActorIdentity, page_num: int = 1, page_size: int = 12) -> Page[HistoryRecord]:
        return self._page("/history", identity, page_num, page_size)

    def list_favorites(
        self, identity: ActorIdentity, page_num: int = 1, page_size: int = 12
    ) -> Page[HistoryRecord]:
        return self._page("/history/favorites", identity, page_num, page_size)

    def search(
        self, identity: ActorIdentity, keyword: str, page_num: int = 1, page_size: int = 12
    ) -> Page[HistoryRecord]:
        return self._page("/history/search", identity, page_num, page_size, keyword=keyword)

    def toggle_favorite(self, record_id: int) -> bool:
        self.client.post(f"/history/{record_id}/favorite").unwrap()
        return True

    def delete(self, record_id: int) -> bool:
        self.client.delete(f"/history/{record_id}").unwrap()
        return True

    def batch_delete(self, record_ids: list[int]) -> bool:
        self.client.delete("/history/batch", body={"ids": list(record_ids)}).unwrap()
        return True

    def increment_view(self, record_id: int) -> bool:
        self.client.post(f"/history/{record_id}/view").unwrap()
        return True

    def increment_download(self, record_id: int) -> bool:
        self.client.post(f"/history/{record_id}/download").unwrap()
        return True

    def popular_prompts(self, limit: int = 10) -> list[str]:
        data = self.client.get("/history/popular-prompts", params={"limit": limit}).unwrap()
        if not isinstance(data, list):
            return []
        return [str(item) for item in data][:limit]

    def _page(
        self,
        path: str,
        identity: ActorIdentity,
        page_num: int,
        page_size: int,
        **extra: Any,
    ) -> Page[HistoryRecord]:
        params = {**identity.as_params(), "pageNum": page_num, "pageSize": page_size, **extra}
        data = self.client.get(path, params=params).unwrap()
        with expected_payload(path.lstrip("/")):
            return Page[HistoryRecord].from_payload(data, page_size=page_size)
