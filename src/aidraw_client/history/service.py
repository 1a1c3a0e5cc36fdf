"""History service used by the rest of the application.

Reads degrade to an empty page. Mutations report success as a bool and are
never retried. View and download counters return an ``Outcome`` so callers
can see a failure even though most of them ignore it.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from aidraw_client.errors import AdapterError, ValidationError
from aidraw_client.history.base import HistoryBackend
from aidraw_client.identity import Actor, IdentityResolver
from aidraw_client.models import HistoryRecord, Page
from aidraw_client.outcome import Outcome

logger = logging.getLogger(__name__)


class HistoryService:
    def __init__(self, backend: HistoryBackend, identity: IdentityResolver, *, page_size: int = 12) -> None:
        self.backend = backend
        self.identity = identity
        self.page_size = page_size

    def list(self, actor: Actor | None = None, page_num: int = 1, page_size: int | None = None) -> Page[HistoryRecord]:
        size = self._size(page_size)
        try:
            return self.backend.list(self.identity.resolve(actor), page_num, size)
        except AdapterError as exc:
            return self._empty("list", size, exc)

    def list_favorites(
        self, actor: Actor | None = None, page_num: int = 1, page_size: int | None = None
    ) -> Page[HistoryRecord]:
        size = self._size(page_size)
        try:
            return self.backend.list_favorites(self.identity.resolve(actor), page_num, size)
        except AdapterError as exc:
            return self._empty("favorites", size, exc)

    def search(
        self,
        keyword: str,
        actor: Actor | None = None,
        page_num: int = 1,
        page_size: int | None = None,
    ) -> Page[HistoryRecord]:
        size = self._size(page_size)
        if not keyword.strip():
            return self.list(actor, page_num, size)
        try:
            return self.backend.search(self.identity.resolve(actor), keyword.strip(), page_num, size)
        except AdapterError as exc:
            return self._empty("search", size, exc)

    def toggle_favorite(self, record_id: int) -> bool:
        return self._mutate("toggle_favorite", lambda: self.backend.toggle_favorite(record_id))

    def delete(self, record_id: int) -> bool:
        return self._mutate("delete", lambda: self.backend.delete(record_id))

    def batch_delete(self, record_ids: list[int]) -> bool:
        return self._mutate("batch_delete", lambda: self.backend.batch_delete(record_ids))

    def increment_view(self, record_id: int) -> Outcome[bool]:
        try:
            return Outcome.success(self.backend.increment_view(record_id))
        except AdapterError as exc:
            logger.warning("history event=view_count_failed record_id=%d error=%s", record_id, exc.message)
            return Outcome.failure(False, exc.message)

    def increment_download(self, record_id: int) -> Outcome[bool]:
        try:
            return Outcome.success(self.backend.increment_download(record_id))
        except AdapterError as exc:
            logger.warning("history event=download_count_failed record_id=%d error=%s", record_id, exc.message)
            return Outcome.failure(False, exc.message)

    def record_view(self, record: HistoryRecord) -> Outcome[bool]:
        """Count a preview of ``record``."""
        return self.increment_view(record.id)

    def record_download(self, record: HistoryRecord) -> Outcome[bool]:
        """Count a download of ``record``. The caller fetches the image bytes itself."""
        return self.increment_download(record.id)

    def popular_prompts(self, limit: int = 10) -> list[str]:
        try:
            return self.backend.popular_prompts(limit)
        except AdapterError as exc:
            logger.warning("history event=popular_prompts_failed error=%s", exc.message)
            return []

    def _mutate(self, operation: str, call: Callable[[], bool]) -> bool:
        try:
            return bool(call())
        except AdapterError as exc:
            logger.warning("history event=%s_failed error=%s", operation, exc.message)
            return False

    def _size(self, page_size: int | None) -> int:
        size = page_size or self.page_size
        if size < 1:
            raise ValidationError("Page size must be at least 1")
        return size

    @staticmethod
    def _empty(operation: str, page_size: int, exc: AdapterError) -> Page[HistoryRecord]:
        logger.warning("history event=%s_fallback error=%s", operation, exc.message)
        return Page[HistoryRecord].empty(page_size)
