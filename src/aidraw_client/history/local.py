"""History records kept as one JSON list in the local key-value store.

The list is device-wide: local mode has a single actor per installation, so
reads take an identity for interface parity but do not filter on it.
Records are kept newest first.
"""

from __future__ import annotations

import logging
import threading
from collections import Counter
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError as PayloadValidationError

from aidraw_client.errors import StorageError, ValidationError
from aidraw_client.models import ActorIdentity, HistoryRecord, Page
from aidraw_client.storage.base import HISTORY_KEY, KeyValueStore, dump_json, load_json

logger = logging.getLogger(__name__)


class LocalHistoryBackend:
    def __init__(self, store: KeyValueStore) -> None:
        self.store = store
        self._lock = threading.Lock()

    def add(
        self,
        *,
        image_url: str,
        prompt: str,
        model: str,
        width: int,
        height: int,
    ) -> HistoryRecord:
        """Prepend a new record and return it."""
        with self._lock:
            rows = self._load()
            next_id = max((int(row.get("id", 0)) for row in rows), default=0) + 1
            record = HistoryRecord(
                id=next_id,
                image_url=image_url,
                prompt=prompt,
                model_used=model,
                image_width=width,
                image_height=height,
                created_time=datetime.now(tz=UTC).isoformat(),
            )
            rows.insert(0, record.to_wire())
            self._save(rows)
        logger.info("local_history event=add record_id=%d", record.id)
        return record

    def list(self, identity: ActorIdentity, page_num: int = 1, page_size: int = 12) -> Page[HistoryRecord]:
        return self._page(self._records(), page_num, page_size)

    def list_favorites(
        self, identity: ActorIdentity, page_num: int = 1, page_size: int = 12
    ) -> Page[HistoryRecord]:
        favorites = [record for record in self._records() if record.is_favorite]
        return self._page(favorites, page_num, page_size)

    def search(
        self, identity: ActorIdentity, keyword: str, page_num: int = 1, page_size: int = 12
    ) -> Page[HistoryRecord]:
        needle = keyword.strip().lower()
        matches = [record for record in self._records() if needle in record.prompt.lower()]
        return self._page(matches, page_num, page_size)

    def toggle_favorite(self, record_id: int) -> bool:
        return self._update(record_id, lambda row: row.update(isFavorite=not row.get("isFavorite", False)))

    def delete(self, record_id: int) -> bool:
        return self.batch_delete([record_id])

    def batch_delete(self, record_ids: list[int]) -> bool:
        """Delete every id or none of them."""
        if not record_ids:
            raise ValidationError("No history records selected")
        wanted = set(record_ids)
        with self._lock:
            rows = self._load()
            present = {int(row.get("id", 0)) for row in rows}
            missing = wanted - present
            if missing:
                logger.warning("local_history event=delete_rejected missing_ids=%s", sorted(missing))
                return False
            self._save([row for row in rows if int(row.get("id", 0)) not in wanted])
        logger.info("local_history event=delete count=%d", len(wanted))
        return True

    def increment_view(self, record_id: int) -> bool:
        return self._update(record_id, lambda row: row.update(viewCount=int(row.get("viewCount", 0)) + 1))

    def increment_download(self, record_id: int) -> bool:
        return self._update(
            record_id, lambda row: row.update(downloadCount=int(row.get("downloadCount", 0)) + 1)
        )

    def popular_prompts(self, limit: int = 10) -> list[str]:
        counts = Counter(record.prompt.strip() for record in self._records() if record.prompt.strip())
        return [prompt for prompt, _ in counts.most_common(limit)]

    def _update(self, record_id: int, change: Callable[[dict[str, Any]], None]) -> bool:
        with self._lock:
            rows = self._load()
            for row in rows:
                if int(row.get("id", 0)) == record_id:
                    change(row)
                    self._save(rows)
                    return True
        logger.warning("local_history event=record_missing record_id=%d", record_id)
        return False

    def _records(self) -> list[HistoryRecord]:
        try:
            return [HistoryRecord.model_validate(row) for row in self._load()]
        except PayloadValidationError as exc:
            logger.error("local_history event=corrupt_records error=%s", exc)
            raise StorageError("Stored history is unreadable") from exc

    def _load(self) -> list[dict[str, Any]]:
        rows = load_json(self.store, HISTORY_KEY, default=[])
        return rows if isinstance(rows, list) else []

    def _save(self, rows: list[dict[str, Any]]) -> None:
        dump_json(self.store, HISTORY_KEY, rows)

    @staticmethod
    def _page(records: list[HistoryRecord], page_num: int, page_size: int) -> Page[HistoryRecord]:
        return Page[HistoryRecord].from_items(records, page_num=page_num, page_size=page_size)
