"""In-memory mock of the image generation backend.

It serves the REST contract the remote backends consume, wrapped in the
``{success, data, message, code}`` envelope. Tests drive it through
``fastapi.testclient.TestClient``; ``python -m aidraw_client.mock_backend``
serves it over HTTP for manual runs.

Behaviour knobs:
- ``pending_polls``: how many status queries report PENDING before a task completes.
- ``initial_credits``: balance of any actor seen for the first time.
- A prompt containing ``failure_marker`` produces a FAILED task.
"""

from __future__ import annotations

import threading
import uuid
from collections import Counter
from datetime import UTC, datetime
from typing import Any
from urllib import parse

from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import Field

from aidraw_client.models import CreditTransaction, GenerationParams, HistoryRecord, Page, WireModel

MOCK_IMAGE_BASE_URL = "https://images.mock.aidraw.local"


class MockApiError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class ActorBody(WireModel):
    user_id: int | None = None
    session_id: str | None = None


class SubmitTaskRequest(GenerationParams):
    user_id: int | None = None
    session_id: str | None = None


class EnhanceRequest(WireModel):
    prompt: str = ""


class CheckCreditsRequest(ActorBody):
    required_credits: int = Field(default=1, ge=0)


class CreditChangeRequest(ActorBody):
    amount: int
    description: str = ""


class TransferRequest(WireModel):
    session_id: str
    user_id: int


class BatchDeleteRequest(WireModel):
    ids: list[int] = Field(default_factory=list)


def ok(data: Any = None, message: str = "ok") -> dict[str, Any]:
    return {"success": True, "data": data, "message": message, "code": 200}


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


def _actor_key(user_id: int | None, session_id: str | None) -> str:
    if user_id is not None:
        return f"user:{user_id}"
    if session_id:
        return f"session:{session_id}"
    raise MockApiError(400, "userId or sessionId is required")


class MockBackendStore:
    """Process-local state behind the mock API."""

    def __init__(
        self,
        *,
        initial_credits: int = 10,
        pending_polls: int = 0,
        failure_marker: str = "[fail]",
    ) -> None:
        self.initial_credits = initial_credits
        self.pending_polls = pending_polls
        self.failure_marker = failure_marker
        self.remaining: dict[str, int] = {}
        self.used: dict[str, int] = {}
        self.transactions: dict[str, list[dict[str, Any]]] = {}
        self.tasks: dict[str, dict[str, Any]] = {}
        self.poll_counts: Counter[str] = Counter()
        self.history: list[dict[str, Any]] = []
        self._next_history_id = 1
        self._next_transaction_id = 1
        self._lock = threading.Lock()

    # credits

    def balance(self, key: str) -> dict[str, Any]:
        remaining = self._remaining(key)
        used = self.used.get(key, 0)
        return {
            "totalCredits": remaining + used,
            "usedCredits": used,
            "remainingCredits": remaining,
            "freeDailyCredits": 5,
            "bonusCredits": 0,
            "purchasedCredits": 0,
            "lastDailyReset": None,
            "isAnonymous": key.startswith("session:"),
            "needsDailyReset": False,
        }

    def change_credits(self, key: str, delta: int, transaction_type: str, description: str) -> int:
        with self._lock:
            remaining = self._remaining(key) + delta
            if remaining < 0:
                raise MockApiError(402, "Insufficient credits")
            self.remaining[key] = remaining
            if delta < 0:
                self.used[key] = self.used.get(key, 0) - delta
            entry = CreditTransaction(
                id=self._next_transaction_id,
                transaction_type=transaction_type,
                description=description,
                credits_change=delta,
                balance_after=remaining,
                is_increase=delta > 0,
                created_time=_now(),
            )
            self._next_transaction_id += 1
            self.transactions.setdefault(key, []).insert(0, entry.to_wire())
            return remaining

    def transfer(self, session_id: str, user_id: int) -> int:
        source = _actor_key(None, session_id)
        moved = self._remaining(source)
        if moved > 0:
            self.change_credits(source, -moved, "OTHER", f"Transferred to user {user_id}")
            # Moving credits is not usage.
            self.used[source] = self.used.get(source, 0) - moved
            self.change_credits(_actor_key(user_id, None), moved, "BONUS", "Transferred from anonymous session")
        return moved

    def _remaining(self, key: str) -> int:
        return self.remaining.setdefault(key, self.initial_credits)

    # tasks

    def submit(self, key: str, payload: SubmitTaskRequest) -> dict[str, Any]:
        prompt = payload.prompt.strip()
        if not prompt:
            raise MockApiError(400, "Prompt must not be empty")
        self.change_credits(key, -1, "CONSUME", "AI drawing")
        task = {
            "taskId": uuid.uuid4().hex,
            "status": "PENDING",
            "prompt": prompt,
            "model": payload.model,
            "width": payload.width,
            "height": payload.height,
            "seed": payload.seed,
            "creditsCost": 1,
            "createdTime": _now(),
            "owner": key,
        }
        with self._lock:
            self.tasks[task["taskId"]] = task
        return task

    def poll(self, task_id: str) -> dict[str, Any]:
        with self._lock:
            task = self.tasks.get(task_id)
            if task is None:
                raise MockApiError(404, "Task not found")
            self.poll_counts[task_id] += 1
            if task["status"] == "PENDING" and self.poll_counts[task_id] > self.pending_polls:
                self._finish(task)
            return task

    def _finish(self, task: dict[str, Any]) -> None:
        if self.failure_marker in task["prompt"]:
            task["status"] = "FAILED"
            task["errorMessage"] = "Image generation failed"
            return
        task["status"] = "COMPLETED"
        task["imageUrl"] = f"{MOCK_IMAGE_BASE_URL}/{task['taskId']}.png?prompt={parse.quote(task['prompt'])}"
        record = HistoryRecord(
            id=self._next_history_id,
            image_url=task["imageUrl"],
            prompt=task["prompt"],
            model_used=task["model"],
            image_width=task["width"],
            image_height=task["height"],
            created_time=_now(),
        ).to_wire()
        record["owner"] = task["owner"]
        self._next_history_id += 1
        self.history.insert(0, record)

    # history

    def records(self, key: str) -> list[dict[str, Any]]:
        return [record for record in self.history if record["owner"] == key]

    def record(self, record_id: int) -> dict[str, Any]:
        for record in self.history:
            if record["id"] == record_id:
                return record
        raise MockApiError(404, "History record not found")

    def delete(self, record_ids: list[int]) -> None:
        with self._lock:
            for record_id in record_ids:
                self.record(record_id)
            wanted = set(record_ids)
            self.history = [record for record in self.history if record["id"] not in wanted]


def _history_page(records: list[dict[str, Any]], page_num: int, page_size: int) -> dict[str, Any]:
    items = [HistoryRecord.model_validate(record) for record in records]
    return Page[HistoryRecord].from_items(items, page_num=page_num, page_size=page_size).to_wire()


def create_app(
    *,
    initial_credits: int = 10,
    pending_polls: int = 0,
    failure_marker: str = "[fail]",
) -> FastAPI:
    """Build a fresh mock backend with its own state."""
    store = MockBackendStore(
        initial_credits=initial_credits,
        pending_polls=pending_polls,
        failure_marker=failure_marker,
    )
    app = FastAPI(
        title="AI Drawing Mock API",
        version="1.0.0",
        description="In-memory credits, task and history API for local runs and tests.",
    )
    app.state.store = store

    @app.exception_handler(MockApiError)
    def handle_mock_error(request: Request, exc: MockApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "data": None, "message": exc.message, "code": exc.status_code},
        )

    @app.exception_handler(RequestValidationError)
    def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "data": None, "message": "Invalid request parameters", "code": 400},
        )

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "system": "aidraw-mock"}

    # tasks

    @app.post("/tasks")
    def submit_task(payload: SubmitTaskRequest) -> dict[str, Any]:
        key = _actor_key(payload.user_id, payload.session_id)
        remaining = store.remaining.get(key, store.initial_credits)
        if remaining < 1:
            # Business rejection: 200 with success=false, like the real backend.
            return {"success": False, "data": None, "message": "Insufficient credits", "code": 402}
        task = store.submit(key, payload)
        return ok({k: v for k, v in task.items() if k != "owner"}, "Task created")

    @app.get("/tasks/{task_id}")
    def task_status(task_id: str) -> dict[str, Any]:
        task = store.poll(task_id)
        return ok(
            {
                "taskId": task["taskId"],
                "status": task["status"],
                "imageUrl": task.get("imageUrl"),
                "errorMessage": task.get("errorMessage"),
                "processDurationSeconds": 1.5 if task["status"] != "PENDING" else None,
            }
        )

    @app.post("/prompts/enhance")
    def enhance_prompt(payload: EnhanceRequest) -> dict[str, Any]:
        prompt = payload.prompt.strip()
        if not prompt:
            raise MockApiError(400, "Prompt must not be empty")
        enhanced = f"{prompt}, highly detailed, cinematic lighting"
        return ok({"originalPrompt": prompt, "enhancedPrompt": enhanced, "improved": True})

    # credits

    @app.get("/credits")
    def get_credits(
        user_id: int | None = Query(None, alias="userId"),
        session_id: str | None = Query(None, alias="sessionId"),
    ) -> dict[str, Any]:
        return ok(store.balance(_actor_key(user_id, session_id)))

    @app.post("/credits/check")
    def check_credits(payload: CheckCreditsRequest) -> dict[str, Any]:
        key = _actor_key(payload.user_id, payload.session_id)
        remaining = store.balance(key)["remainingCredits"]
        enough = remaining >= payload.required_credits
        return ok(
            {
                "hasEnoughCredits": enough,
                "requiredCredits": payload.required_credits,
                "message": "" if enough else f"Insufficient credits: {remaining} available",
            }
        )

    @app.post("/credits/add")
    def add_credits(payload: CreditChangeRequest) -> dict[str, Any]:
        if payload.amount <= 0:
            raise MockApiError(400, "Amount must be positive")
        key = _actor_key(payload.user_id, payload.session_id)
        store.change_credits(key, payload.amount, "BONUS", payload.description or "Credit top-up")
        return ok(True, "Credits added")

    @app.post("/credits/transfer")
    def transfer_credits(payload: TransferRequest) -> dict[str, Any]:
        moved = store.transfer(payload.session_id, payload.user_id)
        return ok(True, f"Transferred {moved} credits")

    @app.get("/credits/transactions")
    def list_transactions(
        user_id: int | None = Query(None, alias="userId"),
        session_id: str | None = Query(None, alias="sessionId"),
        transaction_type: str | None = Query(None, alias="transactionType"),
        page_num: int = Query(1, alias="pageNum", ge=1),
        page_size: int = Query(10, alias="pageSize", ge=1),
    ) -> dict[str, Any]:
        rows = store.transactions.get(_actor_key(user_id, session_id), [])
        if transaction_type:
            rows = [row for row in rows if row["transactionType"] == transaction_type]
        items = [CreditTransaction.model_validate(row) for row in rows]
        page = Page[CreditTransaction].from_items(items, page_num=page_num, page_size=page_size)
        return ok(page.to_wire())

    # history

    @app.get("/history")
    def list_history(
        user_id: int | None = Query(None, alias="userId"),
        session_id: str | None = Query(None, alias="sessionId"),
        page_num: int = Query(1, alias="pageNum", ge=1),
        page_size: int = Query(12, alias="pageSize", ge=1),
    ) -> dict[str, Any]:
        records = store.records(_actor_key(user_id, session_id))
        return ok(_history_page(records, page_num, page_size))

    @app.get("/history/favorites")
    def list_favorites(
        user_id: int | None = Query(None, alias="userId"),
        session_id: str | None = Query(None, alias="sessionId"),
        page_num: int = Query(1, alias="pageNum", ge=1),
        page_size: int = Query(12, alias="pageSize", ge=1),
    ) -> dict[str, Any]:
        records = [r for r in store.records(_actor_key(user_id, session_id)) if r["isFavorite"]]
        return ok(_history_page(records, page_num, page_size))

    @app.get("/history/search")
    def search_history(
        keyword: str = Query(""),
        user_id: int | None = Query(None, alias="userId"),
        session_id: str | None = Query(None, alias="sessionId"),
        page_num: int = Query(1, alias="pageNum", ge=1),
        page_size: int = Query(12, alias="pageSize", ge=1),
    ) -> dict[str, Any]:
        needle = keyword.strip().lower()
        records = [
            r for r in store.records(_actor_key(user_id, session_id)) if needle in r["prompt"].lower()
        ]
        return ok(_history_page(records, page_num, page_size))

    @app.get("/history/popular-prompts")
    def popular_prompts(limit: int = Query(10, ge=1, le=100)) -> dict[str, Any]:
        counts = Counter(record["prompt"] for record in store.history)
        return ok([prompt for prompt, _ in counts.most_common(limit)])

    @app.post("/history/{record_id}/favorite")
    def toggle_favorite(record_id: int) -> dict[str, Any]:
        record = store.record(record_id)
        record["isFavorite"] = not record["isFavorite"]
        return ok(record["isFavorite"])

    @app.post("/history/{record_id}/view")
    def increment_view(record_id: int) -> dict[str, Any]:
        record = store.record(record_id)
        record["viewCount"] += 1
        return ok(True)

    @app.post("/history/{record_id}/download")
    def increment_download(record_id: int) -> dict[str, Any]:
        record = store.record(record_id)
        record["downloadCount"] += 1
        return ok(True)

    # Registered before /history/{record_id} so "batch" is not parsed as an id.
    @app.delete("/history/batch")
    def batch_delete(payload: BatchDeleteRequest) -> dict[str, Any]:
        if not payload.ids:
            raise MockApiError(400, "No history records selected")
        store.delete(payload.ids)
        return ok(True, f"Deleted {len(payload.ids)} records")

    @app.delete("/history/{record_id}")
    def delete_record(record_id: int) -> dict[str, Any]:
        store.delete([record_id])
        return ok(True)

    return app
