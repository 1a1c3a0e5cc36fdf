"""Pydantic models shared by the adapters, the backends, and the mock backend.

Python attributes are snake_case. The REST contract and the locally stored
JSON use camelCase, so every model serializes with camelCase aliases and
accepts either spelling on input.
"""

from __future__ import annotations

import math
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

T = TypeVar("T")

# Task lifecycle states reported by the task backends.
TaskStatus = Literal["PENDING", "COMPLETED", "FAILED"]
TERMINAL_STATUSES: frozenset[str] = frozenset({"COMPLETED", "FAILED"})

TransactionType = Literal["DAILY_RESET", "BONUS", "PURCHASE", "CONSUME", "OTHER"]
_TRANSACTION_TYPES = {"DAILY_RESET", "BONUS", "PURCHASE", "CONSUME", "OTHER"}


def _coerce_status(value: Any) -> Any:
    """Queue states other than the terminal ones (QUEUED, RUNNING, ...) read as PENDING."""
    if isinstance(value, str) and value.upper() in TERMINAL_STATUSES:
        return value.upper()
    return "PENDING"


class WireModel(BaseModel):
    """Base model for camelCase wire payloads."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ActorIdentity(WireModel):
    """Key for all per-actor state: exactly one of the two fields is set."""

    user_id: int | None = None
    session_id: str | None = None

    @property
    def is_anonymous(self) -> bool:
        return self.user_id is None

    def as_params(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CreditBalance(WireModel):
    total_credits: int = 0
    used_credits: int = 0
    remaining_credits: int = 0
    free_daily_credits: int = 0
    bonus_credits: int = 0
    purchased_credits: int = 0
    last_daily_reset: str | None = None
    is_anonymous: bool = True
    needs_daily_reset: bool = False

    @classmethod
    def fallback(cls, *, is_anonymous: bool) -> CreditBalance:
        """Best-effort balance shown when the backing store cannot be read."""
        return cls(is_anonymous=is_anonymous)


class CreditTransaction(WireModel):
    id: int
    transaction_type: TransactionType = "OTHER"
    description: str = ""
    credits_change: int = 0
    balance_after: int = 0
    is_increase: bool = False
    created_time: str | None = None

    @field_validator("transaction_type", mode="before")
    @classmethod
    def _unknown_type_is_other(cls, value: Any) -> Any:
        if value not in _TRANSACTION_TYPES:
            return "OTHER"
        return value


class SufficiencyCheck(BaseModel):
    sufficient: bool
    required: int
    message: str = ""


class GenerationParams(WireModel):
    """Caller input for one image generation request."""

    prompt: str
    model: str = "flux"
    width: int = Field(default=1024, ge=64)
    height: int = Field(default=1024, ge=64)
    seed: int | None = None
    remove_watermark: bool = False
    enhance_prompt: bool = False


class GenerationTask(WireModel):
    task_id: str
    status: TaskStatus = "PENDING"
    prompt: str = ""
    enhanced_prompt: str | None = None
    model: str = "flux"
    width: int = 1024
    height: int = 1024
    seed: int | None = None
    image_url: str | None = None
    error_message: str | None = None
    credits_cost: int = 0
    created_time: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _queue_states_are_pending(cls, value: Any) -> Any:
        return _coerce_status(value)


class TaskStatusReport(WireModel):
    task_id: str
    status: TaskStatus
    image_url: str | None = None
    error_message: str | None = None
    process_duration_seconds: float | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _queue_states_are_pending(cls, value: Any) -> Any:
        return _coerce_status(value)


class PollResult(BaseModel):
    """Terminal outcome of a polling loop that did not time out."""

    success: bool
    status: TaskStatus
    image_url: str | None = None
    error: str | None = None
    attempts: int = 0


class PromptEnhancement(BaseModel):
    original: str
    enhanced: str
    improved: bool = False

    @classmethod
    def unchanged(cls, prompt: str) -> PromptEnhancement:
        return cls(original=prompt, enhanced=prompt, improved=False)


class HistoryRecord(WireModel):
    id: int
    image_url: str
    prompt: str = ""
    model_used: str = ""
    image_width: int = 0
    image_height: int = 0
    is_favorite: bool = False
    view_count: int = 0
    download_count: int = 0
    created_time: str | None = None


class GenerationOutcome(WireModel):
    task: GenerationTask
    image_url: str
    balance: CreditBalance | None = None


class Page(WireModel, Generic[T]):
    """Pagination envelope returned by every paginated read."""

    records: list[T] = Field(default_factory=list)
    total: int = 0
    pages: int = 0
    current: int = 1
    size: int = 12

    @classmethod
    def empty(cls, size: int) -> Page[T]:
        return cls(records=[], total=0, pages=0, current=1, size=size)

    @classmethod
    def from_items(cls, items: list[Any], *, page_num: int, page_size: int) -> Page[T]:
        """Slice one page out of a full, already ordered list.

        A page past the end is empty, so "load more" callers stop there.
        """
        if page_size < 1:
            raise ValueError("page_size must be >= 1")
        total = len(items)
        pages = math.ceil(total / page_size)
        current = max(page_num, 1)
        start = (current - 1) * page_size
        return cls(
            records=items[start : start + page_size],
            total=total,
            pages=pages,
            current=current,
            size=page_size,
        )

    @classmethod
    def from_payload(cls, data: Any, *, page_size: int) -> Page[T]:
        """Validate a remote page, filling the gaps older backends leave as null."""
        payload = data if isinstance(data, dict) else {}
        return cls.model_validate(
            {
                "records": payload.get("records") or [],
                "total": payload.get("total") or 0,
                "pages": payload.get("pages") or 0,
                "current": payload.get("current") or 1,
                "size": payload.get("size") or page_size,
            }
        )
