"""Task creation and status polling.

Beginner terms:
- Terminal state: COMPLETED or FAILED. A task never leaves a terminal state.
- Attempt budget: the poll loop gives up after ``max_attempts`` status queries.
- Cancel event: a ``threading.Event`` owned by the caller. Setting it stops the
  loop before its next attempt and wakes it from the wait between attempts.
"""

from __future__ import annotations

import logging
import random
import threading
from collections.abc import Callable

from aidraw_client.errors import (
    AdapterError,
    BusinessError,
    PollCancelledError,
    TaskTimeoutError,
    TransportError,
    ValidationError,
)
from aidraw_client.identity import Actor, IdentityResolver
from aidraw_client.models import GenerationOutcome, GenerationParams, GenerationTask, PollResult, PromptEnhancement
from aidraw_client.outcome import Outcome
from aidraw_client.tasks.base import TaskBackend

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


def synthetic_progress(attempt: int, max_attempts: int) -> float:
    """Cosmetic progress percentage for ``attempt`` (0-based); capped at 95."""
    return min(10 + attempt / max_attempts * 80, 95)


class TaskOrchestrator:
    def __init__(
        self,
        backend: TaskBackend,
        identity: IdentityResolver,
        *,
        max_attempts: int = 30,
        interval_s: float = 2.0,
    ) -> None:
        self.backend = backend
        self.identity = identity
        self.max_attempts = max_attempts
        self.interval_s = interval_s

    def create_task(self, actor: Actor | None, params: GenerationParams) -> GenerationTask:
        if not params.prompt.strip():
            raise ValidationError("Please enter a prompt")
        if params.seed is None:
            params = params.model_copy(update={"seed": random.randrange(1000)})
        task = self.backend.submit(self.identity.resolve(actor), params)
        logger.info(
            "tasks event=created task_id=%s status=%s immediate_url=%s",
            task.task_id,
            task.status,
            task.image_url is not None,
        )
        return task

    def poll_status(
        self,
        task_id: str,
        max_attempts: int | None = None,
        interval_s: float | None = None,
        cancel: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> PollResult:
        """Query the task status until it is terminal or the attempt budget runs out.

        Transport errors count as transient and are retried. Any other adapter
        error propagates from the attempt that raised it.
        """
        attempts = self.max_attempts if max_attempts is None else max_attempts
        interval = self.interval_s if interval_s is None else interval_s
        if attempts < 1:
            raise ValidationError("max_attempts must be at least 1")
        cancel = cancel if cancel is not None else threading.Event()

        for attempt in range(attempts):
            if cancel.is_set():
                logger.info("task_poll event=cancelled task_id=%s attempt=%d/%d", task_id, attempt + 1, attempts)
                raise PollCancelledError("Polling cancelled")
            is_last = attempt == attempts - 1
            try:
                report = self.backend.get_status(task_id)
            except TransportError as exc:
                logger.warning(
                    "task_poll event=transient_error task_id=%s attempt=%d/%d cause=%s reason=%s",
                    task_id,
                    attempt + 1,
                    attempts,
                    exc.cause,
                    exc.message,
                )
                if is_last:
                    raise TaskTimeoutError("Task status query timed out") from exc
            else:
                if report.status == "COMPLETED":
                    return PollResult(
                        success=True,
                        status="COMPLETED",
                        image_url=report.image_url,
                        attempts=attempt + 1,
                    )
                if report.status == "FAILED":
                    return PollResult(
                        success=False,
                        status="FAILED",
                        error=report.error_message or "Task execution failed",
                        attempts=attempt + 1,
                    )
                if on_progress is not None:
                    on_progress(synthetic_progress(attempt, attempts))
            if not is_last:
                cancel.wait(interval)

        logger.warning("task_poll event=exhausted task_id=%s attempts=%d", task_id, attempts)
        raise TaskTimeoutError("Task execution timed out")

    def generate(
        self,
        actor: Actor | None,
        params: GenerationParams,
        cancel: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationOutcome:
        task = self.create_task(actor, params)
        if task.image_url:
            return GenerationOutcome(task=task, image_url=task.image_url)
        if task.status == "FAILED":
            raise BusinessError(task.error_message or "Task execution failed")

        result = self.poll_status(task.task_id, cancel=cancel, on_progress=on_progress)
        if not result.success or not result.image_url:
            raise BusinessError(result.error or "Task execution failed")
        task = task.model_copy(update={"status": "COMPLETED", "image_url": result.image_url})
        return GenerationOutcome(task=task, image_url=result.image_url)

    def enhance_prompt(self, prompt: str) -> Outcome[PromptEnhancement]:
        unchanged = PromptEnhancement.unchanged(prompt)
        if not prompt.strip():
            return Outcome.failure(unchanged, "Please enter a prompt")
        try:
            return Outcome.success(self.backend.enhance_prompt(prompt))
        except AdapterError as exc:
            logger.warning("tasks event=enhance_failed reason=%s", exc.message)
            return Outcome.failure(unchanged, exc.message)
