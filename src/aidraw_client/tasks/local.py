"""Synchronous generation against the public image URL endpoint.

Local mode has no job queue. The image URL itself is the generation request,
so a submitted task is already COMPLETED and goes straight into the local
history.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from datetime import UTC, datetime
from urllib import parse

from aidraw_client.errors import BusinessError
from aidraw_client.history.local import LocalHistoryBackend
from aidraw_client.models import ActorIdentity, GenerationParams, GenerationTask, PromptEnhancement, TaskStatusReport
from aidraw_client.transport.rest_client import RestClient

logger = logging.getLogger(__name__)

ENHANCE_INSTRUCTION = (
    "Rewrite the following image generation prompt with vivid visual detail. "
    "Reply with the improved prompt only: "
)


def build_image_url(base_url: str, params: GenerationParams, seed: int) -> str:
    encoded_prompt = parse.quote(params.prompt.strip(), safe="")
    url = (
        f"{base_url.rstrip('/')}/{encoded_prompt}"
        f"?width={params.width}&height={params.height}&model={params.model}"
        f"&enhance=true&seed={seed}"
    )
    if params.remove_watermark:
        url += "&nologo=true"
    return url


class LocalTaskBackend:
    def __init__(
        self,
        history: LocalHistoryBackend,
        text_client: RestClient,
        *,
        image_base_url: str,
        text_base_url: str,
        max_tracked_tasks: int = 100,
    ) -> None:
        self.history = history
        self.text_client = text_client
        self.image_base_url = image_base_url
        self.text_base_url = text_base_url.rstrip("/")
        self.max_tracked_tasks = max_tracked_tasks
        # Most recent tasks only. Older ids report as not found.
        self._tasks: OrderedDict[str, GenerationTask] = OrderedDict()

    def submit(self, identity: ActorIdentity, params: GenerationParams) -> GenerationTask:
        # Seeds are filled in by the orchestrator before submission.
        seed = params.seed if params.seed is not None else 0
        image_url = build_image_url(self.image_base_url, params, seed)
        task = GenerationTask(
            task_id=f"local_{uuid.uuid4().hex}",
            status="COMPLETED",
            prompt=params.prompt.strip(),
            model=params.model,
            width=params.width,
            height=params.height,
            seed=seed,
            image_url=image_url,
            created_time=datetime.now(tz=UTC).isoformat(),
        )
        self._tasks[task.task_id] = task
        while len(self._tasks) > self.max_tracked_tasks:
            self._tasks.popitem(last=False)
        self.history.add(
            image_url=image_url,
            prompt=task.prompt,
            model=params.model,
            width=params.width,
            height=params.height,
        )
        logger.info("local_tasks event=completed task_id=%s model=%s seed=%d", task.task_id, task.model, seed)
        return task

    def get_status(self, task_id: str) -> TaskStatusReport:
        task = self._tasks.get(task_id)
        if task is None:
            raise BusinessError(f"Task {task_id} not found", code=404)
        return TaskStatusReport(task_id=task.task_id, status=task.status, image_url=task.image_url)

    def enhance_prompt(self, prompt: str) -> PromptEnhancement:
        url = f"{self.text_base_url}/{parse.quote(ENHANCE_INSTRUCTION + prompt, safe='')}"
        enhanced = self.text_client.get_text(url).strip().strip('"').strip()
        if not enhanced:
            return PromptEnhancement.unchanged(prompt)
        return PromptEnhancement(original=prompt, enhanced=enhanced, improved=enhanced != prompt)
