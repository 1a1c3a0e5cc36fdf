"""Task backend interface shared by the local and remote implementations."""

from __future__ import annotations

from typing import Protocol

from aidraw_client.models import ActorIdentity, GenerationParams, GenerationTask, PromptEnhancement, TaskStatusReport


class TaskBackend(Protocol):
    def submit(self, identity: ActorIdentity, params: GenerationParams) -> GenerationTask: ...

    def get_status(self, task_id: str) -> TaskStatusReport: ...

    def enhance_prompt(self, prompt: str) -> PromptEnhancement: ...
