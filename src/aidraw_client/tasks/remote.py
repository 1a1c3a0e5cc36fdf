"""Asynchronous generation through the remote task queue."""

from __future__ import annotations

from aidraw_client.models import ActorIdentity, GenerationParams, GenerationTask, PromptEnhancement, TaskStatusReport
from aidraw_client.transport.rest_client import RestClient, expected_payload


class RemoteTaskBackend:
    def __init__(self, client: RestClient) -> None:
        self.client = client

    def submit(self, identity: ActorIdentity, params: GenerationParams) -> GenerationTask:
        body = {**params.to_wire(), **identity.as_params()}
        data = self.client.post("/tasks", body=body).unwrap_object()
        # Fields the server leaves out fall back to what was requested.
        merged = {
            "prompt": params.prompt,
            "model": params.model,
            "width": params.width,
            "height": params.height,
            "seed": params.seed,
            **data,
        }
        with expected_payload("tasks"):
            return GenerationTask.model_validate(merged)

    def get_status(self, task_id: str) -> TaskStatusReport:
        data = self.client.get(f"/tasks/{task_id}").unwrap_object()
        with expected_payload("tasks/status"):
            return TaskStatusReport.model_validate({"taskId": task_id, **data})

    def enhance_prompt(self, prompt: str) -> PromptEnhancement:
        data = self.client.post("/prompts/enhance", body={"prompt": prompt}).unwrap_object()
        enhanced = str(data.get("enhancedPrompt") or prompt)
        return PromptEnhancement(
            original=str(data.get("originalPrompt") or prompt),
            enhanced=enhanced,
            improved=bool(data.get("improved", enhanced != prompt)),
        )
