"""Generation task creation, polling, and prompt enhancement."""

from aidraw_client.tasks.base import TaskBackend
from aidraw_client.tasks.local import LocalTaskBackend, build_image_url
from aidraw_client.tasks.orchestrator import TaskOrchestrator, synthetic_progress
from aidraw_client.tasks.remote import RemoteTaskBackend

__all__ = [
    "LocalTaskBackend",
    "RemoteTaskBackend",
    "TaskBackend",
    "TaskOrchestrator",
    "build_image_url",
    "synthetic_progress",
]
