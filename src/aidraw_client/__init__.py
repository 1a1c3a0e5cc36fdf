"""Client-side service layer for AI image generation: credits, tasks, and history."""

from aidraw_client.adapter import AdapterConfig, ServiceAdapter, build_service_adapter
from aidraw_client.identity import Actor

__all__ = ["Actor", "AdapterConfig", "ServiceAdapter", "build_service_adapter"]
