"""Composition root.

``build_service_adapter()`` reads the backend switch once and binds the
credits, tasks and history services to either their local or their remote
implementations. Build one adapter at process start and pass it to whatever
needs it; there is no module-level instance.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from aidraw_client.config import Settings, get_settings
from aidraw_client.credits import CreditsLedger, LocalCreditsBackend, RemoteCreditsBackend
from aidraw_client.credits.base import CreditsBackend
from aidraw_client.errors import BusinessError
from aidraw_client.history import HistoryService, LocalHistoryBackend, RemoteHistoryBackend
from aidraw_client.history.base import HistoryBackend
from aidraw_client.identity import Actor, IdentityResolver
from aidraw_client.models import CreditBalance, GenerationOutcome, GenerationParams
from aidraw_client.storage import KeyValueStore, SQLiteKeyValueStore
from aidraw_client.tasks import LocalTaskBackend, RemoteTaskBackend, TaskOrchestrator
from aidraw_client.tasks.base import TaskBackend
from aidraw_client.tasks.orchestrator import ProgressCallback
from aidraw_client.transport import RestClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AdapterConfig:
    use_backend: bool
    api_base_url: str
    credits_per_image: int = 1

    @property
    def mode(self) -> str:
        return "remote" if self.use_backend else "local"


@dataclass(frozen=True)
class ServiceAdapter:
    config: AdapterConfig
    identity: IdentityResolver
    credits: CreditsLedger
    tasks: TaskOrchestrator
    history: HistoryService

    def generate_image(
        self,
        actor: Actor | None,
        params: GenerationParams,
        cancel: threading.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationOutcome:
        """Check credits, generate one image, pay for it, and refresh the balance."""
        cost = self.config.credits_per_image
        check = self.credits.check_sufficient(actor, cost)
        if not check.sufficient:
            raise BusinessError(self.credits.insufficient_message(actor))

        outcome = self.tasks.generate(actor, params, cancel=cancel, on_progress=on_progress)
        # The remote backend deducts on submission.
        if not self.config.use_backend:
            self.credits.spend(actor, cost, "AI drawing")

        balance = self.credits.get_balance(actor)
        return outcome.model_copy(update={"balance": balance})

    def login(self, actor: Actor) -> CreditBalance:
        """Carry the anonymous balance over to ``actor`` and return the new balance."""
        self.credits.transfer_anonymous_to_user(actor)
        return self.credits.get_balance(actor)


def build_service_adapter(
    settings: Settings | None = None,
    *,
    store: KeyValueStore | None = None,
    client: RestClient | None = None,
) -> ServiceAdapter:
    settings = settings or get_settings()
    config = AdapterConfig(
        use_backend=settings.use_backend,
        api_base_url=settings.resolved_api_base_url(),
        credits_per_image=settings.credits_per_image,
    )
    if config.use_backend and not config.api_base_url:
        raise RuntimeError("AIDRAW_API_BASE_URL is required when AIDRAW_USE_BACKEND is enabled.")

    store = store if store is not None else SQLiteKeyValueStore(settings.resolved_storage_path())
    identity = IdentityResolver(store)
    headers = {"User-Agent": settings.app_name}

    credits_backend: CreditsBackend
    task_backend: TaskBackend
    history_backend: HistoryBackend
    if config.use_backend:
        client = client or RestClient(config.api_base_url, timeout_s=settings.api_timeout_s, headers=headers)
        credits_backend = RemoteCreditsBackend(client)
        task_backend = RemoteTaskBackend(client)
        history_backend = RemoteHistoryBackend(client)
    else:
        # Local mode only uses HTTP for prompt enhancement, with absolute URLs.
        client = client or RestClient(settings.text_base_url, timeout_s=settings.api_timeout_s, headers=headers)
        local_history = LocalHistoryBackend(store)
        credits_backend = LocalCreditsBackend(store, initial_credits=settings.local_initial_credits)
        task_backend = LocalTaskBackend(
            local_history,
            client,
            image_base_url=settings.image_base_url,
            text_base_url=settings.text_base_url,
        )
        history_backend = local_history

    logger.info("service_adapter event=built mode=%s base_url=%s", config.mode, config.api_base_url or "-")
    return ServiceAdapter(
        config=config,
        identity=identity,
        credits=CreditsLedger(credits_backend, identity, store),
        tasks=TaskOrchestrator(
            task_backend,
            identity,
            max_attempts=settings.poll_max_attempts,
            interval_s=settings.poll_interval_s,
        ),
        history=HistoryService(history_backend, identity, page_size=settings.default_page_size),
    )
