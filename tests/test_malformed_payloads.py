from __future__ import annotations

from urllib import parse, request

import pytest
from pydantic import ValidationError as PayloadValidationError

from aidraw_client.credits import CreditsLedger, LocalCreditsBackend, RemoteCreditsBackend
from aidraw_client.errors import TransportError
from aidraw_client.history import HistoryService, LocalHistoryBackend, RemoteHistoryBackend
from aidraw_client.identity import IdentityResolver
from aidraw_client.models import ActorIdentity
from aidraw_client.storage import InMemoryKeyValueStore
from aidraw_client.storage.base import CREDIT_TRANSACTIONS_KEY, HISTORY_KEY, dump_json
from aidraw_client.tasks import RemoteTaskBackend, TaskOrchestrator
from aidraw_client.transport import RestClient
from conftest import FakeHTTPResponse

BASE_URL = "http://backend.example"
ANONYMOUS = ActorIdentity(session_id="sess_1_abc")


def _serve(monkeypatch: pytest.MonkeyPatch, responses: dict[str, list[dict[str, object]]]) -> list[str]:
    """Answer each path with its queued bodies, repeating the last one."""
    seen: list[str] = []

    def fake_urlopen(req: request.Request, timeout: float) -> FakeHTTPResponse:
        path = parse.urlsplit(req.full_url).path
        seen.append(path)
        queue = responses[path]
        body = queue.pop(0) if len(queue) > 1 else queue[0]
        return FakeHTTPResponse(body)

    monkeypatch.setattr(request, "urlopen", fake_urlopen)
    return seen


def _client() -> RestClient:
    return RestClient(BASE_URL, timeout_s=2.0)


def test_null_balance_fields_fall_back(monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore) -> None:
    _serve(monkeypatch, {"/credits": [{"success": True, "data": {"totalCredits": None, "remainingCredits": 4}}]})
    backend = RemoteCreditsBackend(_client())

    with pytest.raises(TransportError, match="Unexpected response payload") as excinfo:
        backend.get_balance(ANONYMOUS)
    assert isinstance(excinfo.value.__cause__, PayloadValidationError)

    balance = CreditsLedger(backend, IdentityResolver(store), store).get_balance(None)
    assert balance.remaining_credits == 0
    assert balance.is_anonymous is True


def test_null_history_fields_read_as_empty_page(
    monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore
) -> None:
    _serve(
        monkeypatch,
        {"/history": [{"success": True, "data": {"records": [{"id": 1, "imageUrl": None}], "total": 1}}]},
    )
    service = HistoryService(RemoteHistoryBackend(_client()), IdentityResolver(store))

    page = service.list()

    assert page.records == []
    assert (page.total, page.pages, page.current, page.size) == (0, 0, 1, 12)


def test_null_required_credits_uses_requested_amount(monkeypatch: pytest.MonkeyPatch) -> None:
    _serve(
        monkeypatch,
        {"/credits/check": [{"success": True, "data": {"hasEnoughCredits": True, "requiredCredits": None}}]},
    )

    check = RemoteCreditsBackend(_client()).check_sufficient(ANONYMOUS, 2)

    assert check.sufficient is True
    assert check.required == 2


def test_unreadable_check_payload_fails_closed(
    monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore
) -> None:
    _serve(
        monkeypatch,
        {"/credits/check": [{"success": True, "data": {"hasEnoughCredits": True, "requiredCredits": "many"}}]},
    )
    ledger = CreditsLedger(RemoteCreditsBackend(_client()), IdentityResolver(store), store)

    check = ledger.check_sufficient(None, 1)

    assert check.sufficient is False
    assert check.message == "Could not verify credits: Unexpected response payload"


def test_status_without_data_is_retried(monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore) -> None:
    seen = _serve(
        monkeypatch,
        {
            "/tasks/task-9": [
                {"success": True, "data": None},
                {"success": True, "data": {"status": "COMPLETED", "imageUrl": "https://img.example/9.png"}},
            ]
        },
    )
    orchestrator = TaskOrchestrator(RemoteTaskBackend(_client()), IdentityResolver(store), interval_s=0.0)

    result = orchestrator.poll_status("task-9", max_attempts=3)

    assert result.success is True
    assert result.image_url == "https://img.example/9.png"
    assert result.attempts == 2
    assert seen == ["/tasks/task-9", "/tasks/task-9"]


def test_corrupt_local_history_reads_as_empty_page(store: InMemoryKeyValueStore) -> None:
    dump_json(store, HISTORY_KEY, [{"id": 1, "imageUrl": None, "prompt": "cat"}])
    service = HistoryService(LocalHistoryBackend(store), IdentityResolver(store))

    assert service.list().records == []
    assert service.search("cat").records == []
    assert service.popular_prompts() == []


def test_corrupt_local_transactions_read_as_empty_page(store: InMemoryKeyValueStore) -> None:
    dump_json(store, CREDIT_TRANSACTIONS_KEY, [{"owner": "anonymous", "id": None, "creditsChange": 1}])
    ledger = CreditsLedger(LocalCreditsBackend(store), IdentityResolver(store), store)

    page = ledger.list_transactions(None, page_size=5)

    assert page.records == []
    assert page.total == 0
