from __future__ import annotations

from urllib import parse, request

import pytest

from aidraw_client.errors import BusinessError
from aidraw_client.history import LocalHistoryBackend
from aidraw_client.models import ActorIdentity, GenerationParams
from aidraw_client.storage import InMemoryKeyValueStore
from aidraw_client.tasks import LocalTaskBackend, build_image_url
from aidraw_client.transport import RestClient
from conftest import FakeHTTPResponse, http_error

IMAGE_BASE_URL = "https://image.example/prompt"
TEXT_BASE_URL = "https://text.example"
ANONYMOUS = ActorIdentity(session_id="sess_1_abc")


def _backend(store: InMemoryKeyValueStore) -> LocalTaskBackend:
    return LocalTaskBackend(
        LocalHistoryBackend(store),
        RestClient(TEXT_BASE_URL, timeout_s=2.0),
        image_base_url=IMAGE_BASE_URL,
        text_base_url=TEXT_BASE_URL,
    )


def test_build_image_url_encodes_prompt_and_options() -> None:
    params = GenerationParams(prompt="  a cat & a dog  ", model="turbo", width=512, height=768)

    url = build_image_url(IMAGE_BASE_URL, params, seed=17)

    assert url == (
        "https://image.example/prompt/a%20cat%20%26%20a%20dog"
        "?width=512&height=768&model=turbo&enhance=true&seed=17"
    )
    watermark_free = params.model_copy(update={"remove_watermark": True})
    assert build_image_url(IMAGE_BASE_URL, watermark_free, seed=17).endswith("&seed=17&nologo=true")


def test_submit_completes_immediately_and_records_history(store: InMemoryKeyValueStore) -> None:
    backend = _backend(store)

    task = backend.submit(ANONYMOUS, GenerationParams(prompt="a red kite", seed=5))

    assert task.status == "COMPLETED"
    assert task.task_id.startswith("local_")
    assert task.image_url is not None and "seed=5" in task.image_url
    page = backend.history.list(ANONYMOUS)
    assert page.total == 1
    assert page.records[0].image_url == task.image_url
    assert page.records[0].prompt == "a red kite"
    status = backend.get_status(task.task_id)
    assert status.status == "COMPLETED"
    assert status.image_url == task.image_url


def test_unknown_local_task_is_a_business_error(store: InMemoryKeyValueStore) -> None:
    with pytest.raises(BusinessError):
        _backend(store).get_status("local_missing")


def test_only_recent_local_tasks_are_tracked(store: InMemoryKeyValueStore) -> None:
    backend = LocalTaskBackend(
        LocalHistoryBackend(store),
        RestClient(TEXT_BASE_URL, timeout_s=2.0),
        image_base_url=IMAGE_BASE_URL,
        text_base_url=TEXT_BASE_URL,
        max_tracked_tasks=2,
    )
    first, second, third = [
        backend.submit(ANONYMOUS, GenerationParams(prompt=f"kite {n}", seed=n)) for n in range(3)
    ]

    with pytest.raises(BusinessError):
        backend.get_status(first.task_id)
    assert backend.get_status(second.task_id).status == "COMPLETED"
    assert backend.get_status(third.task_id).status == "COMPLETED"
    assert backend.history.list(ANONYMOUS).total == 3


def test_enhance_prompt_calls_text_endpoint(monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore) -> None:
    captured: dict[str, str] = {}

    def fake_urlopen(req: request.Request, timeout: float) -> FakeHTTPResponse:
        captured["url"] = req.full_url
        return FakeHTTPResponse('"a red kite over stormy cliffs"\n')

    monkeypatch.setattr(request, "urlopen", fake_urlopen)

    enhancement = _backend(store).enhance_prompt("a red kite")

    assert enhancement.enhanced == "a red kite over stormy cliffs"
    assert enhancement.improved is True
    assert captured["url"].startswith(f"{TEXT_BASE_URL}/")
    assert parse.unquote(captured["url"]).endswith("a red kite")


def test_enhance_prompt_raises_on_http_error(monkeypatch: pytest.MonkeyPatch, store: InMemoryKeyValueStore) -> None:
    def fake_urlopen(req: request.Request, timeout: float) -> FakeHTTPResponse:
        raise http_error(req.full_url, 503, "busy")

    monkeypatch.setattr(request, "urlopen", fake_urlopen)

    with pytest.raises(BusinessError, match="HTTP 503"):
        _backend(store).enhance_prompt("a red kite")
