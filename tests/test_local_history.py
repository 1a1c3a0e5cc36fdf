from __future__ import annotations

import math

import pytest

from aidraw_client.errors import StorageError, ValidationError
from aidraw_client.history import HistoryService, LocalHistoryBackend
from aidraw_client.identity import IdentityResolver
from aidraw_client.models import ActorIdentity, HistoryRecord
from aidraw_client.storage import InMemoryKeyValueStore

ANONYMOUS = ActorIdentity(session_id="sess_1_abc")


def _seed(backend: LocalHistoryBackend, prompts: list[str]) -> list[HistoryRecord]:
    return [
        backend.add(image_url=f"https://img.example/{index}.png", prompt=prompt, model="flux", width=512, height=512)
        for index, prompt in enumerate(prompts)
    ]


class FailingHistoryBackend:
    def _fail(self, *args: object) -> None:
        raise StorageError("Local storage operation failed")

    list = _fail
    list_favorites = _fail
    search = _fail
    toggle_favorite = _fail
    delete = _fail
    batch_delete = _fail
    increment_view = _fail
    increment_download = _fail
    popular_prompts = _fail


def test_new_records_are_prepended_with_increasing_ids(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    first, second = _seed(backend, ["first", "second"])

    page = backend.list(ANONYMOUS)

    assert (first.id, second.id) == (1, 2)
    assert [record.id for record in page.records] == [2, 1]


@pytest.mark.parametrize("total", [0, 1, 11, 12, 13, 25])
@pytest.mark.parametrize("page_size", [5, 12])
def test_pagination_invariants(store: InMemoryKeyValueStore, total: int, page_size: int) -> None:
    backend = LocalHistoryBackend(store)
    _seed(backend, [f"prompt {index}" for index in range(total)])
    expected_pages = math.ceil(total / page_size)

    seen: list[int] = []
    for page_num in range(1, max(expected_pages, 1) + 1):
        page = backend.list(ANONYMOUS, page_num=page_num, page_size=page_size)
        assert page.pages == expected_pages
        assert page.total == total
        assert len(page.records) <= page_size
        assert 1 <= page.current <= max(page.pages, 1)
        seen.extend(record.id for record in page.records)

    assert sorted(seen) == list(range(1, total + 1))


def test_page_past_the_end_is_empty(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    _seed(backend, ["a", "b", "c"])

    last = backend.list(ANONYMOUS, page_num=2, page_size=2)
    beyond = backend.list(ANONYMOUS, page_num=9, page_size=2)

    assert [record.prompt for record in last.records] == ["a"]
    assert beyond.records == []
    assert (beyond.total, beyond.pages, beyond.current) == (3, 2, 9)
    assert backend.list(ANONYMOUS, page_num=0, page_size=2).current == 1


def test_batch_delete_removes_exactly_the_given_ids(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    _seed(backend, [f"p{index}" for index in range(6)])

    assert backend.batch_delete([2, 4, 5]) is True

    remaining = [record.id for record in backend.list(ANONYMOUS, page_size=20).records]
    assert remaining == [6, 3, 1]


def test_batch_delete_is_all_or_nothing(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    _seed(backend, ["a", "b"])

    assert backend.batch_delete([1, 99]) is False
    assert backend.list(ANONYMOUS).total == 2
    assert backend.delete(99) is False
    assert backend.delete(1) is True
    assert backend.list(ANONYMOUS).total == 1


def test_toggle_favorite_twice_restores_value(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    (record,) = _seed(backend, ["a"])

    assert backend.toggle_favorite(record.id) is True
    assert backend.list_favorites(ANONYMOUS).total == 1
    assert backend.toggle_favorite(record.id) is True

    assert backend.list(ANONYMOUS).records[0].is_favorite is record.is_favorite
    assert backend.list_favorites(ANONYMOUS).total == 0
    assert backend.toggle_favorite(404) is False


def test_search_is_case_insensitive_substring(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    _seed(backend, ["A Red Kite", "blue whale", "red panda"])

    page = backend.search(ANONYMOUS, "  RED ")

    assert [record.prompt for record in page.records] == ["red panda", "A Red Kite"]


def test_counters_and_popular_prompts(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    _seed(backend, ["cat", "dog", "cat", "owl", "cat", "dog"])

    assert backend.increment_view(1) is True
    assert backend.increment_view(1) is True
    assert backend.increment_download(1) is True

    record = next(r for r in backend.list(ANONYMOUS, page_size=20).records if r.id == 1)
    assert (record.view_count, record.download_count) == (2, 1)
    assert backend.popular_prompts(2) == ["cat", "dog"]


def test_service_reads_fail_soft(store: InMemoryKeyValueStore) -> None:
    service = HistoryService(FailingHistoryBackend(), IdentityResolver(store), page_size=12)

    for page in (service.list(), service.list_favorites(page_num=3), service.search("cat")):
        assert page.records == []
        assert (page.total, page.pages, page.current, page.size) == (0, 0, 1, 12)
    assert service.popular_prompts() == []


def test_service_mutations_return_false_on_failure(store: InMemoryKeyValueStore) -> None:
    service = HistoryService(FailingHistoryBackend(), IdentityResolver(store))

    assert service.toggle_favorite(1) is False
    assert service.delete(1) is False
    assert service.batch_delete([1, 2]) is False


def test_service_counters_return_outcomes(store: InMemoryKeyValueStore) -> None:
    failing = HistoryService(FailingHistoryBackend(), IdentityResolver(store))
    view = failing.increment_view(1)
    assert view.ok is False
    assert view.value is False
    assert view.error == "Local storage operation failed"

    backend = LocalHistoryBackend(store)
    (record,) = _seed(backend, ["a"])
    service = HistoryService(backend, IdentityResolver(store))
    assert service.record_view(record).ok
    assert service.record_download(record).value is True
    assert service.batch_delete([]) is False


def test_blank_search_lists_everything(store: InMemoryKeyValueStore) -> None:
    backend = LocalHistoryBackend(store)
    _seed(backend, ["a", "b"])

    assert HistoryService(backend, IdentityResolver(store)).search("  ").total == 2


def test_non_positive_page_size_is_rejected(store: InMemoryKeyValueStore) -> None:
    service = HistoryService(LocalHistoryBackend(store), IdentityResolver(store))

    with pytest.raises(ValidationError, match="Page size"):
        service.list(page_size=-3)
    with pytest.raises(ValidationError, match="Page size"):
        service.search("cat", page_size=-1)
    assert service.list(page_size=0).size == 12
