import json
from unittest import mock

import pytest

from packetman.errors import NotFound, ValidationError
from packetman.models import RequestSpec
from packetman.storage.kv import KeyValueStore
from packetman.storage.workspace import COLLECTIONS_KEY, REQUESTS_KEY, WorkspaceStore


def _spec(**overrides):
    values = {
        "method": "POST",
        "url": "https://jsonplaceholder.typicode.com/posts",
        "headers": {"Content-Type": "application/json", "X-Trace": "1"},
        "body": '{"title": "foo"}',
    }
    values.update(overrides)
    return RequestSpec(**values)


@pytest.mark.parametrize("name", ["", "   ", None])
def test_create_collection_rejects_blank_names(store, name):
    with pytest.raises(ValidationError):
        store.create_collection(name)
    assert store.list_collections() == []


def test_create_collection(store):
    collection = store.create_collection("  API ")

    assert collection.name == "API"
    assert store.list_collections() == [collection]


def test_ids_are_unique_and_increasing(store):
    first = store.create_collection("one")
    second = store.create_collection("two")
    saved = store.save_request(second.id, "req", _spec())

    assert first.id < second.id < saved.id
    assert [c.name for c in store.list_collections()] == ["one", "two"]


def test_ids_stay_ahead_of_loaded_ids(kv):
    kv.set(COLLECTIONS_KEY, [{"id": 10**15, "name": "future"}])
    store = WorkspaceStore(kv)

    assert store.create_collection("next").id > 10**15


def test_rename_collection(store):
    collection = store.create_collection("API")
    store.rename_collection(collection.id, " Renamed ")

    assert store.get_collection(collection.id).name == "Renamed"


def test_rename_collection_errors(store):
    collection = store.create_collection("API")

    with pytest.raises(NotFound):
        store.rename_collection(collection.id + 1, "x")
    with pytest.raises(ValidationError):
        store.rename_collection(collection.id, "  ")
    assert store.get_collection(collection.id).name == "API"


def test_delete_collection_cascades(store, kv):
    doomed = store.create_collection("doomed")
    kept = store.create_collection("kept")
    store.save_request(doomed.id, "a", _spec())
    store.save_request(doomed.id, "b", _spec(method="GET", body=None))
    survivor = store.save_request(kept.id, "c", _spec())

    store.delete_collection(doomed.id)

    assert store.list_collections() == [kept]
    assert store.list_requests(doomed.id) == []
    assert store.list_requests(kept.id) == [survivor]
    assert [r["id"] for r in kv.get(REQUESTS_KEY)] == [survivor.id]
    with pytest.raises(NotFound):
        store.rename_collection(doomed.id, "again")
    with pytest.raises(NotFound):
        store.save_request(doomed.id, "again", _spec())


def test_delete_twice_is_not_found(store):
    collection = store.create_collection("API")
    saved = store.save_request(collection.id, "req", _spec())

    store.delete_request(saved.id)
    with pytest.raises(NotFound):
        store.delete_request(saved.id)

    store.delete_collection(collection.id)
    with pytest.raises(NotFound):
        store.delete_collection(collection.id)


def test_save_request_errors(store):
    collection = store.create_collection("API")

    with pytest.raises(NotFound):
        store.save_request(collection.id + 1000, "req", _spec())
    with pytest.raises(ValidationError):
        store.save_request(collection.id, " ", _spec())
    assert store.list_requests(collection.id) == []


def test_list_requests_keeps_insertion_order(store):
    collection = store.create_collection("API")
    names = ["zeta", "alpha", "mid"]
    for name in names:
        store.save_request(collection.id, name, _spec())

    assert [r.name for r in store.list_requests(collection.id)] == names
    assert store.count_requests(collection.id) == 3


def test_round_trip_through_persistence(kv):
    store = WorkspaceStore(kv)
    collection = store.create_collection("API")
    spec = _spec(method="patch")
    saved = store.save_request(collection.id, "Update post", spec)

    reloaded = WorkspaceStore(kv)

    again = reloaded.get_request(saved.id)
    assert again.spec == saved.spec
    assert again.spec.method == "PATCH"
    assert again.spec.url == spec.url
    assert again.spec.headers == spec.headers
    assert again.spec.body == spec.body
    assert reloaded.list_collections() == [collection]


def test_persisted_shape(store, kv):
    collection = store.create_collection("API")
    saved = store.save_request(
        collection.id, "req", _spec(headers={" ": "x", "A": "1"}, body=None)
    )

    assert kv.get(COLLECTIONS_KEY) == [{"id": collection.id, "name": "API"}]
    assert kv.get(REQUESTS_KEY) == [
        {
            "id": saved.id,
            "collectionId": collection.id,
            "name": "req",
            "method": "POST",
            "url": "https://jsonplaceholder.typicode.com/posts",
            "headers": {"A": "1"},
            "body": "",
        }
    ]


def test_corrupt_records_load_as_empty(kv, caplog):
    kv.directory.mkdir(parents=True)
    kv.path_for(COLLECTIONS_KEY).write_text("{not json", encoding="utf-8")
    kv.path_for(REQUESTS_KEY).write_text(json.dumps({"a": 1}), encoding="utf-8")

    store = WorkspaceStore(kv)

    assert store.list_collections() == []
    assert store.list_requests(1) == []
    assert "unreadable" in caplog.text


def test_malformed_entries_are_skipped(kv):
    kv.set(
        COLLECTIONS_KEY,
        [{"id": 1, "name": "ok"}, {"name": "no id"}, "junk", {"id": 2, "name": ""}],
    )
    kv.set(
        REQUESTS_KEY,
        [
            {"id": 3, "collectionId": 1, "name": "r", "method": "get", "url": "http://x"},
            {"id": "4", "collectionId": 1},
        ],
    )

    store = WorkspaceStore(kv)

    assert [c.id for c in store.list_collections()] == [1]
    [saved] = store.list_requests(1)
    assert saved.spec == RequestSpec("GET", "http://x", {}, "")


def test_missing_store_is_empty(tmp_path):
    store = WorkspaceStore(KeyValueStore(tmp_path / "nowhere"))

    assert store.list_collections() == []
    assert not (tmp_path / "nowhere").exists()


def test_orphaned_requests_are_dropped_on_load(kv, caplog):
    kv.set(COLLECTIONS_KEY, [{"id": 1, "name": "ok"}])
    kv.set(
        REQUESTS_KEY,
        [
            {"id": 2, "collectionId": 1, "name": "kept", "url": "http://x"},
            {"id": 3, "collectionId": 99, "name": "orphan", "url": "http://x"},
        ],
    )

    store = WorkspaceStore(kv)

    assert [r.id for r in store.list_requests(1)] == [2]
    assert store.list_requests(99) == []
    assert "missing collection 99" in caplog.text
    with pytest.raises(NotFound):
        store.get_request(3)

    store.delete_request(2)
    assert kv.get(REQUESTS_KEY) == []


def test_failed_write_leaves_state_unchanged(store):
    collection = store.create_collection("API")
    saved = store.save_request(collection.id, "req", _spec())

    with mock.patch.object(store.kv, "set", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.rename_collection(collection.id, "Renamed")
        with pytest.raises(OSError):
            store.delete_collection(collection.id)
        with pytest.raises(OSError):
            store.delete_request(saved.id)
        with pytest.raises(OSError):
            store.create_collection("Other")
        with pytest.raises(OSError):
            store.save_request(collection.id, "other", _spec())

    assert store.list_collections() == [collection]
    assert store.get_collection(collection.id).name == "API"
    assert store.list_requests(collection.id) == [saved]
