from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from packetman.errors import NotFound, ValidationError
from packetman.models import Collection, RequestSpec, SavedRequest, clean_headers
from packetman.storage.kv import KeyValueStore

logger = logging.getLogger(__name__)

COLLECTIONS_KEY = "packetman_collections"
REQUESTS_KEY = "packetman_requests"


class WorkspaceStore:
    """Collections and saved requests, written through to a key-value store.

    Every mutation rewrites the full list(s) it touched before returning.
    Errors are raised before any state changes, and in-memory state only
    changes once the write has succeeded.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self.kv = kv
        self._collections: List[Collection] = []
        self._requests: List[SavedRequest] = []
        self._last_id = 0
        self.load()

    def load(self) -> None:
        self._collections = _parse_list(
            self.kv.get(COLLECTIONS_KEY), _parse_collection, COLLECTIONS_KEY
        )
        known = {c.id for c in self._collections}
        self._requests = []
        for saved in _parse_list(
            self.kv.get(REQUESTS_KEY), _parse_saved_request, REQUESTS_KEY
        ):
            if saved.collection_id not in known:
                logger.warning(
                    "Skipping malformed entry in %s: request %d belongs to "
                    "missing collection %d",
                    REQUESTS_KEY,
                    saved.id,
                    saved.collection_id,
                )
                continue
            self._requests.append(saved)
        ids = [c.id for c in self._collections] + [r.id for r in self._requests]
        self._last_id = max(ids, default=0)
        logger.debug(
            "Loaded %d collections and %d requests",
            len(self._collections),
            len(self._requests),
        )

    # Collections

    def list_collections(self) -> List[Collection]:
        return list(self._collections)

    def get_collection(self, collection_id: int) -> Collection:
        for collection in self._collections:
            if collection.id == collection_id:
                return collection
        raise NotFound("collection", collection_id)

    def create_collection(self, name: str) -> Collection:
        name = _require_name(name, "Collection name")
        collection = Collection(id=self._next_id(), name=name)
        collections = self._collections + [collection]
        self._save_collections(collections)
        self._collections = collections
        logger.info("Created collection %d %r", collection.id, collection.name)
        return collection

    def rename_collection(self, collection_id: int, new_name: str) -> None:
        current = self.get_collection(collection_id)
        renamed = Collection(id=current.id, name=_require_name(new_name, "Collection name"))
        collections = [renamed if c.id == collection_id else c for c in self._collections]
        self._save_collections(collections)
        self._collections = collections
        logger.info("Renamed collection %d to %r", collection_id, renamed.name)

    def delete_collection(self, collection_id: int) -> None:
        self.get_collection(collection_id)
        collections = [c for c in self._collections if c.id != collection_id]
        requests = [r for r in self._requests if r.collection_id != collection_id]
        self._save_collections(collections)
        self._save_requests(requests)
        removed = len(self._requests) - len(requests)
        self._collections = collections
        self._requests = requests
        logger.info("Deleted collection %d and %d request(s)", collection_id, removed)

    # Saved requests

    def list_requests(self, collection_id: int) -> List[SavedRequest]:
        return [r for r in self._requests if r.collection_id == collection_id]

    def count_requests(self, collection_id: int) -> int:
        return len(self.list_requests(collection_id))

    def get_request(self, request_id: int) -> SavedRequest:
        for saved in self._requests:
            if saved.id == request_id:
                return saved
        raise NotFound("request", request_id)

    def save_request(
        self, collection_id: int, name: str, spec: RequestSpec
    ) -> SavedRequest:
        self.get_collection(collection_id)
        name = _require_name(name, "Request name")
        saved = SavedRequest(
            id=self._next_id(),
            collection_id=collection_id,
            name=name,
            spec=RequestSpec(
                method=spec.method.strip().upper(),
                url=spec.url,
                headers=clean_headers(spec.headers),
                body=spec.body or "",
            ),
        )
        requests = self._requests + [saved]
        self._save_requests(requests)
        self._requests = requests
        logger.info(
            "Saved request %d %r in collection %d", saved.id, name, collection_id
        )
        return saved

    def delete_request(self, request_id: int) -> None:
        self.get_request(request_id)
        requests = [r for r in self._requests if r.id != request_id]
        self._save_requests(requests)
        self._requests = requests
        logger.info("Deleted request %d", request_id)

    def _next_id(self) -> int:
        candidate = int(time.time() * 1000)
        self._last_id = max(candidate, self._last_id + 1)
        return self._last_id

    def _save_collections(self, collections: List[Collection]) -> None:
        self.kv.set(COLLECTIONS_KEY, [c.to_dict() for c in collections])

    def _save_requests(self, requests: List[SavedRequest]) -> None:
        self.kv.set(REQUESTS_KEY, [r.to_dict() for r in requests])


def _require_name(name: Optional[str], label: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"{label} must not be empty")
    return name


def _parse_list(raw: Any, parse, key: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        logger.warning("Ignoring %s: expected a list, got %s", key, type(raw).__name__)
        return []
    items = []
    for entry in raw:
        item = parse(entry)
        if item is None:
            logger.warning("Skipping malformed entry in %s: %r", key, entry)
            continue
        items.append(item)
    return items


def _parse_id(raw: Any) -> Optional[int]:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    if int(raw) != raw:
        return None
    return int(raw)


def _parse_collection(data: Any) -> Optional[Collection]:
    if not isinstance(data, dict):
        return None
    ident = _parse_id(data.get("id"))
    name = data.get("name")
    if ident is None or not isinstance(name, str) or not name.strip():
        return None
    return Collection(id=ident, name=name)


def _parse_saved_request(data: Any) -> Optional[SavedRequest]:
    if not isinstance(data, dict):
        return None
    ident = _parse_id(data.get("id"))
    collection_id = _parse_id(data.get("collectionId"))
    if ident is None or collection_id is None:
        return None
    headers: Dict[str, Any] = (
        data.get("headers") if isinstance(data.get("headers"), dict) else {}
    )
    body = data.get("body")
    if body is not None and not isinstance(body, str):
        body = str(body)
    return SavedRequest(
        id=ident,
        collection_id=collection_id,
        name=str(data.get("name") or ""),
        spec=RequestSpec(
            method=str(data.get("method") or "GET").upper(),
            url=str(data.get("url") or ""),
            headers={str(k): str(v) for k, v in headers.items()},
            body=body or "",
        ),
    )
