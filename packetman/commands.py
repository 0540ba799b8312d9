"""Typed editor intents and the handler that applies them.

The UI never touches the store or the network directly: it builds one of
the command objects below and passes it to :meth:`Workbench.handle`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from packetman.errors import RequestInFlight
from packetman.http_client import execute_request
from packetman.models import (
    Collection,
    Failure,
    FailureKind,
    RequestSpec,
    ResponseResult,
    SavedRequest,
)
from packetman.storage.config import Settings
from packetman.storage.workspace import WorkspaceStore

logger = logging.getLogger(__name__)


@dataclass
class CreateCollection:
    name: str


@dataclass
class RenameCollection:
    collection_id: int
    name: str


@dataclass
class DeleteCollection:
    collection_id: int


@dataclass
class SaveRequest:
    collection_id: int
    name: str
    spec: RequestSpec


@dataclass
class DeleteRequest:
    request_id: int


@dataclass
class SendRequest:
    spec: RequestSpec


Command = Union[
    CreateCollection,
    RenameCollection,
    DeleteCollection,
    SaveRequest,
    DeleteRequest,
    SendRequest,
]


class Workbench:
    """One editor context: a store, dispatch settings and the busy flag."""

    def __init__(self, store: WorkspaceStore, settings: Optional[Settings] = None) -> None:
        self.store = store
        self.settings = settings or Settings()
        self.busy = False

    async def handle(
        self, command: Command
    ) -> Union[None, Collection, SavedRequest, ResponseResult]:
        if isinstance(command, SendRequest):
            return await self.send(command.spec)
        if isinstance(command, CreateCollection):
            return self.store.create_collection(command.name)
        if isinstance(command, RenameCollection):
            self.store.rename_collection(command.collection_id, command.name)
            return None
        if isinstance(command, DeleteCollection):
            self.store.delete_collection(command.collection_id)
            return None
        if isinstance(command, SaveRequest):
            return self.store.save_request(
                command.collection_id, command.name, command.spec
            )
        if isinstance(command, DeleteRequest):
            self.store.delete_request(command.request_id)
            return None
        raise TypeError(f"Unknown command: {command!r}")

    async def send(self, spec: RequestSpec) -> ResponseResult:
        if self.busy:
            raise RequestInFlight("A request is already in flight")
        if not spec.url.strip():
            return Failure(FailureKind.INVALID_INPUT, "Please enter a URL", 0)
        self.busy = True
        try:
            return await execute_request(
                spec,
                timeout=self.settings.timeout,
                verify=not self.settings.insecure_skip_verify,
            )
        finally:
            self.busy = False
