from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
BODY_METHODS = ("POST", "PUT", "PATCH", "DELETE")


def clean_headers(headers: Optional[Dict[str, Any]]) -> Dict[str, str]:
    cleaned: Dict[str, str] = {}
    for key, value in (headers or {}).items():
        name = str(key).strip()
        if not name:
            continue
        cleaned[name] = "" if value is None else str(value)
    return cleaned


@dataclass
class RequestSpec:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "method": self.method,
            "url": self.url,
            "headers": dict(self.headers),
            "body": self.body or "",
        }


class FailureKind(enum.Enum):
    TIMEOUT = "Timeout"
    NETWORK_ERROR = "NetworkError"
    INVALID_INPUT = "InvalidInput"

    @property
    def status_text(self) -> str:
        return _STATUS_TEXT[self]


_STATUS_TEXT = {
    FailureKind.TIMEOUT: "Timeout",
    FailureKind.NETWORK_ERROR: "Network Error",
    FailureKind.INVALID_INPUT: "Error",
}


@dataclass
class Success:
    status_code: int
    reason: str
    headers: Dict[str, str]
    body: str
    elapsed_ms: int
    size: int

    success = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "status": self.status_code,
            "statusText": self.reason,
            "headers": dict(self.headers),
            "data": self.body,
            "duration": self.elapsed_ms,
            "size": self.size,
        }


@dataclass
class Failure:
    kind: FailureKind
    message: str
    elapsed_ms: int

    success = False

    @property
    def data(self) -> str:
        if self.kind is FailureKind.TIMEOUT:
            return self.message
        return f"Error: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "status": 0,
            "statusText": self.kind.status_text,
            "headers": {},
            "data": self.data,
            "duration": self.elapsed_ms,
            "size": 0,
            "error": True,
            "errorMessage": self.message,
        }


ResponseResult = Union[Success, Failure]


@dataclass
class Collection:
    id: int
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name}


@dataclass
class SavedRequest:
    id: int
    collection_id: int
    name: str
    spec: RequestSpec

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "collectionId": self.collection_id,
            "name": self.name,
        }
        data.update(self.spec.to_dict())
        return data
