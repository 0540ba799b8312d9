from __future__ import annotations

import json
from typing import Dict, Mapping, Optional

from packetman.models import ResponseResult, Success


def format_bytes(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {units[exponent]}"


def status_class(result: ResponseResult) -> str:
    if not isinstance(result, Success):
        return "error"
    if 200 <= result.status_code < 300:
        return "success"
    if result.status_code >= 400:
        return "error"
    return "info"


def format_body(text: str) -> str:
    if not text:
        return "(Empty response)"
    try:
        return json.dumps(json.loads(text), indent=2, ensure_ascii=False)
    except ValueError:
        return text


def format_headers_json(headers: Optional[Mapping[str, str]]) -> str:
    if not headers:
        return "(No headers)"
    return json.dumps(dict(headers), indent=2, ensure_ascii=False)


def default_request_name(method: str, url: str) -> str:
    parts = url.strip().split("/")
    tail = parts[-1] if parts else ""
    if not tail and len(parts) > 2:
        tail = parts[2]
    return f"{method.upper()} {tail or 'request'}"


def parse_header_lines(text: str) -> Dict[str, str]:
    """Parse ``Name: Value`` lines; later duplicates win, blank names are dropped."""
    headers: Dict[str, str] = {}
    for line in text.splitlines():
        if not line.strip():
            continue
        name, _, value = line.partition(":")
        name = name.strip()
        if not name:
            continue
        headers[name] = value.strip()
    return headers


def format_header_lines(headers: Mapping[str, str]) -> str:
    return "\n".join(f"{key}: {value}" for key, value in headers.items())
