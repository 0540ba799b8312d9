from __future__ import annotations

import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from packetman.storage.paths import config_path

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

DEFAULT_CONFIG: Dict[str, Any] = {
    "http": {
        "timeout": DEFAULT_TIMEOUT,
        # Certificate validation is off so self-signed dev servers work.
        "insecure_skip_verify": True,
    },
    "editor": "",
    "logging": {"level": "INFO"},
}


@dataclass
class Settings:
    timeout: float = DEFAULT_TIMEOUT
    insecure_skip_verify: bool = True
    editor: str = "vim"
    log_level: str = "INFO"


def ensure_config() -> Path:
    path = config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        path.write_text(
            yaml.safe_dump(DEFAULT_CONFIG, sort_keys=False),
            encoding="utf-8",
        )
    return path


def load_config() -> Dict[str, Any]:
    path = ensure_config()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Could not read %s, using defaults: %s", path, exc)
        data = None
    if data is not None and not isinstance(data, dict):
        logger.warning("Ignoring %s: top level is not a mapping", path)
        data = None
    return _merge(copy.deepcopy(DEFAULT_CONFIG), data or {})


def load_settings() -> Settings:
    config = load_config()
    http = config.get("http") if isinstance(config.get("http"), dict) else {}
    log_config = config.get("logging") if isinstance(config.get("logging"), dict) else {}
    return Settings(
        timeout=_parse_timeout(http.get("timeout")),
        insecure_skip_verify=bool(http.get("insecure_skip_verify", True)),
        editor=get_editor_command(config),
        log_level=str(log_config.get("level") or "INFO").upper(),
    )


def get_editor_command(config: Optional[Dict[str, Any]] = None) -> str:
    if config is None:
        config = load_config()
    editor = str(config.get("editor") or "").strip()
    return editor or os.environ.get("EDITOR") or "vim"


def _parse_timeout(raw: Any) -> float:
    try:
        timeout = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid http.timeout %r, using %s", raw, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    if timeout <= 0:
        logger.warning("Non-positive http.timeout %r, using %s", raw, DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT
    return timeout


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(base[key], value)
        else:
            base[key] = value
    return base
