from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

from packetman.storage.paths import workspace_dir

logger = logging.getLogger(__name__)


class KeyValueStore:
    """Local key-value persistence: one JSON document per key.

    Writes replace the whole document for a key. Reads of a missing key
    return ``default``; reads of an unparseable document log a warning and
    also return ``default``.
    """

    def __init__(self, directory: Optional[Path] = None) -> None:
        self.directory = directory if directory is not None else workspace_dir()

    def path_for(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        path = self.path_for(key)
        if not path.exists():
            return default
        try:
            with path.open("r", encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, ValueError) as exc:
            logger.warning("Discarding unreadable record %s: %s", path, exc)
            return default

    def set(self, key: str, value: Any) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{key}.", suffix=".tmp", dir=str(self.directory)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(value, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug("Wrote %s", path)
