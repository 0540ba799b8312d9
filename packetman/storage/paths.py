from __future__ import annotations

import os
from pathlib import Path

HOME_ENV = "PACKETMAN_HOME"


def config_dir() -> Path:
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override)
    return Path.home() / ".config" / "packetman"


def config_path() -> Path:
    return config_dir() / "config.yaml"


def workspace_dir() -> Path:
    return config_dir() / "workspace"


def log_path() -> Path:
    return config_dir() / "logs" / "packetman.log"
