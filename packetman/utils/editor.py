from __future__ import annotations

import logging
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Optional

from packetman.storage.config import get_editor_command

logger = logging.getLogger(__name__)


def open_in_editor(path: Path, editor: Optional[str] = None) -> bool:
    command = shlex.split(editor or get_editor_command()) + [str(path)]
    try:
        subprocess.run(command, check=False)
    except FileNotFoundError:
        logger.warning("Editor not found: %s", command[0])
        return False
    return True


def edit_text(text: str, editor: Optional[str] = None, suffix: str = ".txt") -> Optional[str]:
    """Round-trip ``text`` through an external editor; None if it could not start."""
    with tempfile.TemporaryDirectory(prefix="packetman-") as tmp:
        path = Path(tmp) / f"body{suffix}"
        path.write_text(text, encoding="utf-8")
        if not open_in_editor(path, editor):
            return None
        return path.read_text(encoding="utf-8")
