from __future__ import annotations

import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any

from crash_watch.log import get_logger

logger = get_logger(__name__)


class RunLockedError(RuntimeError):
    pass


def write_json_atomic(obj: Any, path: str | Path, **kwargs) -> None:
    """Write JSON atomically: write to a temp file then os.replace."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_", dir=target.parent, text=True)
    os.close(fd)
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(obj, f, ensure_ascii=False, **kwargs)
        os.replace(tmp, target)
    finally:
        if os.path.exists(tmp):
            os.remove(tmp)


class RunLock:
    """Exclusive lock file guarding one location against overlapping runs.

    The file holds a run id so a stale lock left by a killed run can be
    identified and removed by hand.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self.run_id = uuid.uuid4().hex
        self._held = False

    def acquire(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            holder = self.path.read_text(encoding="utf-8", errors="ignore").strip()
            raise RunLockedError(
                f"Another run holds {self.path} (run id {holder or 'unknown'}). "
                "Delete the file if that run is no longer active."
            ) from None
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self.run_id)
        self._held = True
        logger.debug("Acquired run lock %s (%s)", self.path, self.run_id)

    def release(self) -> None:
        if not self._held:
            return
        self.path.unlink(missing_ok=True)
        self._held = False

    def __enter__(self) -> "RunLock":
        self.acquire()
        return self

    def __exit__(self, *exc) -> None:
        self.release()
