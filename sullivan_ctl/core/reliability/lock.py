"""
Operation lock — one mutating sullivan-ctl operation at a time.

Provisioning, start/stop and env edits all mutate shared state (the
.env file, the compose project, the resume token). Concurrent runs are
refused rather than serialised behind one another: the second caller
fails fast with LockBusyError unless ``lock_timeout`` allows a wait.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import FileLock, Timeout

from sullivan_ctl.core.errors import LockBusyError

logger = logging.getLogger(__name__)

LOCK_MODE = 0o666


@contextmanager
def operation_lock(path: Path, timeout: float = 0, operation: str = "operation") -> Iterator[None]:
    """Hold the advisory lock at ``path`` for the duration of the block.

    Raises:
        LockBusyError: If another process holds the lock past ``timeout``,
            or the lock file cannot be opened.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    # Shared by root (provision) and the media user (start/stop, env edits).
    lock = FileLock(str(path), timeout=timeout, mode=LOCK_MODE)
    try:
        lock.acquire()
    except Timeout as e:
        raise LockBusyError(
            f"Another sullivan-ctl operation is running (lock: {path}); "
            f"refusing to start '{operation}'"
        ) from e
    except OSError as e:
        raise LockBusyError(
            f"Cannot open lock file {path}: {e.strerror or e}; "
            f"fix its permissions (or remove it) before running '{operation}'"
        ) from e
    logger.debug("Acquired lock %s for %s", path, operation)
    try:
        yield
    finally:
        lock.release()
        logger.debug("Released lock %s", path)
