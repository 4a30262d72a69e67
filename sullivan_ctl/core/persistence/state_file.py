"""
State file persistence — atomic read/write for the resume token and
stage progress.

Both documents are JSON under the setup directory. Writes are atomic
(write to temp file, then rename) so a crash or power loss during the
reboot hand-off never leaves a half-written token. The token holds
secrets and is created owner-read/write only.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import BaseModel, ValidationError

from sullivan_ctl.core.errors import SullivanError
from sullivan_ctl.core.models.state import ResumeToken, StageProgress

logger = logging.getLogger(__name__)


class StateFileError(SullivanError):
    """A state file exists but cannot be read or parsed."""


def _atomic_write(model: BaseModel, path: Path, mode: int) -> None:
    """Serialize ``model`` to ``path`` via temp-file-then-rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    content = json.dumps(model.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".state_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
        os.chmod(tmp, mode)
        tmp.rename(path)
        logger.debug("State saved to %s", path)
    except Exception:
        tmp.unlink(missing_ok=True)
        raise


# ── Resume token ─────────────────────────────────────────────────


def save_token(token: ResumeToken, path: Path) -> None:
    """Persist the resume token with owner-only permissions."""
    _atomic_write(token, path, 0o600)
    logger.info("Resume token written to %s", path)


def load_token(path: Path) -> ResumeToken | None:
    """Load the resume token.

    Returns:
        The token, or None when no token file exists.

    Raises:
        StateFileError: If the file exists but is corrupt or invalid.
    """
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ResumeToken.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise StateFileError(f"Cannot load resume token {path}: {e}") from e


def delete_token(path: Path) -> bool:
    """Remove the resume token. Returns True if a file was removed."""
    if path.exists():
        path.unlink()
        logger.info("Resume token removed: %s", path)
        return True
    return False


# ── Stage progress ───────────────────────────────────────────────


def load_progress(path: Path, plan_name: str) -> StageProgress:
    """Load stage progress; missing, corrupt or foreign files start fresh."""
    if not path.is_file():
        return StageProgress(plan_name=plan_name)
    try:
        progress = StageProgress.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Corrupt progress file %s: %s — starting fresh", path, e)
        return StageProgress(plan_name=plan_name)
    if progress.plan_name != plan_name:
        logger.warning(
            "Progress file %s belongs to plan '%s', not '%s' — starting fresh",
            path, progress.plan_name, plan_name,
        )
        return StageProgress(plan_name=plan_name)
    return progress


def save_progress(progress: StageProgress, path: Path) -> None:
    _atomic_write(progress, path, 0o644)


def clear_progress(path: Path) -> None:
    path.unlink(missing_ok=True)
