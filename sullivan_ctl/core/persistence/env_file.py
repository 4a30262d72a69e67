"""
EnvConfig persistence — the compose stack's ``KEY=VALUE`` file.

The file is edited in place: comments, blank lines and key order are
kept exactly as the operator left them. Values are only ever replaced
when they are empty or a recognised placeholder; a real value is never
overwritten.

Handles:
- KEY=value
- KEY="value" (backslash escapes) / KEY='value' (literal)
- export KEY=value
- Comments (#), inline comments after unquoted values, empty lines
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

PLACEHOLDER = "CHANGE_ME"

_PLACEHOLDER_PATTERNS = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^change[_-]?me",
        r"^replace[_-]?me",
        r"^your[_-]",
        r"^<[^>]*>$",
        r"^x{3,}$",
        r"^\*+$",
        r"^placeholder$",
        r"^todo$",
        r"^tskey-\*+",
    )
)

_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_INLINE_COMMENT = re.compile(r"(?:^|\s)#")


def is_placeholder(value: str) -> bool:
    """Whether ``value`` is a sentinel for a secret still to be provided."""
    value = value.strip()
    return any(p.search(value) for p in _PLACEHOLDER_PATTERNS)


def needs_value(value: str | None) -> bool:
    """Empty, missing, or placeholder — i.e. safe to overwrite."""
    return value is None or not value.strip() or is_placeholder(value)


def _parse_line(line: str) -> tuple[str, str, bool] | None:
    """Return (key, value, exported) for an assignment line, else None."""
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None

    exported = False
    if stripped.startswith("export "):
        stripped = stripped[7:].strip()
        exported = True

    if "=" not in stripped:
        return None

    key, _, value = stripped.partition("=")
    key = key.strip()
    value = value.strip()
    if not _KEY_RE.match(key):
        return None

    return key, _unquote(value), exported


def _unquote(value: str) -> str:
    """Strip quoting the way _format_value applies it; drop inline comments."""
    if value[:1] == '"':
        chars = []
        i = 1
        while i < len(value):
            c = value[i]
            if c == "\\" and i + 1 < len(value):
                chars.append(value[i + 1])
                i += 2
                continue
            if c == '"':
                return "".join(chars)
            chars.append(c)
            i += 1
        return value  # unterminated: keep as written
    if value[:1] == "'":
        end = value.find("'", 1)
        return value[1:end] if end != -1 else value
    return _INLINE_COMMENT.split(value, maxsplit=1)[0].rstrip()


def _format_value(value: str) -> str:
    if value and (any(c.isspace() for c in value) or "#" in value or value[0] in "\"'"):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    return value


class EnvFile:
    """An editable ``.env`` file."""

    def __init__(self, path: Path, lines: list[str] | None = None):
        self.path = path
        self._lines: list[str] = list(lines or [])

    @classmethod
    def load(cls, path: Path) -> EnvFile:
        """Read ``path``; a missing file yields an empty EnvFile."""
        if not path.is_file():
            return cls(path)
        content = path.read_text(encoding="utf-8")
        return cls(path, content.splitlines())

    @property
    def exists(self) -> bool:
        return self.path.is_file()

    # ── Read ─────────────────────────────────────────────────────

    def _find(self, key: str) -> tuple[int, str, bool] | None:
        """(line index, value, exported) of the first assignment to ``key``."""
        for i, line in enumerate(self._lines):
            parsed = _parse_line(line)
            if parsed and parsed[0] == key:
                return i, parsed[1], parsed[2]
        return None

    def get(self, key: str, default: str | None = None) -> str | None:
        found = self._find(key)
        if found is None:
            return default
        return found[1]

    def as_dict(self) -> dict[str, str]:
        result: dict[str, str] = {}
        for line in self._lines:
            parsed = _parse_line(line)
            if parsed:
                result[parsed[0]] = parsed[1]
        return result

    def __contains__(self, key: str) -> bool:
        return self._find(key) is not None

    # ── Write ────────────────────────────────────────────────────

    def update_env_var(self, key: str, value: str) -> bool:
        """Set ``key`` only if it is absent, empty, or a placeholder.

        Returns:
            True if the file content changed.
        """
        found = self._find(key)
        if found is None:
            self._lines.append(f"{key}={_format_value(value)}")
            logger.debug("Added %s", key)
            return True

        idx, current, exported = found
        if not needs_value(current):
            logger.debug("Keeping existing value for %s", key)
            return False
        if current == value:
            return False

        prefix = "export " if exported else ""
        self._lines[idx] = f"{prefix}{key}={_format_value(value)}"
        logger.debug("Updated %s", key)
        return True

    def add_comment(self, text: str = "") -> None:
        """Append a comment line (or a blank line for empty text)."""
        self._lines.append(f"# {text}" if text else "")

    def save(self) -> None:
        """Write atomically with owner-only permissions (the file holds secrets)."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        content = "\n".join(self._lines) + "\n"
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".env_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.chmod(tmp, 0o600)
            tmp.rename(self.path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s", self.path)


def update_env_var(path: Path, key: str, value: str) -> bool:
    """Apply the placeholder-only update rule to one key of the file at ``path``."""
    env = EnvFile.load(path)
    changed = env.update_env_var(key, value)
    if changed:
        env.save()
    return changed

