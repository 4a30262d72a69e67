"""
Shared test fixtures and fakes.

The fakes stand in for the host: ``FakeRunner`` for every subprocess,
``FakeCompose`` for the compose project, ``FakeTransport`` for the
Tailscale control plane. Nothing in the suite touches the real system.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from pathlib import Path

import pytest

from sullivan_ctl.core.data import get_registry
from sullivan_ctl.core.errors import PrerequisiteError
from sullivan_ctl.core.models.action import Receipt
from sullivan_ctl.core.models.service import ProbeResult
from sullivan_ctl.core.models.settings import Settings

# ── Subprocess fake ──────────────────────────────────────────────


class FakeRunner:
    """Records argv lists; answers by longest configured prefix, latest rule first."""

    def __init__(self, binaries: Sequence[str] = ("docker", "systemctl", "tailscale", "dnf", "iptables")):
        self.binaries = set(binaries)
        self.calls: list[list[str]] = []
        self.masks: list[list[str]] = []
        self.attached: list[list[str]] = []
        self._rules: list[tuple[list[str], bool, str, str]] = []
        self.attach_error: BaseException | None = None
        self.attach_code = 0

    def on(self, *prefix: str, ok: bool = True, output: str = "", error: str = "command failed") -> None:
        self._rules.append((list(prefix), ok, output, error))

    def which(self, binary: str) -> bool:
        return binary in self.binaries

    def run(self, argv, *, action_id="command", adapter="shell", timeout=None, cwd=None,
            privileged=False, mask=()) -> Receipt:
        argv = list(argv)
        self.calls.append(argv)
        self.masks.append(list(mask))
        matches = [r for r in self._rules if argv[:len(r[0])] == r[0]]
        if matches:
            _, ok, output, error = max(reversed(matches), key=lambda r: len(r[0]))
            if not ok:
                return Receipt.failure(
                    adapter=adapter, action_id=action_id, error=error, output=output,
                    metadata={"command": " ".join(argv), "return_code": 1},
                )
            return Receipt.success(adapter=adapter, action_id=action_id, output=output,
                                   metadata={"command": " ".join(argv), "return_code": 0})
        return Receipt.success(adapter=adapter, action_id=action_id,
                               metadata={"command": " ".join(argv), "return_code": 0})

    def run_attached(self, argv, *, cwd=None, privileged=False) -> int:
        self.attached.append(list(argv))
        if self.attach_error is not None:
            raise self.attach_error
        return self.attach_code

    def called(self, *prefix: str) -> list[list[str]]:
        return [c for c in self.calls if c[:len(prefix)] == list(prefix)]


# ── Compose fake ─────────────────────────────────────────────────


class FakeCompose:
    """In-memory compose project.

    ``up`` creates a container for each named service that is not
    already running, mirroring compose's convergence; ``containers``
    records every container ever created and not removed.
    """

    command_label = "docker compose"

    def __init__(self):
        self.containers: list[str] = []
        self.ops: list[tuple[str, list[str]]] = []
        self.pull_ok = True
        self.up_ok = True
        self.prerequisite_error: str | None = None
        self.network_ok = True
        self.exec_ok = True
        self.logs_error: BaseException | None = None

    def _receipt(self, action_id: str, ok: bool, output: str = "", error: str = "failed") -> Receipt:
        if ok:
            return Receipt.success(adapter="compose", action_id=action_id, output=output)
        return Receipt.failure(adapter="compose", action_id=action_id, error=error)

    def check_prerequisites(self) -> None:
        if self.prerequisite_error:
            raise PrerequisiteError(self.prerequisite_error)

    def pull(self, services=(), ignore_failures=True) -> Receipt:
        self.ops.append(("pull", list(services)))
        return self._receipt("compose-pull", self.pull_ok, error="registry unreachable")

    def up(self, services=(), detached=True) -> Receipt:
        self.ops.append(("up", list(services)))
        if not self.up_ok:
            return self._receipt("compose-up", False, error="port already allocated")
        for name in services:
            if name not in self.containers:
                self.containers.append(name)
        return self._receipt("compose-up", True)

    def down(self, services=(), remove_orphans=True) -> Receipt:
        self.ops.append(("down", list(services)))
        self.containers.clear()
        return self._receipt("compose-down", True)

    def stop(self, services=()) -> Receipt:
        self.ops.append(("stop", list(services)))
        self.containers = [c for c in self.containers if c not in services]
        return self._receipt("compose-stop", True)

    def ps(self, services=()) -> Receipt:
        lines = [
            json.dumps({"Service": name, "State": "running", "Status": "Up 5 seconds", "Health": ""})
            for name in self.containers
        ]
        return self._receipt("compose-ps", True, output="\n".join(lines))

    def running_services(self) -> set[str]:
        return set(self.containers)

    def logs(self, services=(), follow=True, tail=None) -> int:
        self.ops.append(("logs", list(services)))
        if self.logs_error is not None:
            raise self.logs_error
        return 0

    def exec(self, service, command, timeout=None) -> Receipt:
        return self._receipt(f"exec-{service}", self.exec_ok, output="accepting connections")

    def network_create(self, name) -> Receipt:
        self.ops.append(("network-create", [name]))
        return self._receipt("network-create", self.network_ok, error="bridge driver unavailable")

    def network_rm(self, name) -> Receipt:
        self.ops.append(("network-rm", [name]))
        return self._receipt("network-rm", True)

    def op_names(self) -> list[str]:
        return [name for name, _ in self.ops]

    def args_of(self, op: str) -> list[list[str]]:
        return [args for name, args in self.ops if name == op]


class FakeProber:
    """ProbeContext with canned answers keyed by URL or service."""

    def __init__(self, unreachable: Sequence[str] = ()):
        self.unreachable = set(unreachable)
        self.http_calls: list[str] = []
        self.exec_calls: list[str] = []

    def http_probe(self, url: str, timeout: float) -> ProbeResult:
        self.http_calls.append(url)
        if any(u in url for u in self.unreachable):
            return ProbeResult(reachable=False, detail="unreachable: connection refused")
        return ProbeResult(reachable=True, detail="HTTP 200", status_code=200)

    def exec_probe(self, service: str, command: list[str], timeout: float) -> ProbeResult:
        self.exec_calls.append(service)
        return ProbeResult(reachable=service not in self.unreachable, detail="exec")


# ── HTTP fake ────────────────────────────────────────────────────


class FakeTransport:
    """Queued (status, body) responses; records every request."""

    def __init__(self, *responses: tuple[int | None, str]):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request, timeout):
        self.requests.append(request)
        if not self.responses:
            raise AssertionError(f"unexpected request to {request.full_url}")
        return self.responses.pop(0)


# ── Fixtures ─────────────────────────────────────────────────────


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings rooted in a temp dir, with every host path redirected."""
    return Settings(
        project_root=tmp_path,
        setup_dir=tmp_path / "setup",
        unit_dir=tmp_path / "units",
        stage2_log=tmp_path / "stage2.log",
        settle_delay=0,
        provision_user="media",
    )


@pytest.fixture
def media_env(settings: Settings) -> Path:
    """A complete .env whose media paths live under the temp dir."""
    lines = []
    for key in get_registry().env_keys:
        if key.kind == "path":
            suffix = (key.default or "media").lstrip("/")
            value = str(settings.project_root / suffix)
        elif key.kind == "internal_secret":
            value = "s3cret-value"
        elif key.kind == "external_secret":
            value = "real-credential"
        elif key.dynamic is not None:
            value = "1000"
        else:
            value = key.default or ""
        lines.append(f"{key.key}={value}")
    settings.env_path.write_text("\n".join(lines) + "\n")
    return settings.env_path


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def fake_compose() -> FakeCompose:
    return FakeCompose()
