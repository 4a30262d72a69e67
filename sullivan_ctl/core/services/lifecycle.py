"""
Service lifecycle — start, stop, observe and probe the compose stack.

The manager owns ordering and convergence; the compose adapter owns the
CLI. ``start`` always converges: a full-set start tears the project down
first, so running it twice never leaves duplicate containers behind.

Failure classes:
    - ``up`` failing is fatal (LifecycleError)
    - pull failures and services still unreachable after the settle
      delay are DegradedStartErrors, collected
      in the report and logged as warnings
    - env/mount/network problems are ConfigurationWarnings
"""

from __future__ import annotations

import logging
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field

from sullivan_ctl.adapters.containers.compose import ComposeAdapter, parse_ps_output
from sullivan_ctl.core.errors import (
    ConfigurationWarning,
    DegradedStartError,
    LifecycleError,
    SelectionError,
)
from sullivan_ctl.core.models.service import ProbeContext, ProbeResult, ServiceSpec
from sullivan_ctl.core.models.settings import Settings
from sullivan_ctl.core.observability.health import ComponentHealth, StackHealth
from sullivan_ctl.core.persistence.env_file import EnvFile
from sullivan_ctl.core.services.dependency import resolve_order
from sullivan_ctl.core.services.env_bootstrap import ensure_env_config, validate_mount_points
from sullivan_ctl.core.services.network import network_sanity_check

logger = logging.getLogger(__name__)


# ── Selection ───────────────────────────────────────────────────


@dataclass(frozen=True)
class Selection:
    """Either every declared service or a validated subset."""

    names: tuple[str, ...] = ()

    @property
    def is_all(self) -> bool:
        return not self.names

    @classmethod
    def parse(cls, requested: list[str] | tuple[str, ...], catalog: list[ServiceSpec]) -> Selection:
        """Build a selection; ``all`` or nothing means the full set.

        Raises:
            SelectionError: If a name is not declared.
        """
        names = [n for n in requested if n]
        if not names or names == ["all"]:
            return cls()
        declared = [s.name for s in catalog]
        unknown = [n for n in names if n not in declared]
        if unknown:
            raise SelectionError(
                f"Unknown service(s): {', '.join(unknown)}. Declared: {', '.join(declared)}"
            )
        return cls(tuple(dict.fromkeys(names)))

    def label(self) -> str:
        return "all" if self.is_all else ", ".join(self.names)


# ── Probing ─────────────────────────────────────────────────────


class HostProber:
    """ProbeContext backed by real HTTP requests and ``compose exec``."""

    def __init__(self, compose: ComposeAdapter):
        self._compose = compose

    def http_probe(self, url: str, timeout: float) -> ProbeResult:
        request = urllib.request.Request(url, method="GET", headers={"User-Agent": "sullivan-ctl/1.0"})
        start = time.monotonic()
        try:
            with urllib.request.urlopen(request, timeout=timeout) as resp:
                code = resp.getcode()
        except urllib.error.HTTPError as e:
            code = e.code
        except (urllib.error.URLError, TimeoutError, OSError) as e:
            reason = getattr(e, "reason", e)
            return ProbeResult(
                reachable=False,
                detail=f"unreachable: {reason}",
                latency_ms=int((time.monotonic() - start) * 1000),
            )
        latency = int((time.monotonic() - start) * 1000)
        return ProbeResult(reachable=code < 400, detail=f"HTTP {code}", status_code=code, latency_ms=latency)

    def exec_probe(self, service: str, command: list[str], timeout: float) -> ProbeResult:
        start = time.monotonic()
        receipt = self._compose.exec(service, command, timeout=timeout)
        latency = int((time.monotonic() - start) * 1000)
        return ProbeResult(reachable=receipt.ok, detail=receipt.detail, latency_ms=latency)


# ── Reports ─────────────────────────────────────────────────────


@dataclass
class ServiceState:
    """One row of ``status``."""

    name: str
    state: str = "not created"
    status: str = ""
    health: str = ""
    url: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "state": self.state,
            "status": self.status,
            "health": self.health,
            "url": self.url,
        }


@dataclass
class StartReport:
    """What ``start`` did and what went wrong without stopping it."""

    selection: str
    ordered: list[str] = field(default_factory=list)
    started: list[str] = field(default_factory=list)
    skipped_running: list[str] = field(default_factory=list)
    states: list[ServiceState] = field(default_factory=list)
    degraded: list[DegradedStartError] = field(default_factory=list)
    warnings: list[ConfigurationWarning] = field(default_factory=list)
    health: HealthReport | None = None

    def to_dict(self) -> dict:
        return {
            "selection": self.selection,
            "ordered": self.ordered,
            "started": self.started,
            "skipped_running": self.skipped_running,
            "states": [s.to_dict() for s in self.states],
            "degraded": [str(d) for d in self.degraded],
            "warnings": [str(w) for w in self.warnings],
            "health": self.health.health.to_dict() if self.health else None,
        }


@dataclass
class HealthReport:
    """Probe results plus the degraded conditions they produced."""

    health: StackHealth
    degraded: list[DegradedStartError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {**self.health.to_dict(), "degraded": [str(d) for d in self.degraded]}


# ── Manager ─────────────────────────────────────────────────────


class ServiceLifecycleManager:
    """Lifecycle operations over the declared service catalog."""

    def __init__(
        self,
        settings: Settings,
        compose: ComposeAdapter,
        catalog: list[ServiceSpec],
        prober: ProbeContext,
        settle_delay: float = 10.0,
    ):
        self.settings = settings
        self.compose = compose
        self.catalog = catalog
        self.prober = prober
        self.settle_delay = settle_delay
        self._by_name = {s.name: s for s in catalog}

    def select(self, requested: list[str] | tuple[str, ...]) -> Selection:
        return Selection.parse(requested, self.catalog)

    def _names(self, selection: Selection) -> list[str]:
        if selection.is_all:
            return [s.name for s in self.catalog]
        return list(selection.names)

    # ── start ───────────────────────────────────────────────────

    def start(self, selection: Selection, pull: bool = True) -> StartReport:
        """Bring the selection (and its dependencies) up, then probe what started.

        Raises:
            PrerequisiteError: Docker or compose unavailable.
            LifecycleError: ``up`` failed.
        """
        self.compose.check_prerequisites()
        report = StartReport(selection=selection.label())

        env_report = ensure_env_config(self.settings)
        report.warnings.extend(env_report.warnings)
        mounts = validate_mount_points(EnvFile.load(self.settings.env_path), self.settings)
        report.warnings.extend(mounts.warnings)

        ordered = resolve_order(self.catalog, self._names(selection))
        report.ordered = ordered
        logger.info("Start order: %s", " → ".join(ordered))

        if selection.is_all:
            down = self.compose.down(remove_orphans=True)
            if not down.ok:
                logger.warning("Teardown before start failed: %s", down.error)

        warning = network_sanity_check(self.compose)
        if warning is not None:
            report.warnings.append(warning)

        if pull:
            pulled = self.compose.pull([] if selection.is_all else ordered, ignore_failures=True)
            if not pulled.ok:
                degraded = DegradedStartError("pull", pulled.error or "image pull failed")
                report.degraded.append(degraded)
                logger.warning("%s (continuing with local images)", degraded)

        targets = ordered
        if not selection.is_all:
            running = self.compose.running_services()
            requested = set(selection.names)
            targets = [n for n in ordered if n in requested or n not in running]
            report.skipped_running = [n for n in ordered if n not in targets]
            if report.skipped_running:
                logger.info("Already running: %s", ", ".join(report.skipped_running))

        up = self.compose.up(targets, detached=True)
        if not up.ok:
            raise LifecycleError(f"compose up failed for {', '.join(targets)}: {up.error}")
        report.started = targets

        if self.settle_delay > 0:
            logger.info("Waiting %.0fs for services to initialize...", self.settle_delay)
            time.sleep(self.settle_delay)

        report.states = self._states(ordered)
        report.health = self.health_check(Selection(tuple(targets)))
        report.degraded.extend(report.health.degraded)
        return report

    # ── stop ────────────────────────────────────────────────────

    def stop(self, selection: Selection) -> list[str]:
        """Stop a subset, or tear the whole project down.

        Raises:
            LifecycleError: The compose command failed.
        """
        self.compose.check_prerequisites()
        if selection.is_all:
            receipt = self.compose.down(remove_orphans=True)
            names = [s.name for s in self.catalog]
        else:
            names = list(selection.names)
            receipt = self.compose.stop(names)
        if not receipt.ok:
            raise LifecycleError(f"Stopping {selection.label()} failed: {receipt.error}")
        logger.info("Stopped: %s", selection.label())
        return names

    # ── status ──────────────────────────────────────────────────

    def _states(self, names: list[str]) -> list[ServiceState]:
        receipt = self.compose.ps()
        if not receipt.ok:
            raise LifecycleError(f"compose ps failed: {receipt.error}")
        seen = {
            entry.get("Service"): entry
            for entry in parse_ps_output(receipt.output)
            if entry.get("Service")
        }
        states = []
        for name in names:
            spec = self._by_name.get(name)
            entry = seen.get(name)
            row = ServiceState(name=name, url=spec.url if spec else None)
            if entry:
                row.state = entry.get("State", "unknown")
                row.status = entry.get("Status", "")
                row.health = entry.get("Health", "")
            states.append(row)
        return states

    def status(self, selection: Selection) -> list[ServiceState]:
        self.compose.check_prerequisites()
        return self._states(self._names(selection))

    # ── health ──────────────────────────────────────────────────

    def health_check(self, selection: Selection) -> HealthReport:
        """Probe each selected service once. Never raises for an unhealthy service."""
        report = HealthReport(health=StackHealth())
        for name in self._names(selection):
            spec = self._by_name[name]
            if not spec.health_checkable:
                report.health.add(ComponentHealth(name=name, status="unchecked", message="no health check"))
                continue
            result = spec.check_health(self.prober, self.settings.probe_timeout)
            details = {"check": spec.health.describe(), "latency_ms": result.latency_ms}
            if result.status_code is not None:
                details["status_code"] = result.status_code
            if result.reachable:
                report.health.add(ComponentHealth(name=name, status="healthy", message=result.detail, details=details))
                logger.info("%s healthy (%s)", name, result.detail)
            else:
                report.health.add(ComponentHealth(name=name, status="unreachable", message=result.detail, details=details))
                degraded = DegradedStartError(name, f"not reachable yet ({result.detail})")
                report.degraded.append(degraded)
                logger.warning("%s", degraded)
        return report

    # ── logs ────────────────────────────────────────────────────

    def logs(self, selection: Selection, follow: bool = True, tail: int | None = None) -> int:
        """Attach to compose logs. Ctrl-C detaches; services keep running."""
        self.compose.check_prerequisites()
        services = [] if selection.is_all else list(selection.names)
        try:
            return self.compose.logs(services, follow=follow, tail=tail)
        except KeyboardInterrupt:
            logger.info("Detached from logs")
            return 0
