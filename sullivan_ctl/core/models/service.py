"""
Service models — the declared units of the compose stack.

Each ServiceSpec names its dependency predecessors and, optionally, a
health check. Health checks are polymorphic: an HTTP reachability
probe or an in-container readiness command. Each knows how to run
itself against a ``ProbeContext`` supplied by the lifecycle manager,
so no caller ever switches on service names.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Annotated, Literal, Protocol

from pydantic import BaseModel, Field


@dataclass
class ProbeResult:
    """Outcome of one health probe."""

    reachable: bool
    detail: str = ""
    status_code: int | None = None
    latency_ms: int = 0


class ProbeContext(Protocol):
    """The I/O a health check is allowed to perform."""

    def http_probe(self, url: str, timeout: float) -> ProbeResult: ...

    def exec_probe(self, service: str, command: list[str], timeout: float) -> ProbeResult: ...


class HttpCheck(BaseModel):
    """Reachability of an HTTP endpoint.

    ``expect_status`` restricts which response codes count as healthy;
    when empty, any status below 400 does.
    """

    kind: Literal["http"] = "http"
    url: str
    expect_status: list[int] = Field(default_factory=list)
    timeout: float | None = None

    def probe(self, service: str, ctx: ProbeContext, default_timeout: float) -> ProbeResult:
        result = ctx.http_probe(self.url, self.timeout or default_timeout)
        if self.expect_status and result.status_code is not None:
            result.reachable = result.status_code in self.expect_status
        return result

    def describe(self) -> str:
        return self.url


class ExecCheck(BaseModel):
    """A readiness command run inside the service's container."""

    kind: Literal["exec"] = "exec"
    command: list[str]
    timeout: float | None = None

    def probe(self, service: str, ctx: ProbeContext, default_timeout: float) -> ProbeResult:
        return ctx.exec_probe(service, self.command, self.timeout or default_timeout)

    def describe(self) -> str:
        return "exec: " + " ".join(self.command)


HealthCheck = Annotated[HttpCheck | ExecCheck, Field(discriminator="kind")]


class ServiceSpec(BaseModel):
    """A compose service under management."""

    name: str
    description: str = ""
    depends_on: list[str] = Field(default_factory=list)
    health: HealthCheck | None = None
    url: str | None = None  # user-facing endpoint, shown after start

    @property
    def health_checkable(self) -> bool:
        return self.health is not None

    def check_health(self, ctx: ProbeContext, default_timeout: float) -> ProbeResult:
        """Run this service's health probe once."""
        if self.health is None:
            return ProbeResult(reachable=True, detail="no health check declared")
        return self.health.probe(self.name, ctx, default_timeout)
