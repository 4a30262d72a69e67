"""
Service dependency DAG — validation and start-order resolution (pure).

Service specs declare their predecessors in ``depends_on``. The set
must be a DAG. Start order is dependencies-first; among services with
no ordering constraint, declaration order wins, so the resolved order
is deterministic.

No I/O, no subprocess.
"""

from __future__ import annotations

from collections.abc import Iterable

from sullivan_ctl.core.models.service import ServiceSpec


def validate_dag(specs: list[ServiceSpec]) -> list[str]:
    """Validate the service dependency DAG.

    Checks for:
    - Duplicate service names
    - References to undeclared services
    - Cycles (Kahn's algorithm)

    Returns:
        List of error strings (empty = valid).
    """
    errors: list[str] = []
    names = {s.name for s in specs}

    seen: set[str] = set()
    for s in specs:
        if s.name in seen:
            errors.append(f"Duplicate service name: {s.name}")
        seen.add(s.name)

    for s in specs:
        for dep in s.depends_on:
            if dep not in names:
                errors.append(f"Service '{s.name}' depends on unknown service '{dep}'")
            elif dep == s.name:
                errors.append(f"Service '{s.name}' depends on itself")

    if errors:
        return errors

    in_degree: dict[str, int] = {s.name: len(set(s.depends_on)) for s in specs}
    adj: dict[str, list[str]] = {s.name: [] for s in specs}
    for s in specs:
        for dep in set(s.depends_on):
            adj[dep].append(s.name)

    queue = [name for name, deg in in_degree.items() if deg == 0]
    processed = 0
    while queue:
        node = queue.pop(0)
        processed += 1
        for successor in adj[node]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    if processed < len(specs):
        stuck = sorted(name for name, deg in in_degree.items() if deg > 0)
        errors.append(f"Dependency cycle detected among services: {', '.join(stuck)}")

    return errors


def resolve_order(specs: list[ServiceSpec], requested: Iterable[str]) -> list[str]:
    """Expand ``requested`` with transitive dependencies, dependencies first.

    Assumes ``specs`` passed :func:`validate_dag`.

    Args:
        specs: The full declared catalog.
        requested: Service names to start.

    Returns:
        Ordered service names: every dependency precedes its dependents,
        ties broken by declaration order.
    """
    by_name = {s.name: s for s in specs}
    position = {s.name: i for i, s in enumerate(specs)}
    ordered: list[str] = []
    placed: set[str] = set()

    def visit(name: str) -> None:
        if name in placed:
            return
        deps = sorted(set(by_name[name].depends_on), key=position.__getitem__)
        for dep in deps:
            visit(dep)
        placed.add(name)
        ordered.append(name)

    for name in sorted(set(requested), key=position.__getitem__):
        visit(name)
    return ordered


def dependents_of(specs: list[ServiceSpec], name: str) -> list[str]:
    """Services that declare ``name`` as a direct dependency."""
    return [s.name for s in specs if name in s.depends_on]
