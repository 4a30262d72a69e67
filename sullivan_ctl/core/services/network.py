"""
Docker network checks and repair.

- ``network_sanity_check``  can Docker create a bridge network at all?
                            (run before every start; a failure only warns)
- ``fix_network``           restore NAT/forwarding for the stack's bridge
                            when firewalld or a flush removed Docker's
                            iptables rules, then prove egress works
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from sullivan_ctl.adapters.containers.compose import ComposeAdapter
from sullivan_ctl.adapters.shell.command import CommandRunner
from sullivan_ctl.core.errors import ConfigurationWarning, LifecycleError
from sullivan_ctl.core.models.settings import Settings

logger = logging.getLogger(__name__)


def network_sanity_check(compose: ComposeAdapter) -> ConfigurationWarning | None:
    """Create and remove a throw-away network. Returns a warning on failure."""
    name = f"sullivan-net-check-{os.getpid()}"
    created = compose.network_create(name)
    if not created.ok:
        warning = ConfigurationWarning("docker-network", f"cannot create a test network: {created.error}")
        logger.warning("%s", warning)
        return warning
    removed = compose.network_rm(name)
    if not removed.ok:
        logger.warning("Cannot remove test network %s: %s", name, removed.error)
    logger.info("Docker networking OK")
    return None


@dataclass
class NetworkFixReport:
    """What ``fix_network`` found and changed."""

    network: str
    bridge: str = ""
    subnet: str = ""
    added_rules: list[str] = field(default_factory=list)
    present_rules: list[str] = field(default_factory=list)
    connectivity: bool = False
    probe_output: str = ""

    def to_dict(self) -> dict:
        return {
            "network": self.network,
            "bridge": self.bridge,
            "subnet": self.subnet,
            "added_rules": self.added_rules,
            "present_rules": self.present_rules,
            "connectivity": self.connectivity,
        }


def nat_rules(bridge: str, subnet: str) -> list[tuple[list[str], str, list[str]]]:
    """(table args, add flag, rule spec) for each rule the bridge needs."""
    return [
        (["-t", "nat"], "-A", ["POSTROUTING", "-s", subnet, "!", "-o", bridge, "-j", "MASQUERADE"]),
        ([], "-I", ["FORWARD", "-i", bridge, "!", "-o", bridge, "-j", "ACCEPT"]),
        ([], "-I", ["FORWARD", "-o", bridge, "-m", "conntrack",
                    "--ctstate", "RELATED,ESTABLISHED", "-j", "ACCEPT"]),
    ]


def fix_network(settings: Settings, compose: ComposeAdapter, runner: CommandRunner) -> NetworkFixReport:
    """Ensure the stack network's iptables rules exist, then test egress.

    Raises:
        LifecycleError: If the network does not exist, cannot be parsed,
            a rule cannot be added, or the connectivity probe fails.
    """
    network = f"{settings.compose_project}_default"
    report = NetworkFixReport(network=network)

    info = compose.network_inspect(network)
    if not info:
        raise LifecycleError(f"Docker network '{network}' not found; start the stack first")

    net_id = info.get("Id") or ""
    configs = (info.get("IPAM") or {}).get("Config") or []
    subnet = configs[0].get("Subnet") if configs else None
    if not net_id or not subnet:
        raise LifecycleError(f"Cannot determine bridge/subnet for network '{network}'")

    report.bridge = f"br-{net_id[:12]}"
    report.subnet = subnet
    logger.info("Network %s: bridge %s, subnet %s", network, report.bridge, subnet)

    for table, add_flag, spec in nat_rules(report.bridge, subnet):
        label = " ".join([*table, *spec])
        check = runner.run(
            ["iptables", *table, "-C", *spec],
            action_id="iptables-check", adapter="network", privileged=True,
        )
        if check.ok:
            report.present_rules.append(label)
            continue
        added = runner.run(
            ["iptables", *table, add_flag, *spec],
            action_id="iptables-add", adapter="network", privileged=True,
        )
        if not added.ok:
            raise LifecycleError(f"Cannot add iptables rule '{label}': {added.error}")
        report.added_rules.append(label)
        logger.info("Added iptables rule: %s", label)

    probe = compose.container_exec(
        settings.network.probe_container,
        ["ping", "-c", "1", settings.network.probe_address],
        timeout=30,
    )
    report.connectivity = probe.ok
    report.probe_output = probe.output or probe.error or ""
    if not probe.ok:
        raise LifecycleError(
            f"Container connectivity still failing: {settings.network.probe_container} "
            f"cannot reach {settings.network.probe_address} ({probe.error})"
        )
    return report
