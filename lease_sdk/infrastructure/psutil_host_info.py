"""psutil-backed implementations of the host information ports."""

from __future__ import annotations

import hashlib
import ipaddress
import socket
import uuid
from pathlib import Path
from typing import Any

import psutil

from ..domain.models import PublicEndpoints
from ..ports.host_info import EndpointProviderPort, HostMetricsPort

MACHINE_ID_PATHS = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))


def _is_internal(address: str) -> bool:
    """Loopback addresses are internal."""
    try:
        return ipaddress.ip_address(address).is_loopback
    except ValueError:
        return False


def _is_loopback_interface(name: str, stats: Any | None) -> bool:
    """Match loopback interfaces by flag or by name (lo, lo0, Loopback Pseudo-Interface 1)."""
    if stats is not None and "loopback" in stats.flags.split(","):
        return True
    lowered = name.lower()
    return lowered.startswith("loopback") or lowered.rstrip("0123456789") == "lo"


class PsutilEndpointProvider(EndpointProviderPort):
    """Finds public endpoints by enumerating network interfaces.

    Interfaces are visited in the order the OS reports them. Interfaces that
    are down or are loopback interfaces are skipped, as are loopback
    addresses; the first remaining address per family wins.
    """

    def discover_public_endpoints(self) -> PublicEndpoints:
        found: dict[str, str] = {}
        interface_stats = psutil.net_if_stats()

        for name, addresses in psutil.net_if_addrs().items():
            stats = interface_stats.get(name)
            if stats is not None and not stats.isup:
                continue
            if _is_loopback_interface(name, stats):
                continue

            for nic_address in addresses:
                if nic_address.family == socket.AF_INET:
                    family = "ipv4"
                elif nic_address.family == socket.AF_INET6:
                    family = "ipv6"
                else:
                    continue

                # Drop IPv6 zone suffixes such as fe80::1%eth0
                address = nic_address.address.split("%", 1)[0]
                if family in found or _is_internal(address):
                    continue
                found[family] = address

        return PublicEndpoints(ipv4=found.get("ipv4"), ipv6=found.get("ipv6"))


class PsutilHostMetrics(HostMetricsPort):
    """Host identity from the OS machine-id, memory figures from psutil."""

    def __init__(self, machine_id_paths: tuple[Path, ...] = MACHINE_ID_PATHS) -> None:
        self._machine_id_paths = machine_id_paths
        self._machine_id: str | None = None

    def machine_id(self) -> str:
        if self._machine_id is None:
            self._machine_id = self._read_machine_id()
        return self._machine_id

    def _read_machine_id(self) -> str:
        for path in self._machine_id_paths:
            try:
                value = path.read_text().strip()
            except OSError:
                continue
            if value:
                return value
        # No machine-id on this OS, derive one from the hardware address
        return hashlib.sha256(str(uuid.getnode()).encode()).hexdigest()

    def available_memory(self) -> int:
        return int(psutil.virtual_memory().available)
