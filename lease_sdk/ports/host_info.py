"""Host information ports - local endpoints and capacity metrics."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..domain.models import PublicEndpoints


class EndpointProviderPort(ABC):
    """Discovers the addresses other hosts can use to reach this one."""

    @abstractmethod
    def discover_public_endpoints(self) -> PublicEndpoints:
        """Return the first non-internal IPv4 and IPv6 address.

        A missing family is reported as ``None``, never as an error.
        """
        ...


class HostMetricsPort(ABC):
    """Host identity and capacity hints reported at registration."""

    @abstractmethod
    def machine_id(self) -> str:
        """Stable identifier of the physical or virtual host."""
        ...

    @abstractmethod
    def available_memory(self) -> int:
        """Currently available memory in bytes."""
        ...
