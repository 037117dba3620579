"""Registry Transport port - Interface for talking to the service registry."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..domain.models import RegistrationPayload, RegistrationResponse, ResolvedInstance


class RegistryTransportPort(ABC):
    """Abstract interface for registry requests.

    Every network failure, unexpected status and malformed body must surface
    as ``TransportError``; deadline overruns as its ``TimeoutError`` subtype.
    """

    @abstractmethod
    async def create(self, payload: RegistrationPayload) -> RegistrationResponse:
        """Register a service instance.

        Args:
            payload: Registration request body

        Returns:
            The registry response carrying the lease TTL in seconds

        Raises:
            TransportError: If the registry does not answer with 201
        """
        ...

    @abstractmethod
    async def renew(self, identifier: str) -> None:
        """Renew the lease of a registered instance.

        Args:
            identifier: Instance identifier

        Raises:
            TransportError: If the registry does not answer with 200
        """
        ...

    @abstractmethod
    async def remove(self, identifier: str) -> None:
        """Remove a registered instance.

        Args:
            identifier: Instance identifier

        Raises:
            TransportError: If the registry does not answer with 200
        """
        ...

    @abstractmethod
    async def query(self, service_name: str, timeout: float) -> list[ResolvedInstance]:
        """List the registered instances of a service.

        Args:
            service_name: Service type to look up
            timeout: Deadline for the whole request in seconds

        Returns:
            Instances as reported by the registry, possibly empty

        Raises:
            TimeoutError: If the deadline is exceeded
            TransportError: On any other failure
        """
        ...

    async def close(self) -> None:
        """Release network resources held by the transport."""
        return None
