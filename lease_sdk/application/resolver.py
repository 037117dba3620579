"""Address resolution through the service registry."""

from __future__ import annotations

import secrets
from collections.abc import Callable, Sequence

from ..domain.enums import AddressFamily
from ..domain.exceptions import (
    InvalidArgumentError,
    NoAddressForFamilyError,
    ResolutionError,
    ServiceNotFoundError,
)
from ..domain.models import ResolvedInstance
from ..infrastructure.config import DEFAULT_RESOLVE_TIMEOUT
from ..ports.logger import LoggerPort
from ..ports.registry_transport import RegistryTransportPort

InstanceChooser = Callable[[Sequence[ResolvedInstance]], ResolvedInstance]


class ServiceResolver:
    """Stateless lookup of a peer address.

    Every call queries the registry and picks one instance uniformly at
    random. If the picked instance has no address for the requested family
    the call fails; it does not retry another instance.
    """

    def __init__(
        self,
        transport: RegistryTransportPort,
        default_timeout: float = DEFAULT_RESOLVE_TIMEOUT,
        logger: LoggerPort | None = None,
        chooser: InstanceChooser = secrets.choice,
    ):
        """Initialize the resolver.

        Args:
            transport: Registry transport used for queries
            default_timeout: Deadline in seconds when ``resolve`` gets none
            logger: Optional logger for debugging
            chooser: Picks one instance from a non-empty sequence
        """
        self._transport = transport
        self._default_timeout = default_timeout
        self._logger = logger
        self._choose = chooser

    async def resolve(
        self,
        service_name: str,
        family: AddressFamily | str = AddressFamily.IPV4,
        timeout: float | None = None,
    ) -> str:
        """Resolve the address of a random instance of a service.

        Args:
            service_name: Service type to look up
            family: "ipv4" or "ipv6"
            timeout: Deadline in seconds, defaults to the resolver's default

        Returns:
            The address exactly as the registry reported it

        Raises:
            ServiceNotFoundError: If no instance is registered
            NoAddressForFamilyError: If the picked instance lacks that family
            TimeoutError: If the registry did not answer in time
            TransportError: On any other registry failure
        """
        try:
            family = AddressFamily(family)
        except ValueError as e:
            raise InvalidArgumentError(
                "family", f"Invalid address family '{family}': expected ipv4 or ipv6"
            ) from e

        timeout = self._default_timeout if timeout is None else timeout
        if timeout <= 0:
            raise InvalidArgumentError("timeout", f"Invalid timeout {timeout}: must be positive")

        instances = await self._transport.query(service_name, timeout)

        try:
            if not instances:
                raise ServiceNotFoundError(service_name)

            selected = self._choose(instances)
            address = selected.address_for(family)
            if not address:
                raise NoAddressForFamilyError(service_name, family.value)
        except ResolutionError as e:
            if self._logger:
                self._logger.warning(
                    "Failed to resolve service address",
                    service=service_name,
                    family=family.value,
                    error=e.message,
                )
            raise

        if self._logger:
            self._logger.debug(
                "Resolved service address",
                service=service_name,
                family=family.value,
                candidates=len(instances),
                address=address,
            )
        return address
