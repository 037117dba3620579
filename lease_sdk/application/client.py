"""Service registry client facade combining lease management and resolution."""

from __future__ import annotations

from typing import Any

from ..domain.enums import AddressFamily, LeaseState
from ..domain.models import ServiceRegistration
from ..infrastructure.config import RegistryClientConfig
from ..infrastructure.httpx_registry_transport import HttpxRegistryTransport
from ..infrastructure.psutil_host_info import PsutilEndpointProvider, PsutilHostMetrics
from ..ports.host_info import EndpointProviderPort, HostMetricsPort
from ..ports.logger import LoggerPort
from ..ports.registry_transport import RegistryTransportPort
from .lease_manager import LeaseLifecycleManager
from .resolver import ServiceResolver


class ServiceRegistryClient:
    """Client for announcing this instance to a registry and finding peers.

    Usage::

        config = RegistryClientConfig(registry_host="http://registry:9000")
        async with ServiceRegistryClient(config) as client:
            await client.register(service_name="users", port=8000)
            address = await client.resolve("timelines")
            ...
            await client.deregister()

    Identity values given to ``register()`` take precedence over the ones in
    the configuration.
    """

    def __init__(
        self,
        config: RegistryClientConfig,
        transport: RegistryTransportPort | None = None,
        endpoint_provider: EndpointProviderPort | None = None,
        host_metrics: HostMetricsPort | None = None,
        logger: LoggerPort | None = None,
    ):
        """Initialize the client.

        Args:
            config: Registry location, identity defaults and timeouts
            transport: Registry transport, an HTTP transport is built from
                the config when omitted and closed by ``end()``
            endpoint_provider: Source of advertised addresses, psutil by default
            host_metrics: Source of machine id and memory, psutil by default
            logger: Logger shared by all components
        """
        self._config = config
        self._owns_transport = transport is None
        self._transport = transport or HttpxRegistryTransport.from_config(config, logger=logger)
        self._lease = LeaseLifecycleManager(
            self._transport,
            endpoint_provider or PsutilEndpointProvider(),
            host_metrics or PsutilHostMetrics(),
            logger=logger,
            identifier=config.identifier,
            service_name=config.service_name,
            port=config.port,
            protocol=config.protocol,
        )
        self._resolver = ServiceResolver(
            self._transport,
            default_timeout=config.resolve_timeout,
            logger=logger,
        )

    @classmethod
    def from_url(cls, registry_host: str, **kwargs: Any) -> ServiceRegistryClient:
        """Create a client from a registry URL and config fields."""
        return cls(RegistryClientConfig(registry_host=registry_host, **kwargs))

    @property
    def config(self) -> RegistryClientConfig:
        return self._config

    @property
    def state(self) -> LeaseState:
        return self._lease.state

    @property
    def identifier(self) -> str:
        return self._lease.identifier

    @property
    def ttl_millis(self) -> int | None:
        return self._lease.ttl_millis

    @property
    def registration(self) -> ServiceRegistration:
        return self._lease.registration

    def set_port(self, port: int) -> None:
        """Set the port to advertise, only before registering."""
        self._lease.set_port(port)

    async def register(
        self,
        identifier: str | None = None,
        port: int | None = None,
        protocol: str | None = None,
        service_name: str | None = None,
    ) -> ServiceRegistration:
        """Register this instance and keep the lease alive in the background."""
        return await self._lease.register(
            identifier=identifier,
            port=port,
            protocol=protocol,
            service_name=service_name,
        )

    async def deregister(self) -> None:
        """Remove the registration and stop the heartbeat."""
        await self._lease.deregister()

    async def resolve(
        self,
        service_name: str,
        family: AddressFamily | str = AddressFamily.IPV4,
        timeout: float | None = None,
    ) -> str:
        """Resolve the address of a random instance of a service."""
        return await self._resolver.resolve(service_name, family=family, timeout=timeout)

    def get_status(self) -> dict[str, Any]:
        """Get current lease status."""
        return self._lease.get_status()

    async def end(self) -> None:
        """Shut the client down without deregistering.

        The heartbeat stops and the registry expires the lease after its TTL.
        """
        await self._lease.end()
        if self._owns_transport:
            await self._transport.close()

    close = end

    async def __aenter__(self) -> ServiceRegistryClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.end()
