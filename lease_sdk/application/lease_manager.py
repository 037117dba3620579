"""Lease lifecycle management: registration, heartbeat renewal, deregistration."""

from __future__ import annotations

import asyncio
import contextlib
import time
from typing import Any

from ..domain.enums import LeaseState
from ..domain.exceptions import (
    AlreadyDeregisteredError,
    AlreadyRegisteredError,
    InvalidArgumentError,
    TransportError,
)
from ..domain.models import ServiceRegistration, build_address
from ..ports.host_info import EndpointProviderPort, HostMetricsPort
from ..ports.logger import LoggerPort
from ..ports.registry_transport import RegistryTransportPort


class LeaseLifecycleManager:
    """Owns the single lease of a client and keeps it alive.

    State machine::

        UNREGISTERED --register()--> ACTIVE --deregister()/end()--> DEREGISTERED
        UNREGISTERED --deregister()/end()-----------------------> DEREGISTERED

    Once registered, a background task renews the lease every ``ttl / 2``.
    A failed renewal is logged and the next cycle is still scheduled, so one
    lost heartbeat does not evict the instance before the registry's deadline.
    """

    def __init__(
        self,
        transport: RegistryTransportPort,
        endpoint_provider: EndpointProviderPort,
        host_metrics: HostMetricsPort,
        logger: LoggerPort | None = None,
        identifier: str | None = None,
        service_name: str | None = None,
        port: int | None = None,
        protocol: str = "http://",
    ) -> None:
        """Initialize the lease manager.

        Args:
            transport: Registry transport used for create, renew and remove
            endpoint_provider: Source of the addresses advertised to peers
            host_metrics: Source of the machine id and available memory
            logger: Logger for lifecycle events
            identifier: Instance identifier, a UUID4 is generated when absent
            service_name: Default service type
            port: Default port the service listens on
            protocol: Default scheme prefix of advertised addresses
        """
        self._transport = transport
        self._endpoint_provider = endpoint_provider
        self._host_metrics = host_metrics
        self._logger = logger or self._create_default_logger()

        fields: dict[str, Any] = {"service_name": service_name, "port": port, "protocol": protocol}
        if identifier:
            fields["identifier"] = identifier
        self._registration = ServiceRegistration(**fields)

        self._registering = False
        self._removal_requested = False
        self._heartbeat_task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._renewals_sent = 0
        self._renewal_failures = 0
        self._consecutive_failures = 0
        self._last_renewal: float | None = None

    def _create_default_logger(self) -> LoggerPort:
        """Create a default logger if none provided."""
        from ..infrastructure.simple_logger import SimpleLogger

        return SimpleLogger()

    @property
    def state(self) -> LeaseState:
        """Current lease state."""
        return self._registration.state

    @property
    def identifier(self) -> str:
        """Instance identifier used with the registry."""
        return self._registration.identifier

    @property
    def ttl_millis(self) -> int | None:
        """Lease TTL in milliseconds, ``None`` until registered."""
        return self._registration.ttl_millis

    @property
    def registration(self) -> ServiceRegistration:
        """Snapshot of the lease state."""
        return self._registration.model_copy()

    def is_heartbeat_running(self) -> bool:
        """Check if the renewal task is alive."""
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    def set_port(self, port: int) -> None:
        """Set the port advertised at registration.

        Has no effect once registration started, the addresses are already
        captured by then.
        """
        if port <= 0:
            raise InvalidArgumentError("port", f"Invalid port {port}: must be greater than 0")
        if self._registering or self.state != LeaseState.UNREGISTERED:
            self._logger.warning(
                "Ignoring port change after registration",
                identifier=self.identifier,
                state=self.state.value,
                port=port,
            )
            return
        self._registration.port = port

    async def register(
        self,
        identifier: str | None = None,
        port: int | None = None,
        protocol: str | None = None,
        service_name: str | None = None,
    ) -> ServiceRegistration:
        """Register with the registry and start the heartbeat loop.

        Arguments override the defaults given at construction. Returns as
        soon as the registry accepted the lease; the heartbeat loop runs in
        the background.

        Raises:
            AlreadyDeregisteredError: If the lease was deregistered before
            AlreadyRegisteredError: If a registration is active or in progress
            InvalidArgumentError: If the port or service name is missing
            TransportError: If the registry rejected the registration
        """
        current = self._registration
        if current.is_deregistered():
            raise AlreadyDeregisteredError(current.identifier)
        if self._registering or current.is_active():
            raise AlreadyRegisteredError(current.identifier)

        port = port or current.port
        service_name = service_name or current.service_name
        protocol = protocol or current.protocol

        if not port:
            raise InvalidArgumentError("port")
        if port <= 0:
            raise InvalidArgumentError("port", f"Invalid port {port}: must be greater than 0")
        if not service_name:
            raise InvalidArgumentError("service_name")

        self._registering = True
        try:
            endpoints = self._endpoint_provider.discover_public_endpoints()
            candidate = current.model_copy(
                update={
                    "identifier": identifier or current.identifier,
                    "service_name": service_name,
                    "port": port,
                    "protocol": protocol,
                    "ipv4_address": (
                        build_address(protocol, endpoints.ipv4, port) if endpoints.ipv4 else None
                    ),
                    "ipv6_address": (
                        build_address(protocol, endpoints.ipv6, port) if endpoints.ipv6 else None
                    ),
                    "machine_id": self._host_metrics.machine_id(),
                    "available_memory": self._host_metrics.available_memory(),
                }
            )

            response = await self._transport.create(candidate.to_payload())

            if self._registration.is_deregistered():
                # deregister() or end() ran while the registry was creating the lease
                self._registration = candidate.model_copy(
                    update={"state": LeaseState.DEREGISTERED}
                )
                if self._removal_requested:
                    await self._transport.remove(candidate.identifier)
                raise AlreadyDeregisteredError(candidate.identifier)

            self._registration = candidate.model_copy(
                update={"ttl_millis": response.ttl_millis, "state": LeaseState.ACTIVE}
            )
        finally:
            self._registering = False

        self._logger.info(
            "Service registered",
            identifier=self.identifier,
            service=service_name,
            ttl_ms=self.ttl_millis,
            ipv4=self._registration.ipv4_address,
            ipv6=self._registration.ipv6_address,
        )

        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(), name=f"lease-heartbeat-{self.identifier}"
        )
        return self.registration

    async def deregister(self) -> None:
        """Remove the registration and stop renewing it.

        Idempotent: calls after the first are no-ops. A renewal already in
        flight completes before the removal request is sent.

        Raises:
            TransportError: If the registry rejected the removal
        """
        if self._registration.is_deregistered():
            self._logger.debug("Already deregistered", identifier=self.identifier)
            return

        was_active = self._registration.is_active()
        self._removal_requested = True
        self._registration.state = LeaseState.DEREGISTERED
        await self._stop_heartbeat()

        if not was_active:
            self._logger.info(
                "Deregistered before registration completed", identifier=self.identifier
            )
            return

        await self._transport.remove(self.identifier)
        self._logger.info("Service deregistered", identifier=self.identifier)

    async def end(self) -> None:
        """Stop renewing without removing the registration.

        The registry drops the lease once its TTL elapses. The lease cannot
        be registered again afterwards.
        """
        if not self._registration.is_deregistered():
            self._registration.state = LeaseState.DEREGISTERED
        await self._stop_heartbeat()

    async def _stop_heartbeat(self) -> None:
        """Wake the heartbeat task and wait for it to exit."""
        self._stop_event.set()
        if self._heartbeat_task and not self._heartbeat_task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await self._heartbeat_task
        self._heartbeat_task = None

    async def _heartbeat_loop(self) -> None:
        """Renew the lease every half TTL until deregistered."""
        interval = self._registration.heartbeat_interval
        while True:
            if await self._wait_for_stop(interval):
                break
            # deregistration may have happened while sleeping
            if self._registration.is_deregistered():
                break
            await self._renew_once()
            # next cycle starts on a fresh scheduling turn
            await asyncio.sleep(0)

        self._logger.debug("Heartbeat loop stopped", identifier=self.identifier)

    async def _wait_for_stop(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, returning early if stop is requested."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=timeout)
        except TimeoutError:
            return False
        return True

    async def _renew_once(self) -> None:
        """Send one renewal, logging instead of raising on failure."""
        try:
            await self._transport.renew(self.identifier)
        except TransportError as e:
            self._record_failure()
            self._logger.warning(
                "Heartbeat failed",
                identifier=self.identifier,
                error=str(e),
                consecutive_failures=self._consecutive_failures,
            )
        except Exception as e:
            self._record_failure()
            self._logger.exception(
                "Unexpected error while sending heartbeat",
                exc_info=e,
                identifier=self.identifier,
            )
        else:
            self._renewals_sent += 1
            self._consecutive_failures = 0
            self._last_renewal = time.monotonic()
            self._logger.debug("Heartbeat sent", identifier=self.identifier)

    def _record_failure(self) -> None:
        self._renewal_failures += 1
        self._consecutive_failures += 1

    def get_status(self) -> dict[str, Any]:
        """Get current lease status.

        Returns:
            Dictionary with lease and heartbeat information
        """
        return {
            "identifier": self.identifier,
            "service": self._registration.service_name,
            "state": self.state.value,
            "ttl_ms": self.ttl_millis,
            "heartbeat_running": self.is_heartbeat_running(),
            "renewals_sent": self._renewals_sent,
            "renewal_failures": self._renewal_failures,
            "consecutive_failures": self._consecutive_failures,
            "seconds_since_renewal": (
                time.monotonic() - self._last_renewal if self._last_renewal is not None else None
            ),
        }
