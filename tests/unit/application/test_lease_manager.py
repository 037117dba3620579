"""Tests for the lease lifecycle manager."""

from __future__ import annotations

import asyncio
import uuid
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from lease_sdk.application.lease_manager import LeaseLifecycleManager
from lease_sdk.domain.enums import LeaseState
from lease_sdk.domain.exceptions import (
    AlreadyDeregisteredError,
    AlreadyRegisteredError,
    InvalidArgumentError,
    TransportError,
)
from lease_sdk.domain.models import PublicEndpoints
from lease_sdk.infrastructure.in_memory_registry_transport import InMemoryRegistryTransport


class GatedRegistry(InMemoryRegistryTransport):
    """In-memory registry whose create and renew block until released."""

    def __init__(self, ttl_seconds: float) -> None:
        super().__init__(ttl_seconds=ttl_seconds)
        self.create_started = asyncio.Event()
        self.create_gate = asyncio.Event()
        self.renew_started = asyncio.Event()
        self.renew_gate = asyncio.Event()
        self.gate_create = False
        self.gate_renew = False

    async def create(self, payload):
        if self.gate_create:
            self.create_started.set()
            await self.create_gate.wait()
        return await super().create(payload)

    async def renew(self, identifier):
        if self.gate_renew:
            self.renew_started.set()
            await self.renew_gate.wait()
        await super().renew(identifier)


def operations(transport: InMemoryRegistryTransport) -> list[str]:
    return [operation for operation, _ in transport.calls]


@pytest_asyncio.fixture
async def make_manager(transport, endpoint_provider, host_metrics, mock_logger):
    """Factory building managers that are shut down after the test."""
    managers: list[LeaseLifecycleManager] = []

    def factory(registry=None, **kwargs) -> LeaseLifecycleManager:
        manager = LeaseLifecycleManager(
            registry or transport,
            endpoint_provider,
            host_metrics,
            logger=mock_logger,
            **kwargs,
        )
        managers.append(manager)
        return manager

    yield factory

    for manager in managers:
        await manager.end()


@pytest_asyncio.fixture
async def manager(make_manager):
    """Create a manager with default service identity."""
    lease = make_manager(service_name="client-test", port=8000)
    yield lease
    await lease.end()


class TestRegister:
    """Test cases for registration."""

    @pytest.mark.asyncio
    async def test_register_activates_lease_and_sets_ttl(self, manager, transport):
        """TTL from the registry is stored in milliseconds."""
        assert manager.state == LeaseState.UNREGISTERED
        assert manager.ttl_millis is None

        registration = await manager.register()

        assert manager.state == LeaseState.ACTIVE
        assert manager.ttl_millis == 10000
        assert registration.ttl_millis == 10000
        assert operations(transport) == ["create"]

    @pytest.mark.asyncio
    async def test_register_returns_without_waiting_for_heartbeat(self, manager):
        """The heartbeat loop keeps running after register returns."""
        await manager.register()

        assert manager.is_heartbeat_running()

    @pytest.mark.asyncio
    async def test_register_sends_addresses_and_host_info(
        self, manager, transport, endpoint_provider
    ):
        """The payload carries full URLs, machine id and available memory."""
        endpoint_provider.endpoints = PublicEndpoints(ipv4="10.0.0.5", ipv6="fe80::5")

        await manager.register()

        record = transport.get(manager.identifier)
        assert record.service_type == "client-test"
        assert record.ipv4_address == "http://10.0.0.5:8000"
        assert record.ipv6_address == "http://[fe80::5]:8000"
        assert record.machine_id == "machine-1"
        assert record.available_memory == 4096

    @pytest.mark.asyncio
    async def test_register_without_public_interfaces(self, manager, transport, endpoint_provider):
        """Missing address families are sent as null."""
        endpoint_provider.endpoints = PublicEndpoints()

        await manager.register()

        record = transport.get(manager.identifier)
        assert record.ipv4_address is None
        assert record.ipv6_address is None

    @pytest.mark.asyncio
    async def test_register_generates_identifier(self, manager):
        """A UUID4 identifier is generated when none is supplied."""
        await manager.register()

        assert uuid.UUID(manager.identifier).version == 4

    @pytest.mark.asyncio
    async def test_call_time_arguments_override_defaults(self, make_manager, transport):
        """Arguments passed to register win over constructor defaults."""
        lease = make_manager(service_name="configured", port=8000, identifier="configured-id")

        await lease.register(
            identifier="call-id", port=9000, protocol="https://", service_name="override"
        )

        record = transport.get("call-id")
        assert lease.identifier == "call-id"
        assert record.service_type == "override"
        assert record.ipv4_address == "https://10.0.0.5:9000"
        await lease.end()

    @pytest.mark.asyncio
    async def test_register_without_port_fails(self, make_manager, transport):
        """A missing port is rejected before any transport call."""
        lease = make_manager(service_name="client-test")

        with pytest.raises(InvalidArgumentError) as exc_info:
            await lease.register()

        assert exc_info.value.argument == "port"
        assert transport.calls == []
        assert lease.state == LeaseState.UNREGISTERED

    @pytest.mark.asyncio
    async def test_register_without_service_name_fails(self, make_manager, transport):
        """A missing service name is rejected before any transport call."""
        lease = make_manager(port=8000)

        with pytest.raises(InvalidArgumentError) as exc_info:
            await lease.register()

        assert exc_info.value.argument == "service_name"
        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_register_with_negative_port_fails(self, make_manager):
        lease = make_manager(service_name="client-test")

        with pytest.raises(InvalidArgumentError):
            await lease.register(port=-1)

    @pytest.mark.asyncio
    async def test_register_failure_leaves_lease_unregistered(self, manager, transport):
        """A rejected registration starts no heartbeat and can be retried."""
        transport.fail_next("create")

        with pytest.raises(TransportError):
            await manager.register()

        assert manager.state == LeaseState.UNREGISTERED
        assert manager.ttl_millis is None
        assert not manager.is_heartbeat_running()

        await manager.register()
        assert manager.state == LeaseState.ACTIVE

    @pytest.mark.asyncio
    async def test_register_twice_fails(self, manager, transport):
        """An active lease cannot be registered again."""
        await manager.register()

        with pytest.raises(AlreadyRegisteredError):
            await manager.register()

        assert operations(transport) == ["create"]

    @pytest.mark.asyncio
    async def test_concurrent_register_fails(self, make_manager):
        """A second register while the first awaits the registry is rejected."""
        registry = GatedRegistry(ttl_seconds=10)
        registry.gate_create = True
        lease = make_manager(registry=registry, service_name="client-test", port=8000)

        first = asyncio.create_task(lease.register())
        await asyncio.wait_for(registry.create_started.wait(), timeout=1)

        with pytest.raises(AlreadyRegisteredError):
            await lease.register()

        registry.create_gate.set()
        await first
        assert lease.state == LeaseState.ACTIVE
        await lease.end()

    @pytest.mark.asyncio
    async def test_register_after_deregister_fails_without_transport_call(
        self, manager, transport
    ):
        """A deregistered lease is permanently rejected."""
        await manager.register()
        await manager.deregister()
        calls_before = list(transport.calls)

        with pytest.raises(AlreadyDeregisteredError):
            await manager.register()

        assert transport.calls == calls_before
        assert manager.state == LeaseState.DEREGISTERED


class TestHeartbeat:
    """Test cases for the heartbeat loop."""

    @pytest.mark.asyncio
    async def test_renews_every_half_ttl(self, manager, transport):
        """With a 0.4s TTL the first renewal happens at 0.2s."""
        transport.ttl_seconds = 0.4
        await manager.register()

        await asyncio.sleep(0.1)
        assert transport.renewal_count(manager.identifier) == 0

        await asyncio.sleep(0.2)
        assert transport.renewal_count(manager.identifier) == 1

    @pytest.mark.asyncio
    async def test_keeps_renewing(self, manager, transport):
        transport.ttl_seconds = 0.1
        await manager.register()

        await asyncio.sleep(0.4)

        assert transport.renewal_count(manager.identifier) >= 3
        assert manager.get_status()["renewals_sent"] >= 3

    @pytest.mark.asyncio
    async def test_failed_renewal_does_not_stop_loop(self, manager, transport, mock_logger):
        """Transport failures are logged and the next cycle still runs."""
        transport.ttl_seconds = 0.1
        transport.fail_next("renew", times=2)
        await manager.register()

        await asyncio.sleep(0.4)

        assert manager.is_heartbeat_running()
        assert transport.renewal_count(manager.identifier) >= 1
        assert mock_logger.warning.call_count >= 2
        assert manager.get_status()["renewal_failures"] == 2
        assert manager.get_status()["consecutive_failures"] == 0

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_stop_loop(self, manager, transport, mock_logger):
        """Errors outside the transport contract are logged, not raised."""
        transport.ttl_seconds = 0.1
        real_renew = transport.renew
        attempts = 0

        async def flaky_renew(identifier):
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise RuntimeError("boom")
            await real_renew(identifier)

        transport.renew = flaky_renew
        await manager.register()

        await asyncio.sleep(0.3)

        assert manager.is_heartbeat_running()
        mock_logger.exception.assert_called_once()
        assert transport.renewal_count(manager.identifier) >= 1

    @pytest.mark.asyncio
    async def test_renewals_never_overlap(self, make_manager):
        """At most one renewal is in flight at a time."""
        in_flight = 0
        max_in_flight = 0
        registry = InMemoryRegistryTransport(ttl_seconds=0.02)
        real_renew = registry.renew

        async def slow_renew(identifier):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0.05)
            await real_renew(identifier)
            in_flight -= 1

        registry.renew = slow_renew
        lease = make_manager(registry=registry, service_name="client-test", port=8000)
        await lease.register()

        await asyncio.sleep(0.3)
        await lease.deregister()

        assert registry.renewal_count(lease.identifier) >= 2
        assert max_in_flight == 1


class TestDeregister:
    """Test cases for deregistration."""

    @pytest.mark.asyncio
    async def test_deregister_removes_registration(self, manager, transport):
        await manager.register()

        await manager.deregister()

        assert manager.state == LeaseState.DEREGISTERED
        assert transport.get(manager.identifier) is None
        assert operations(transport) == ["create", "remove"]
        assert not manager.is_heartbeat_running()

    @pytest.mark.asyncio
    async def test_no_renewal_after_deregister_mid_sleep(self, manager, transport):
        """Deregistering while the loop sleeps prevents any further renewal."""
        transport.ttl_seconds = 0.2
        await manager.register()
        await asyncio.sleep(0.05)

        await manager.deregister()
        await asyncio.sleep(0.3)

        assert transport.renewal_count(manager.identifier) == 0
        assert "renew" not in operations(transport)

    @pytest.mark.asyncio
    async def test_end_during_registration_leaves_lease_to_expire(self, make_manager):
        """end() while create is pending neither renews nor removes the new lease."""
        registry = GatedRegistry(ttl_seconds=0.02)
        registry.gate_create = True
        lease = make_manager(registry=registry, service_name="client-test", port=8000)

        registering = asyncio.create_task(lease.register(identifier="late"))
        await asyncio.wait_for(registry.create_started.wait(), timeout=1)
        await lease.end()
        registry.create_gate.set()

        with pytest.raises(AlreadyDeregisteredError):
            await registering
        await asyncio.sleep(0.05)

        assert operations(registry) == ["create"]
        assert registry.get("late") is not None
        assert lease.state == LeaseState.DEREGISTERED
        assert not lease.is_heartbeat_running()


    @pytest.mark.asyncio
    async def test_renewal_count_stable_after_deregister(self, manager, transport):
        """Renewals seen before deregistration do not increase afterwards."""
        transport.ttl_seconds = 0.1
        await manager.register()
        await asyncio.sleep(0.12)
        assert transport.renewal_count(manager.identifier) >= 1

        await manager.deregister()
        renewals = operations(transport).count("renew")
        await asyncio.sleep(0.25)

        assert operations(transport).count("renew") == renewals

    @pytest.mark.asyncio
    async def test_in_flight_renewal_completes_before_removal(self, make_manager):
        """A renewal already sent finishes, then removal follows and nothing else."""
        registry = GatedRegistry(ttl_seconds=0.02)
        registry.gate_renew = True
        lease = make_manager(registry=registry, service_name="client-test", port=8000)
        await lease.register()
        await asyncio.wait_for(registry.renew_started.wait(), timeout=1)

        deregistering = asyncio.create_task(lease.deregister())
        await asyncio.sleep(0.05)
        assert not deregistering.done()

        registry.renew_gate.set()
        await deregistering
        await asyncio.sleep(0.05)

        assert operations(registry) == ["create", "renew", "remove"]

    @pytest.mark.asyncio
    async def test_deregister_is_idempotent(self, manager, transport):
        """A second deregister does not contact the registry again."""
        await manager.register()

        await manager.deregister()
        await manager.deregister()

        assert operations(transport).count("remove") == 1

    @pytest.mark.asyncio
    async def test_deregister_before_register(self, manager, transport):
        """Deregistering an unregistered lease needs no transport call."""
        await manager.deregister()

        assert manager.state == LeaseState.DEREGISTERED
        assert transport.calls == []
        with pytest.raises(AlreadyDeregisteredError):
            await manager.register()

    @pytest.mark.asyncio
    async def test_deregister_during_registration(self, make_manager):
        """A lease created after deregistration is removed and never renewed."""
        registry = GatedRegistry(ttl_seconds=0.02)
        registry.gate_create = True
        lease = make_manager(registry=registry, service_name="client-test", port=8000)

        registering = asyncio.create_task(lease.register(identifier="late"))
        await asyncio.wait_for(registry.create_started.wait(), timeout=1)
        await lease.deregister()
        registry.create_gate.set()

        with pytest.raises(AlreadyDeregisteredError):
            await registering
        await asyncio.sleep(0.05)

        assert operations(registry) == ["create", "remove"]
        assert registry.get("late") is None
        assert not lease.is_heartbeat_running()

    @pytest.mark.asyncio
    async def test_deregister_failure_propagates(self, manager, transport):
        """A rejected removal raises but the lease stays deregistered."""
        await manager.register()
        transport.fail_next("remove")

        with pytest.raises(TransportError):
            await manager.deregister()

        assert manager.state == LeaseState.DEREGISTERED
        assert not manager.is_heartbeat_running()


class TestEndAndPort:
    """Test cases for shutdown without deregistration and port changes."""

    @pytest.mark.asyncio
    async def test_end_stops_heartbeat_without_removal(self, manager, transport):
        transport.ttl_seconds = 0.1
        await manager.register()

        await manager.end()
        await asyncio.sleep(0.15)

        assert manager.state == LeaseState.DEREGISTERED
        assert transport.get(manager.identifier) is not None
        assert "remove" not in operations(transport)
        assert "renew" not in operations(transport)

    @pytest.mark.asyncio
    async def test_set_port_before_registration(self, make_manager, transport):
        lease = make_manager(service_name="client-test")

        lease.set_port(7000)
        await lease.register()

        assert transport.get(lease.identifier).ipv4_address == "http://10.0.0.5:7000"
        await lease.end()

    @pytest.mark.asyncio
    async def test_set_port_after_registration_is_ignored(self, manager, mock_logger):
        await manager.register()

        manager.set_port(9999)

        assert manager.registration.port == 8000
        assert manager.registration.ipv4_address == "http://10.0.0.5:8000"
        mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_set_port_rejects_invalid_port(self, make_manager):
        lease = make_manager(service_name="client-test")

        with pytest.raises(InvalidArgumentError):
            lease.set_port(0)

    @pytest.mark.asyncio
    async def test_status_reports_lease(self, manager):
        await manager.register()

        status = manager.get_status()

        assert status["state"] == "ACTIVE"
        assert status["ttl_ms"] == 10000
        assert status["heartbeat_running"] is True
        assert status["seconds_since_renewal"] is None


@pytest.mark.asyncio
async def test_default_logger_is_created(transport, endpoint_provider, host_metrics):
    """A SimpleLogger is used when no logger is given."""
    from lease_sdk.infrastructure.simple_logger import SimpleLogger

    lease = LeaseLifecycleManager(transport, endpoint_provider, host_metrics)

    assert isinstance(lease._logger, SimpleLogger)


@pytest.mark.asyncio
async def test_heartbeat_uses_transport_port(endpoint_provider, host_metrics, mock_logger):
    """Any RegistryTransportPort implementation drives the lifecycle."""
    registry = AsyncMock()
    registry.create.return_value.ttl_millis = 10000
    lease = LeaseLifecycleManager(
        registry,
        endpoint_provider,
        host_metrics,
        logger=mock_logger,
        service_name="client-test",
        port=8000,
    )

    await lease.register()
    await lease.deregister()

    registry.create.assert_awaited_once()
    registry.remove.assert_awaited_once_with(lease.identifier)
