"""Pytest configuration and shared fixtures."""

from unittest.mock import Mock

import pytest

from lease_sdk.domain.models import PublicEndpoints
from lease_sdk.infrastructure.in_memory_registry_transport import InMemoryRegistryTransport
from lease_sdk.ports.host_info import EndpointProviderPort, HostMetricsPort


class StaticEndpointProvider(EndpointProviderPort):
    """Endpoint provider returning fixed addresses."""

    def __init__(self, ipv4: str | None = "10.0.0.5", ipv6: str | None = "fe80::5"):
        self.endpoints = PublicEndpoints(ipv4=ipv4, ipv6=ipv6)

    def discover_public_endpoints(self) -> PublicEndpoints:
        return self.endpoints


class StaticHostMetrics(HostMetricsPort):
    """Host metrics returning fixed values."""

    def machine_id(self) -> str:
        return "machine-1"

    def available_memory(self) -> int:
        return 4096


@pytest.fixture
def mock_logger():
    """Create a mock logger for testing."""
    mock = Mock()
    mock.info = Mock()
    mock.warning = Mock()
    mock.error = Mock()
    mock.debug = Mock()
    mock.exception = Mock()
    return mock


@pytest.fixture
def transport():
    """Create an in-memory registry handing out a 10 second TTL."""
    return InMemoryRegistryTransport(ttl_seconds=10)


@pytest.fixture
def endpoint_provider():
    return StaticEndpointProvider()


@pytest.fixture
def host_metrics():
    return StaticHostMetrics()
