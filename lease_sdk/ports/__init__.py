"""Ports layer - Interfaces for external communication."""

from .host_info import EndpointProviderPort, HostMetricsPort
from .logger import LoggerPort
from .registry_transport import RegistryTransportPort

__all__ = [
    "EndpointProviderPort",
    "HostMetricsPort",
    "LoggerPort",
    "RegistryTransportPort",
]
