"""Infrastructure layer - Concrete implementations of ports."""

from .config import RegistryClientConfig
from .httpx_registry_transport import HttpxRegistryTransport
from .in_memory_registry_transport import InMemoryRegistryTransport
from .psutil_host_info import PsutilEndpointProvider, PsutilHostMetrics
from .simple_logger import SimpleLogger

__all__ = [
    "HttpxRegistryTransport",
    "InMemoryRegistryTransport",
    "PsutilEndpointProvider",
    "PsutilHostMetrics",
    "RegistryClientConfig",
    "SimpleLogger",
]
