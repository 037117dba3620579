"""lease_sdk - Client for registering with and resolving through a service registry."""

from .application.client import ServiceRegistryClient
from .domain.enums import AddressFamily, LeaseState
from .infrastructure.config import RegistryClientConfig

__all__ = ["AddressFamily", "LeaseState", "RegistryClientConfig", "ServiceRegistryClient"]
__version__ = "0.1.0"
