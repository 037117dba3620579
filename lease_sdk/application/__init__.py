"""Application layer - lease lifecycle, resolution and the client facade."""

from .client import ServiceRegistryClient
from .lease_manager import LeaseLifecycleManager
from .resolver import ServiceResolver

__all__ = ["LeaseLifecycleManager", "ServiceRegistryClient", "ServiceResolver"]
