"""Domain layer - models, enums and exceptions of the lease client."""

from .enums import AddressFamily, LeaseState
from .exceptions import (
    AlreadyDeregisteredError,
    AlreadyRegisteredError,
    InvalidArgumentError,
    LeaseSdkError,
    LeaseStateError,
    NoAddressForFamilyError,
    ResolutionError,
    ServiceNotFoundError,
    TimeoutError,
    TransportError,
)
from .models import (
    PublicEndpoints,
    RegistrationPayload,
    RegistrationResponse,
    ResolvedInstance,
    ServiceRegistration,
    build_address,
)

__all__ = [
    "AddressFamily",
    "AlreadyDeregisteredError",
    "AlreadyRegisteredError",
    "InvalidArgumentError",
    "LeaseSdkError",
    "LeaseState",
    "LeaseStateError",
    "NoAddressForFamilyError",
    "PublicEndpoints",
    "RegistrationPayload",
    "RegistrationResponse",
    "ResolutionError",
    "ResolvedInstance",
    "ServiceNotFoundError",
    "ServiceRegistration",
    "TimeoutError",
    "TransportError",
    "build_address",
]
