"""Domain enums for type safety and consistency.

This module centralizes the enumeration types used across the SDK,
ensuring type safety and preventing string literal errors.
"""

from enum import Enum


class LeaseState(str, Enum):
    """Lease lifecycle state enumeration.

    A lease moves forward only: UNREGISTERED -> ACTIVE -> DEREGISTERED.
    DEREGISTERED is terminal.
    """

    UNREGISTERED = "UNREGISTERED"  # No registration accepted yet
    ACTIVE = "ACTIVE"  # Registered, heartbeats are being sent
    DEREGISTERED = "DEREGISTERED"  # Removed, the client must be discarded

    def is_terminal(self) -> bool:
        """Check whether no further transitions are possible."""
        return self == LeaseState.DEREGISTERED


class AddressFamily(str, Enum):
    """IP address family of a registered instance address."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"
