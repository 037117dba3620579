"""Domain models using Pydantic for validation."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import AddressFamily, LeaseState


def build_address(protocol: str, host: str, port: int) -> str:
    """Build the URL a peer should dial, e.g. ``http://10.0.0.1:8000``.

    IPv6 hosts are bracketed so the result stays a valid URL.
    """
    if ":" in host and not host.startswith("["):
        host = f"[{host}]"
    return f"{protocol}{host}:{port}"


class PublicEndpoints(BaseModel):
    """First non-internal address per family found on the local host."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    ipv4: str | None = Field(default=None, description="First public IPv4 address")
    ipv6: str | None = Field(default=None, description="First public IPv6 address")

    def get(self, family: AddressFamily) -> str | None:
        """Get the address for a family."""
        return self.ipv4 if family == AddressFamily.IPV4 else self.ipv6


class ServiceRegistration(BaseModel):
    """State of the single lease owned by a client instance.

    Only the lease manager mutates this model. ``ttl_millis`` is meaningful
    once ``state`` is ACTIVE.
    """

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    identifier: str = Field(default_factory=lambda: str(uuid.uuid4()), min_length=1)
    service_name: str | None = Field(default=None, description="Logical service type")
    port: int | None = Field(default=None, gt=0, description="Port the service listens on")
    protocol: str = Field(default="http://", min_length=1, description="Scheme prefix")
    ipv4_address: str | None = Field(default=None)
    ipv6_address: str | None = Field(default=None)
    machine_id: str | None = Field(default=None)
    available_memory: int | None = Field(default=None, ge=0)
    ttl_millis: int | None = Field(default=None, gt=0)
    state: LeaseState = Field(default=LeaseState.UNREGISTERED)

    def is_active(self) -> bool:
        """Check if the lease is currently active."""
        return self.state == LeaseState.ACTIVE

    def is_deregistered(self) -> bool:
        """Check if the lease reached its terminal state."""
        return self.state == LeaseState.DEREGISTERED

    @property
    def heartbeat_interval(self) -> float:
        """Seconds between renewals: half the TTL."""
        if self.ttl_millis is None:
            raise ValueError("TTL is not known before registration succeeds")
        return self.ttl_millis / 2 / 1000

    def to_payload(self) -> RegistrationPayload:
        """Build the registry request body for this registration."""
        return RegistrationPayload(
            identifier=self.identifier,
            service_type=self.service_name,
            ipv4_address=self.ipv4_address,
            ipv6_address=self.ipv6_address,
            machine_id=self.machine_id,
            available_memory=self.available_memory,
        )


class RegistrationPayload(BaseModel):
    """Body of the registration request, serialized with wire aliases."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    identifier: str = Field(..., min_length=1)
    service_type: str = Field(..., min_length=1, alias="serviceType")
    ipv4_address: str | None = Field(default=None, alias="ipv4address")
    ipv6_address: str | None = Field(default=None, alias="ipv6address")
    machine_id: str | None = Field(default=None, alias="machineId")
    available_memory: int | None = Field(default=None, alias="availableMemory")

    def to_wire(self) -> dict[str, Any]:
        """Serialize using the registry's field names."""
        return self.model_dump(by_alias=True)


class RegistrationResponse(BaseModel):
    """Registry answer to a successful registration."""

    model_config = ConfigDict(extra="ignore")

    ttl: float = Field(..., gt=0, description="Lease time-to-live in seconds")

    @field_validator("ttl")
    @classmethod
    def at_least_one_millisecond(cls, v: float) -> float:
        """Reject TTLs that would round to a zero heartbeat interval."""
        if round(v * 1000) < 1:
            raise ValueError(f"TTL {v}s is shorter than one millisecond")
        return v

    @property
    def ttl_millis(self) -> int:
        """TTL converted to milliseconds."""
        return round(self.ttl * 1000)


class ResolvedInstance(BaseModel):
    """An instance returned by a registry query."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    ipv4_address: str | None = Field(default=None, alias="ipv4address")
    ipv6_address: str | None = Field(default=None, alias="ipv6address")

    @field_validator("ipv4_address", "ipv6_address", mode="before")
    @classmethod
    def empty_as_missing(cls, v: Any) -> Any:
        """Treat empty strings the same as a missing address."""
        if v == "":
            return None
        return v

    def address_for(self, family: AddressFamily) -> str | None:
        """Get the address registered for a family."""
        return self.ipv4_address if family == AddressFamily.IPV4 else self.ipv6_address
