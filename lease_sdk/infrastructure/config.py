"""Configuration objects for the registry client."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_BASE_PATH = "/rda-service-registry.service-instance"
DEFAULT_RESOLVE_TIMEOUT = 2.0
DEFAULT_REQUEST_TIMEOUT = 10.0


class RegistryClientConfig(BaseModel):
    """Strongly-typed configuration for a registry client.

    Identity fields (``identifier``, ``service_name``, ``port``, ``protocol``)
    are defaults; values passed to ``register()`` take precedence.
    """

    model_config = ConfigDict(
        extra="forbid",
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    # Registry location
    registry_host: str = Field(
        ...,
        min_length=1,
        description="Registry URL, e.g. http://registry:9000",
    )
    base_path: str = Field(
        default=DEFAULT_BASE_PATH,
        description="Path of the service-instance collection on the registry",
    )

    # Service identification
    identifier: str | None = Field(
        default=None,
        min_length=1,
        description="Instance identifier, a UUID4 is generated when absent",
    )
    service_name: str | None = Field(
        default=None,
        min_length=1,
        description="Service type to register as",
    )
    port: int | None = Field(
        default=None,
        gt=0,
        le=65535,
        description="Port this service listens on",
    )
    protocol: str = Field(
        default="http://",
        description="Scheme prefix of the advertised addresses",
    )

    # Timeouts
    resolve_timeout: float = Field(
        default=DEFAULT_RESOLVE_TIMEOUT,
        gt=0,
        description="Default deadline for resolution in seconds",
    )
    request_timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT,
        gt=0,
        description="Deadline for register, renew and remove requests in seconds",
    )

    @field_validator("registry_host")
    @classmethod
    def validate_registry_host(cls, v: str) -> str:
        """Validate the registry URL scheme."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Invalid registry host: {v}. Must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("base_path")
    @classmethod
    def validate_base_path(cls, v: str) -> str:
        """Ensure the base path is absolute and has no trailing slash."""
        if not v.startswith("/"):
            v = f"/{v}"
        return v.rstrip("/")

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        """Validate the protocol looks like a scheme prefix."""
        if not v.endswith("://"):
            raise ValueError(f"Invalid protocol: {v}. Expected a scheme prefix such as http://")
        return v

    @property
    def base_url(self) -> str:
        """Full URL of the service-instance collection."""
        return f"{self.registry_host}{self.base_path}"
