"""In-memory implementation of the Registry Transport port.

This adapter keeps registrations in a dict and answers like a registry would,
for local development and testing without a registry server.
"""

from __future__ import annotations

import asyncio
import uuid

from ..domain.exceptions import TimeoutError as RegistryTimeoutError
from ..domain.exceptions import TransportError
from ..domain.models import RegistrationPayload, RegistrationResponse, ResolvedInstance
from ..ports.registry_transport import RegistryTransportPort


class InMemoryRegistryTransport(RegistryTransportPort):
    """In-memory registry for testing.

    Expiry is not simulated; records live until removed.
    """

    def __init__(self, ttl_seconds: float = 30, query_delay: float = 0.0) -> None:
        """Initialize the in-memory storage.

        Args:
            ttl_seconds: TTL handed out on every registration
            query_delay: Artificial latency of ``query`` in seconds
        """
        self.ttl_seconds = ttl_seconds
        self.query_delay = query_delay
        self._records: dict[str, RegistrationPayload] = {}
        self._pending_failures: dict[str, list[TransportError]] = {}
        self.renewals: dict[str, int] = {}
        self.calls: list[tuple[str, str | None]] = []

    def fail_next(
        self, operation: str, error: TransportError | None = None, times: int = 1
    ) -> None:
        """Make the next ``times`` calls of an operation raise ``error``."""
        failure = error or TransportError(
            f"Injected {operation} failure", operation=operation, status_code=500
        )
        self._pending_failures.setdefault(operation, []).extend([failure] * times)

    def _maybe_fail(self, operation: str) -> None:
        pending = self._pending_failures.get(operation)
        if pending:
            raise pending.pop(0)

    def add_instance(
        self,
        service_name: str,
        ipv4_address: str | None = None,
        ipv6_address: str | None = None,
        identifier: str | None = None,
    ) -> str:
        """Seed a registration directly (useful for testing resolution)."""
        identifier = identifier or str(uuid.uuid4())
        self._records[identifier] = RegistrationPayload(
            identifier=identifier,
            service_type=service_name,
            ipv4_address=ipv4_address,
            ipv6_address=ipv6_address,
        )
        return identifier

    def get(self, identifier: str) -> RegistrationPayload | None:
        """Get a stored registration."""
        return self._records.get(identifier)

    def renewal_count(self, identifier: str) -> int:
        """Number of successful renewals for an instance."""
        return self.renewals.get(identifier, 0)

    async def create(self, payload: RegistrationPayload) -> RegistrationResponse:
        self.calls.append(("create", payload.identifier))
        self._maybe_fail("create")
        self._records[payload.identifier] = payload
        self.renewals.setdefault(payload.identifier, 0)
        return RegistrationResponse(ttl=self.ttl_seconds)

    async def renew(self, identifier: str) -> None:
        self.calls.append(("renew", identifier))
        self._maybe_fail("renew")
        if identifier not in self._records:
            raise TransportError(
                f"Instance '{identifier}' is not registered", operation="renew", status_code=404
            )
        self.renewals[identifier] = self.renewals.get(identifier, 0) + 1

    async def remove(self, identifier: str) -> None:
        self.calls.append(("remove", identifier))
        self._maybe_fail("remove")
        if self._records.pop(identifier, None) is None:
            raise TransportError(
                f"Instance '{identifier}' is not registered", operation="remove", status_code=404
            )

    async def query(self, service_name: str, timeout: float) -> list[ResolvedInstance]:
        self.calls.append(("query", service_name))
        if self.query_delay:
            try:
                await asyncio.wait_for(asyncio.sleep(self.query_delay), timeout=timeout)
            except asyncio.TimeoutError as e:
                raise RegistryTimeoutError(
                    f"Registry query request timed out after {timeout}s", operation="query"
                ) from e
        self._maybe_fail("query")
        return [
            ResolvedInstance(
                ipv4_address=record.ipv4_address,
                ipv6_address=record.ipv6_address,
            )
            for record in self._records.values()
            if record.service_type == service_name
        ]

    def clear(self) -> None:
        """Clear all stored registrations (useful for testing)."""
        self._records.clear()
        self.renewals.clear()
        self.calls.clear()
