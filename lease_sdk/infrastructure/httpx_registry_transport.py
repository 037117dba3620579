"""HTTP implementation of the Registry Transport port using httpx."""

from __future__ import annotations

import asyncio
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter

from ..domain.exceptions import TimeoutError as RegistryTimeoutError
from ..domain.exceptions import TransportError
from ..domain.models import RegistrationPayload, RegistrationResponse, ResolvedInstance
from ..ports.logger import LoggerPort
from ..ports.registry_transport import RegistryTransportPort
from .config import DEFAULT_REQUEST_TIMEOUT, RegistryClientConfig

_INSTANCE_LIST = TypeAdapter(list[ResolvedInstance])


class HttpxRegistryTransport(RegistryTransportPort):
    """Registry transport speaking JSON over HTTP.

    Endpoints, relative to the service-instance collection URL:

    - ``POST /`` registers and expects 201 with ``{"ttl": seconds}``
    - ``PATCH /{identifier}`` renews and expects 200
    - ``DELETE /{identifier}`` removes and expects 200
    - ``GET /?serviceType=name`` lists instances and expects 200
    """

    def __init__(
        self,
        base_url: str,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: httpx.AsyncClient | None = None,
        logger: LoggerPort | None = None,
    ):
        """Initialize the transport.

        Args:
            base_url: URL of the service-instance collection
            request_timeout: Deadline for create, renew and remove in seconds
            client: Optional shared client, the transport only closes clients it created
            logger: Optional logger for debugging
        """
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=request_timeout)
        self._logger = logger

    @classmethod
    def from_config(
        cls,
        config: RegistryClientConfig,
        client: httpx.AsyncClient | None = None,
        logger: LoggerPort | None = None,
    ) -> HttpxRegistryTransport:
        """Create a transport from client configuration."""
        return cls(
            config.base_url,
            request_timeout=config.request_timeout,
            client=client,
            logger=logger,
        )

    @property
    def base_url(self) -> str:
        """URL of the service-instance collection."""
        return self._base_url

    def _instance_url(self, identifier: str) -> str:
        return f"{self._base_url}/{quote(identifier, safe='')}"

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        expected_status: int,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request and validate its status code."""
        deadline = timeout if timeout is not None else self._request_timeout
        try:
            response = await asyncio.wait_for(
                self._client.request(method, url, timeout=deadline, **kwargs),
                timeout=deadline,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RegistryTimeoutError(
                f"Registry {operation} request timed out after {deadline}s",
                operation=operation,
                url=url,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(
                f"Registry {operation} request failed: {e}",
                operation=operation,
                url=url,
            ) from e
        except (httpx.InvalidURL, RuntimeError) as e:
            # Closed client or a URL httpx cannot send to
            raise TransportError(
                f"Registry {operation} request could not be sent: {e}",
                operation=operation,
                url=url,
            ) from e

        if response.status_code != expected_status:
            raise TransportError(
                f"Registry {operation} request returned status {response.status_code}, "
                f"expected {expected_status}",
                operation=operation,
                status_code=response.status_code,
                url=url,
            )

        if self._logger:
            self._logger.debug(
                "Registry request succeeded",
                operation=operation,
                method=method,
                url=url,
                status=response.status_code,
            )
        return response

    async def create(self, payload: RegistrationPayload) -> RegistrationResponse:
        """Register a service instance."""
        response = await self._request(
            "create", "POST", self._base_url, 201, json=payload.to_wire()
        )
        try:
            return RegistrationResponse.model_validate(response.json())
        except ValueError as e:
            raise TransportError(
                f"Registry create response is malformed: {e}",
                operation="create",
                status_code=response.status_code,
                url=self._base_url,
            ) from e

    async def renew(self, identifier: str) -> None:
        """Renew the lease of a registered instance."""
        await self._request("renew", "PATCH", self._instance_url(identifier), 200)

    async def remove(self, identifier: str) -> None:
        """Remove a registered instance."""
        await self._request("remove", "DELETE", self._instance_url(identifier), 200)

    async def query(self, service_name: str, timeout: float) -> list[ResolvedInstance]:
        """List the registered instances of a service."""
        response = await self._request(
            "query",
            "GET",
            self._base_url,
            200,
            timeout=timeout,
            params={"serviceType": service_name},
        )
        try:
            return _INSTANCE_LIST.validate_python(response.json())
        except ValueError as e:
            raise TransportError(
                f"Registry query response is malformed: {e}",
                operation="query",
                status_code=response.status_code,
                url=self._base_url,
            ) from e

    async def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxRegistryTransport:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
