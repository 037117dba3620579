"""Domain-specific exceptions for the lease client."""


class LeaseSdkError(Exception):
    """Base exception for all lease SDK errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InvalidArgumentError(LeaseSdkError):
    """Raised when a required registration argument is missing or invalid."""

    def __init__(self, argument: str, message: str | None = None):
        super().__init__(
            message or f"Cannot register service: the '{argument}' argument was not provided",
            details={"argument": argument},
        )
        self.argument = argument


class LeaseStateError(LeaseSdkError):
    """Lease state machine violations."""

    pass


class AlreadyDeregisteredError(LeaseStateError):
    """Raised when registering a client that was already deregistered."""

    def __init__(self, identifier: str | None = None):
        super().__init__(
            "Cannot register service, it was de-registered and cannot be registered anymore",
            details={"identifier": identifier} if identifier else None,
        )
        self.identifier = identifier


class AlreadyRegisteredError(LeaseStateError):
    """Raised when registering while a registration is active or in progress."""

    def __init__(self, identifier: str | None = None):
        super().__init__(
            "Cannot register service, a registration is already active or in progress",
            details={"identifier": identifier} if identifier else None,
        )
        self.identifier = identifier


class TransportError(LeaseSdkError):
    """Registry communication errors."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        url: str | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.status_code = status_code
        self.url = url
        if operation:
            self.details["operation"] = operation
        if status_code is not None:
            self.details["status_code"] = status_code
        if url:
            self.details["url"] = url


class TimeoutError(TransportError):
    """Registry request exceeded its deadline."""

    pass


class ResolutionError(LeaseSdkError):
    """Base exception for address resolution errors."""

    def __init__(self, message: str, service_name: str | None = None):
        super().__init__(message)
        self.service_name = service_name
        if service_name:
            self.details["service_name"] = service_name


class ServiceNotFoundError(ResolutionError):
    """Raised when the registry knows no instance of a service."""

    def __init__(self, service_name: str):
        super().__init__(
            f"Failed to resolve address for service '{service_name}': service not found",
            service_name=service_name,
        )


class NoAddressForFamilyError(ResolutionError):
    """Raised when the selected instance has no address of the requested family."""

    def __init__(self, service_name: str, family: str):
        super().__init__(
            f"Failed to resolve address for service '{service_name}': "
            f"the service has no {family.upper().replace('IPV', 'IPv')} address registered",
            service_name=service_name,
        )
        self.family = family
        self.details["family"] = family
