"""
Provisioning errors

Every failure is fatal to the operation that raised it; messages are meant
to be shown to the operator verbatim.
"""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning failures."""
    pass


class ServerUnavailableError(ProvisioningError):
    """Raised when the platform did not become ready before the deadline."""
    
    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Server is unavailable: {url} not ready after {timeout:g}s")


class NonceNotFoundError(ProvisioningError):
    """Raised when a page does not carry the expected anti-forgery token."""
    
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Unable to find nonce in page {url}")


class HTTPError(ProvisioningError):
    """Raised on a non-2xx application response."""
    
    def __init__(self, url: str, status: int):
        self.url = url
        self.status = status
        super().__init__(f"Unexpected status code {status} from {url}")


class TransportError(ProvisioningError):
    """
    Raised on a network-level failure (refused, DNS, timeout).

    transient is False for client-side failures that another attempt cannot
    fix (redirect loops, malformed URLs or payloads).
    """

    def __init__(self, url: str, reason: str, transient: bool = True):
        self.url = url
        self.reason = reason
        self.transient = transient
        super().__init__(f"Request to {url} failed: {reason}")


class ContainerError(ProvisioningError):
    """Raised when the container runtime fails to create, start or stop a container."""
    pass


class FlagSeedError(ProvisioningError):
    """Raised for the first flag whose challenge could not be created."""
    
    def __init__(self, flag_name: str, cause: Optional[Exception] = None):
        self.flag_name = flag_name
        self.cause = cause
        message = f"Failed to create challenge for flag '{flag_name}'"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class InvalidStateError(ProvisioningError):
    """Raised on an illegal instance lifecycle transition."""
    pass
