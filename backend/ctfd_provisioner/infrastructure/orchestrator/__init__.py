"""
CTFd Provisioner - Instance Orchestrator

Two-phase container bootstrap:
- Setup container published on the host for direct configuration
- Admin setup and challenge seeding over a cookie/nonce aware session
- Serving container inheriting the configured state via the data mount
"""

from .errors import (
    ContainerError,
    FlagSeedError,
    HTTPError,
    InvalidStateError,
    NonceNotFoundError,
    ProvisioningError,
    ServerUnavailableError,
    TransportError,
)
from .models import FlagDefinition, InstanceConfig, InstanceState, ProxyRoute
from .services.ctfd_manager import CTFdInstance, CTFdProvisioner, new_instance

__all__ = [
    "ContainerError",
    "CTFdInstance",
    "CTFdProvisioner",
    "FlagDefinition",
    "FlagSeedError",
    "HTTPError",
    "InstanceConfig",
    "InstanceState",
    "InvalidStateError",
    "NonceNotFoundError",
    "ProvisioningError",
    "ProxyRoute",
    "ServerUnavailableError",
    "TransportError",
    "new_instance",
]
