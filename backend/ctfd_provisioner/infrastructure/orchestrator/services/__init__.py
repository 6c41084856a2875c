"""Orchestrator services."""

from .container_lifecycle import ContainerLifecycleManager
from .ctfd_manager import CTFdInstance, CTFdProvisioner, new_instance
from .flag_seeder import seed_flags
from .readiness_poller import ReadinessPoller
from .sandbox_docker import DockerSandbox
from .session_client import FormEncoding, SessionClient

__all__ = [
    "ContainerLifecycleManager",
    "CTFdInstance",
    "CTFdProvisioner",
    "DockerSandbox",
    "FormEncoding",
    "ReadinessPoller",
    "SessionClient",
    "new_instance",
    "seed_flags",
]
