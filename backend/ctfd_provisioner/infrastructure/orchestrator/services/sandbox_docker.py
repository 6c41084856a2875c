"""
Docker Sandbox - aiodocker adapter behind the container runtime interface

Features:
- Translates a runtime-neutral ContainerConfig into a Docker Engine payload
- Bind mounts, bridge networking, environment variables, published ports
- Host address lookup through the bridge network gateway
- Two-step stop/close so callers control teardown ordering
"""

import os
from typing import Any, Dict, Optional, Protocol

import aiodocker
import structlog
from aiodocker.containers import DockerContainer
from aiodocker.exceptions import DockerError

from ..errors import ContainerError
from ..models import ContainerConfig

logger = structlog.get_logger(__name__)


class ContainerHandle(Protocol):
    """A created container owned by exactly one instance."""

    @property
    def id(self) -> str: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...

    async def close(self) -> None: ...


class ContainerRuntime(Protocol):
    """Capabilities the provisioner needs from a container runtime."""

    async def create_container(self, config: ContainerConfig) -> ContainerHandle: ...

    async def host_ip(self) -> str: ...


class DockerContainerHandle:
    """ContainerHandle backed by an aiodocker container."""

    def __init__(self, container: DockerContainer, stop_timeout: int = 10):
        self._container = container
        self._stop_timeout = stop_timeout

    @property
    def id(self) -> str:
        return self._container.id

    async def start(self) -> None:
        try:
            await self._container.start()
        except DockerError as e:
            raise ContainerError(
                f"Failed to start container {self.id[:12]}: {e.message}"
            ) from e
        logger.debug("Docker container started", container_id=self.id[:12])

    async def stop(self) -> None:
        try:
            await self._container.stop(t=self._stop_timeout)
        except DockerError as e:
            # 304: already stopped
            if e.status == 304:
                return
            raise ContainerError(
                f"Failed to stop container {self.id[:12]}: {e.message}"
            ) from e
        logger.debug("Docker container stopped", container_id=self.id[:12])

    async def close(self) -> None:
        try:
            await self._container.delete(force=True)
        except DockerError as e:
            if e.status == 404:
                return
            raise ContainerError(
                f"Failed to remove container {self.id[:12]}: {e.message}"
            ) from e
        logger.debug("Docker container removed", container_id=self.id[:12])


class DockerSandbox:
    """
    Docker-based container runtime.

    Creates containers from ContainerConfig values; pulling images is left
    to the operator, so a missing image surfaces as a ContainerError.
    """

    DEFAULT_NETWORK = "bridge"

    def __init__(
        self,
        docker_url: Optional[str] = None,
        network_name: str = DEFAULT_NETWORK,
        stop_timeout: int = 10,
    ):
        self.docker_url = docker_url or os.getenv("DOCKER_HOST")
        self.network_name = network_name
        self.stop_timeout = stop_timeout
        self._docker: Optional[aiodocker.Docker] = None

    async def _get_docker(self) -> aiodocker.Docker:
        """Get or create Docker client."""
        if self._docker is None:
            self._docker = aiodocker.Docker(url=self.docker_url)
        return self._docker

    async def close(self) -> None:
        """Close the Docker client session."""
        if self._docker is not None:
            await self._docker.close()
            self._docker = None

    async def create_container(self, config: ContainerConfig) -> DockerContainerHandle:
        """
        Create (but do not start) a container.

        Args:
            config: Runtime-neutral container configuration

        Returns:
            Handle for the created container
        """
        docker = await self._get_docker()
        payload = self.build_container_config(config)

        logger.info(
            "Creating Docker container",
            image=config.image,
            published=sorted(config.port_bindings.values()),
        )

        try:
            container = await docker.containers.create(config=payload)
        except DockerError as e:
            logger.error(
                "Docker error creating container",
                image=config.image,
                status=e.status,
                error=e.message,
            )
            raise ContainerError(
                f"Failed to create container from {config.image}: {e.message}"
            ) from e

        return DockerContainerHandle(container, stop_timeout=self.stop_timeout)

    async def host_ip(self) -> str:
        """Address containers use to reach the host: the bridge network gateway."""
        docker = await self._get_docker()
        try:
            network = await docker.networks.get(self.network_name)
            info = await network.show()
        except DockerError as e:
            raise ContainerError(
                f"Unable to inspect network {self.network_name}: {e.message}"
            ) from e

        for ipam_config in (info.get("IPAM") or {}).get("Config") or []:
            gateway = ipam_config.get("Gateway")
            if gateway:
                return gateway

        raise ContainerError(f"Network {self.network_name} has no gateway address")

    @staticmethod
    def build_container_config(config: ContainerConfig) -> Dict[str, Any]:
        """Prepare the Docker Engine create payload."""
        exposed_ports: Dict[str, Dict] = {}
        port_bindings: Dict[str, list] = {}
        for container_port, host_address in config.port_bindings.items():
            host_ip, _, host_port = host_address.rpartition(":")
            exposed_ports[container_port] = {}
            port_bindings[container_port] = [
                {"HostIp": host_ip, "HostPort": host_port}
            ]

        return {
            "Image": config.image,
            "Env": [f"{k}={v}" for k, v in config.env_vars.items()],
            "ExposedPorts": exposed_ports,
            "HostConfig": {
                "Binds": list(config.mounts),
                "NetworkMode": "bridge" if config.use_bridge else "default",
                "PortBindings": port_bindings,
            },
        }
