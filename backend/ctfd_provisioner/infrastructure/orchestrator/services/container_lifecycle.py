"""
Container Lifecycle Manager - setup/serving container variants over a shared data mount
"""

from dataclasses import replace
from typing import Optional

import structlog

from ..errors import ContainerError
from ..models import ContainerConfig
from .sandbox_docker import ContainerHandle, ContainerRuntime

logger = structlog.get_logger(__name__)


class ContainerLifecycleManager:
    """
    Creates, starts and tears down platform containers.

    Both variants derive from one base configuration (image, data mount,
    bridge networking, host address). Only the setup variant publishes the
    platform port on the host; the serving variant is reached through the
    reverse proxy by its container-internal address.
    """

    def __init__(
        self,
        runtime: ContainerRuntime,
        data_mount_target: str = "/opt/CTFd/CTFd/data",
        http_port: int = 8000,
        setup_port_binding: str = "127.0.0.1:8000",
        host_address_env: str = "ADMIN_HOST",
    ):
        self.runtime = runtime
        self.data_mount_target = data_mount_target
        self.http_port = http_port
        self.setup_port_binding = setup_port_binding
        self.host_address_env = host_address_env

        self._host_address: Optional[str] = None

    def base_config(self, image: str, data_path: str, host_address: str) -> ContainerConfig:
        """Configuration shared by the setup and serving containers."""
        return ContainerConfig(
            image=image,
            mounts=[f"{data_path}:{self.data_mount_target}"],
            env_vars={self.host_address_env: host_address},
            use_bridge=True,
        )

    async def provision_setup(
        self,
        image: str,
        data_path: str,
        host_address: str,
    ) -> ContainerHandle:
        """Create and start the directly reachable setup container."""
        self._host_address = host_address
        config = replace(
            self.base_config(image, data_path, host_address),
            port_bindings={f"{self.http_port}/tcp": self.setup_port_binding},
        )
        handle = await self._launch(config)
        logger.info(
            "Setup container started",
            container_id=handle.id[:12],
            published=self.setup_port_binding,
        )
        return handle

    async def provision_serving(self, image: str, data_path: str) -> ContainerHandle:
        """Create and start the proxy-only serving container."""
        host_address = self._host_address
        if host_address is None:
            host_address = await self.runtime.host_ip()
            self._host_address = host_address

        config = self.base_config(image, data_path, host_address)
        handle = await self._launch(config)
        logger.info("Serving container started", container_id=handle.id[:12])
        return handle

    async def teardown(self, handle: ContainerHandle) -> None:
        """Stop, then release, a container. Errors propagate without rollback."""
        await handle.stop()
        await handle.close()
        logger.info("Container torn down", container_id=handle.id[:12])

    async def _launch(self, config: ContainerConfig) -> ContainerHandle:
        handle = await self.runtime.create_container(config)
        try:
            await handle.start()
        except ContainerError:
            logger.error(
                "Container failed to start",
                container_id=handle.id[:12],
                image=config.image,
            )
            raise
        return handle
