"""
Unit tests for the container lifecycle manager.
"""

import pytest

from ctfd_provisioner.infrastructure.orchestrator.errors import ContainerError
from ctfd_provisioner.infrastructure.orchestrator.services.container_lifecycle import (
    ContainerLifecycleManager,
)
from tests.fixtures.ctfd_fixtures import FakeRuntime

IMAGE = "registry.sec-aau.dk/aau/ctfd"


class TestContainerLifecycleManager:
    """Tests for setup/serving container variants."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runtime = FakeRuntime(host_address="172.17.0.1")
        self.manager = ContainerLifecycleManager(self.runtime)

    async def test_setup_container_publishes_port(self, tmp_path):
        handle = await self.manager.provision_setup(IMAGE, str(tmp_path), "10.0.0.5")

        config = handle.config
        assert config.image == IMAGE
        assert config.mounts == [f"{tmp_path}:/opt/CTFd/CTFd/data"]
        assert config.env_vars == {"ADMIN_HOST": "10.0.0.5"}
        assert config.port_bindings == {"8000/tcp": "127.0.0.1:8000"}
        assert config.use_bridge is True
        assert handle.running

    async def test_serving_container_shares_base_without_ports(self, tmp_path):
        setup = await self.manager.provision_setup(IMAGE, str(tmp_path), "10.0.0.5")
        await self.manager.teardown(setup)

        serving = await self.manager.provision_serving(IMAGE, str(tmp_path))

        assert serving.config.port_bindings == {}
        assert serving.config.mounts == setup.config.mounts
        assert serving.config.env_vars == {"ADMIN_HOST": "10.0.0.5"}
        assert serving.config.use_bridge is True
        assert self.runtime.host_ip_calls == 0

    async def test_serving_without_setup_looks_up_host(self, tmp_path):
        serving = await self.manager.provision_serving(IMAGE, str(tmp_path))

        assert serving.config.env_vars == {"ADMIN_HOST": "172.17.0.1"}
        assert self.runtime.host_ip_calls == 1

    async def test_teardown_stops_then_closes(self, tmp_path):
        handle = await self.manager.provision_setup(IMAGE, str(tmp_path), "10.0.0.5")

        await self.manager.teardown(handle)

        assert self.runtime.events == [
            ("create", handle.id),
            ("start", handle.id),
            ("stop", handle.id),
            ("close", handle.id),
        ]
        assert handle.closed

    async def test_start_failure_is_fatal(self, tmp_path):
        self.runtime.fail_start = True

        with pytest.raises(ContainerError):
            await self.manager.provision_setup(IMAGE, str(tmp_path), "10.0.0.5")

        assert len(self.runtime.created) == 1
        assert not self.runtime.created[0].running

    async def test_custom_settings(self, tmp_path):
        manager = ContainerLifecycleManager(
            self.runtime,
            data_mount_target="/data",
            http_port=9000,
            setup_port_binding="127.0.0.1:19000",
            host_address_env="CTF_HOST",
        )

        handle = await manager.provision_setup(IMAGE, str(tmp_path), "10.0.0.5")

        assert handle.config.mounts == [f"{tmp_path}:/data"]
        assert handle.config.port_bindings == {"9000/tcp": "127.0.0.1:19000"}
        assert handle.config.env_vars == {"CTF_HOST": "10.0.0.5"}
