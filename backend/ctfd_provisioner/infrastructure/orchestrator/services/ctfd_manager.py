"""
CTFd Manager - provisioning state machine for a pre-seeded CTFd instance

Handles:
- Data mount allocation shared by the setup and serving containers
- Setup container bootstrap (readiness, admin setup, flag seeding)
- Handoff to the serving container through the data mount
- Start/stop/close of the serving container for the outer orchestrator
"""

import shutil
import tempfile
from pathlib import Path
from typing import Optional, Tuple

import structlog

from ctfd_provisioner.core.config import Settings, get_settings

from ..errors import ContainerError, InvalidStateError
from ..models import (
    INSTANCE_TRANSITIONS,
    FlagDefinition,
    InstanceConfig,
    InstanceState,
    ProxyRoute,
)
from .container_lifecycle import ContainerLifecycleManager
from .flag_seeder import seed_flags
from .readiness_poller import ReadinessPoller
from .sandbox_docker import ContainerHandle, ContainerRuntime, DockerSandbox
from .session_client import FormEncoding, SessionClient

logger = structlog.get_logger(__name__)

SETUP_PATH = "/setup"
CHALLENGE_PATH = "/admin/chal/new"


class CTFdInstance:
    """
    A provisioned platform instance.

    Owns exactly one container handle, the data mount directory and the
    HTTP session used to configure it. The lifecycle is tracked explicitly
    in ``state``; see INSTANCE_TRANSITIONS.
    """

    def __init__(
        self,
        conf: InstanceConfig,
        data_dir: str,
        lifecycle: ContainerLifecycleManager,
        session: SessionClient,
    ):
        self.conf = conf
        self.data_dir = data_dir
        self.session = session
        self.lifecycle = lifecycle
        self._container: Optional[ContainerHandle] = None
        self._state = InstanceState.NEW
        # set by new_instance; closed together with the instance
        self._provisioner: Optional["CTFdProvisioner"] = None

    @property
    def state(self) -> InstanceState:
        return self._state

    @property
    def container(self) -> Optional[ContainerHandle]:
        return self._container

    @property
    def id(self) -> str:
        """Identifier of the live container."""
        if self._container is None:
            raise InvalidStateError(f"Instance has no container (state: {self._state.value})")
        return self._container.id

    def flags(self) -> Tuple[FlagDefinition, ...]:
        return self.conf.flags

    def connect_proxy(self) -> ProxyRoute:
        """Identity and routing template for the reverse proxy."""
        return ProxyRoute(container_id=self.id)

    def _transition(self, state: InstanceState) -> None:
        if state not in INSTANCE_TRANSITIONS[self._state]:
            raise InvalidStateError(
                f"Illegal instance transition {self._state.value} -> {state.value}"
            )
        logger.debug(
            "Instance state changed",
            previous=self._state.value,
            state=state.value,
        )
        self._state = state

    def _bind(self, handle: ContainerHandle, state: InstanceState) -> None:
        self._transition(state)
        self._container = handle

    def _unbind(self, state: InstanceState) -> None:
        self._transition(state)
        self._container = None

    async def start(self) -> None:
        """Start the serving container again after stop()."""
        if self._state is not InstanceState.STOPPED:
            raise InvalidStateError(f"Cannot start instance in state {self._state.value}")
        await self._container.start()
        self._transition(InstanceState.SERVING)

    async def stop(self) -> None:
        """Stop the serving container, keeping it and its data for start()."""
        if self._state is not InstanceState.SERVING:
            raise InvalidStateError(f"Cannot stop instance in state {self._state.value}")
        await self._container.stop()
        self._transition(InstanceState.STOPPED)

    async def close(self) -> None:
        """
        Release the container, then remove the data mount.

        The container is stopped before its mount source is deleted so the
        platform never runs against a vanished data directory.
        """
        if self._state not in (InstanceState.SERVING, InstanceState.STOPPED):
            raise InvalidStateError(f"Cannot close instance in state {self._state.value}")

        container_id = self._container.id
        await self.lifecycle.teardown(self._container)

        # state is left untouched on failure so close() can be retried
        if Path(self.data_dir).exists():
            try:
                shutil.rmtree(self.data_dir)
            except OSError as e:
                raise ContainerError(
                    f"Failed to remove data mount {self.data_dir}: {e}"
                ) from e

        self._unbind(InstanceState.CLOSED)
        await self.session.close()
        if self._provisioner is not None:
            await self._provisioner.close()

        logger.info(
            "Instance closed",
            container_id=container_id[:12],
            data_dir=self.data_dir,
        )


class CTFdProvisioner:
    """
    Sequences the full bootstrap of a CTFd instance.

    Failures abort the sequence and propagate unchanged; containers and the
    data directory created before the failure are left for the caller.
    """

    def __init__(
        self,
        runtime: Optional[ContainerRuntime] = None,
        settings: Optional[Settings] = None,
        poller: Optional[ReadinessPoller] = None,
    ):
        self.settings = settings or get_settings()
        self._owns_runtime = runtime is None
        self.runtime = runtime or DockerSandbox(
            docker_url=self.settings.docker_url,
            network_name=self.settings.bridge_network,
            stop_timeout=self.settings.stop_timeout,
        )
        self.poller = poller or ReadinessPoller(
            interval=self.settings.readiness_interval,
            request_timeout=self.settings.request_timeout,
        )

    async def __aenter__(self) -> "CTFdProvisioner":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Release the container runtime if this provisioner created it."""
        if self._owns_runtime:
            await self.runtime.close()

    def _lifecycle(self) -> ContainerLifecycleManager:
        return ContainerLifecycleManager(
            self.runtime,
            data_mount_target=self.settings.data_mount_target,
            http_port=self.settings.http_port,
            setup_port_binding=self.settings.setup_port_binding,
            host_address_env=self.settings.host_address_env,
        )

    def _allocate_data_dir(self) -> str:
        data_root = self.settings.data_root
        if data_root is not None:
            Path(data_root).mkdir(parents=True, exist_ok=True)
        return tempfile.mkdtemp(
            prefix=self.settings.data_dir_prefix,
            dir=str(data_root) if data_root is not None else None,
        )

    async def _host_address(self) -> str:
        if self.settings.host_address:
            return self.settings.host_address
        return await self.runtime.host_ip()

    async def provision(self, conf: InstanceConfig) -> CTFdInstance:
        """
        Provision a serving instance for conf.

        Returns:
            Instance in the SERVING state

        Raises:
            ProvisioningError: any failure along the sequence
        """
        settings = self.settings
        base_url = settings.setup_base_url
        log = logger.bind(ctf_name=conf.name)

        host_address = await self._host_address()
        data_dir = self._allocate_data_dir()
        instance = CTFdInstance(
            conf,
            data_dir,
            self._lifecycle(),
            SessionClient(request_timeout=settings.request_timeout),
        )
        log.info("Provisioning CTFd instance", data_dir=data_dir, image=settings.image)

        try:
            setup = await instance.lifecycle.provision_setup(
                settings.image, data_dir, host_address
            )
            instance._bind(setup, InstanceState.CONFIGURING)

            await self.poller.wait_ready(base_url + SETUP_PATH, settings.readiness_timeout)
            await self._configure(instance, base_url + SETUP_PATH)

            created = await seed_flags(
                instance.session, base_url + CHALLENGE_PATH, conf.flags
            )
            log.info("Flags seeded", count=created)

            await instance.lifecycle.teardown(setup)
            instance._unbind(InstanceState.TRANSITIONING)

            if not Path(data_dir).is_dir():
                raise ContainerError(f"Data mount {data_dir} vanished before handoff")

            serving = await instance.lifecycle.provision_serving(settings.image, data_dir)
            instance._bind(serving, InstanceState.SERVING)
        except Exception as e:
            log.error("Provisioning failed", error=str(e), state=instance.state.value)
            await instance.session.close()
            raise

        log.info("CTFd instance serving", container_id=instance.id[:12])
        return instance

    async def _configure(self, instance: CTFdInstance, endpoint: str) -> None:
        """Submit the initial setup form; its response authenticates the session."""
        conf = instance.conf
        nonce = await instance.session.fetch_nonce(endpoint)
        await instance.session.submit_form(
            endpoint,
            {
                "ctf_name": conf.name,
                "name": conf.admin_user,
                "password": conf.admin_pass,
                "email": conf.admin_email,
                "nonce": nonce,
            },
            encoding=FormEncoding.URLENCODED,
        )
        logger.info("CTFd instance configured", ctf_name=conf.name, admin=conf.admin_user)


async def new_instance(
    conf: InstanceConfig,
    runtime: Optional[ContainerRuntime] = None,
    settings: Optional[Settings] = None,
) -> CTFdInstance:
    """
    Provision a serving CTFd instance with a default provisioner.

    The provisioner, and any runtime it created, is released when the
    instance is closed, or immediately if provisioning fails.
    """
    provisioner = CTFdProvisioner(runtime=runtime, settings=settings)
    try:
        instance = await provisioner.provision(conf)
    except Exception:
        await provisioner.close()
        raise

    instance._provisioner = provisioner
    return instance
