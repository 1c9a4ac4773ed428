"""Container lifecycle management for ephemeral services.

This module drives one container at a time through its lifecycle:
- Connection to the engine, validated eagerly
- Container creation with dynamically published ports
- Start and inspection of the assigned host ports
- Best-effort teardown that reports instead of raising

A container that was created but failed to start or inspect is removed again
before the error propagates, unless ``cleanup_on_failure`` is disabled.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

import docker
from docker.errors import DockerException, ImageNotFound, NotFound
from docker.tls import TLSConfig
from requests.exceptions import RequestException

from ephemeral_env.core.constants import MANAGED_LABEL, SHORT_ID_LENGTH
from ephemeral_env.core.errors import (
    EngineOperationError,
    EngineUnavailableError,
    ImageUnavailableError,
)
from ephemeral_env.core.schemas import (
    EngineConfig,
    EnginePhase,
    ServiceDefinition,
    ServiceInstance,
    StopResult,
    StopStep,
)
from ephemeral_env.runners.ports import resolve_mapped_ports

if TYPE_CHECKING:
    from docker import DockerClient
    from docker.models.containers import Container

logger = logging.getLogger(__name__)

# Errors raised by the engine client for a failed round trip
ENGINE_ERRORS = (DockerException, RequestException)


def build_client(config: EngineConfig) -> DockerClient:
    """Create a docker client from explicit connection settings.

    A None ``base_url`` connects to the SDK's default local socket; the
    DOCKER_* environment is not read here.
    """
    tls: TLSConfig | bool = False
    if config.uses_tls:
        client_cert = None
        ca_cert = None
        if config.cert_path is not None:
            client_cert = (
                str(config.cert_path / "cert.pem"),
                str(config.cert_path / "key.pem"),
            )
            if config.tls_verify:
                ca_cert = str(config.cert_path / "ca.pem")
        tls = TLSConfig(
            client_cert=client_cert,
            ca_cert=ca_cert,
            verify=config.tls_verify,
        )

    return docker.DockerClient(
        base_url=config.base_url,
        timeout=config.timeout_seconds,
        tls=tls,
    )


class ContainerLifecycleManager:
    """Starts, inspects and tears down single containers.

    Holds one engine client for its lifetime and shares it across calls
    without locking; concurrent calls touch distinct containers.

    Example:
        ```python
        manager = ContainerLifecycleManager(EngineConfig.from_env())

        definition = ServiceDefinition.single_port("nginx:alpine", 80)
        with manager.running(definition) as instance:
            url = f"http://{instance.endpoint(80)}/"
            ...
        ```
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        client: DockerClient | None = None,
    ) -> None:
        """Connect to the engine and validate the connection.

        Args:
            config: Engine settings; read from the environment when omitted
            client: Pre-built engine client, used instead of connecting

        Raises:
            EngineUnavailableError: If the engine cannot be reached
        """
        self.config = config if config is not None else EngineConfig.from_env()

        try:
            self._client = client if client is not None else build_client(self.config)
            self._client.ping()
            info = self._client.info()
        except Exception as e:
            target = self.config.base_url or "default engine socket"
            raise EngineUnavailableError(
                f"Cannot connect to container engine at {target}: {e}", cause=e
            ) from e

        logger.info(f"Container engine connected: {info.get('Name', 'unknown')}")

    @property
    def client(self) -> DockerClient:
        return self._client

    def start(self, definition: ServiceDefinition) -> ServiceInstance:
        """Create and start a container, then resolve its host ports.

        Ports the engine had not bound yet at inspection time are left out of
        the returned mapping; use ``refresh`` to look again.

        Args:
            definition: What to run

        Returns:
            ServiceInstance for the running container

        Raises:
            EngineOperationError: If create, start or inspect fails
            PortParseError: If the engine reports a malformed host port
            ImageUnavailableError: If pre-pulling is enabled and fails
        """
        logger.info(f"Starting container for service with image: {definition.image}")

        if self.config.pull_missing_images:
            self.ensure_image(definition.image)

        container = self._create(definition)
        container_id = container.id

        try:
            self._run_phase(EnginePhase.START, container_id, container.start)
            logger.info(f"Container started: {container.short_id}")

            self._run_phase(EnginePhase.INSPECT, container_id, container.reload)
            if container.status != "running":
                logger.warning(
                    f"Container {container.short_id} is {container.status} right after start"
                )
            mapped_ports = resolve_mapped_ports(
                _port_bindings(container.attrs), requested=definition.exposed_ports
            )
        except Exception:
            if self.config.cleanup_on_failure:
                self._discard(container_id)
            raise

        logger.info(f"Container {container.short_id} ports mapped: {mapped_ports}")
        if len(mapped_ports) < len(definition.exposed_ports):
            logger.debug(
                f"Container {container.short_id} has unbound ports: "
                f"{[p for p in definition.exposed_ports if p not in mapped_ports]}"
            )

        return ServiceInstance(
            container_id=container_id,
            definition=definition,
            mapped_ports=mapped_ports,
            host=self.config.resolved_host(),
        )

    def _create(self, definition: ServiceDefinition) -> Container:
        def create() -> Container:
            return self._client.containers.create(
                definition.image,
                ports=definition.port_specs(),
                environment=definition.env_list(),
                labels={MANAGED_LABEL: "true"},
            )

        container = self._run_phase(EnginePhase.CREATE, None, create)
        logger.info(f"Container created with ID: {container.id}")
        return container

    def _run_phase(self, phase: EnginePhase, container_id: str | None, call: Any) -> Any:
        """Run one engine call, wrapping engine errors with the phase name."""
        try:
            return call()
        except ENGINE_ERRORS as e:
            logger.error(f"Engine {phase.value} failed: {e}")
            raise EngineOperationError(phase, e, container_id=container_id) from e

    def _discard(self, container_id: str) -> None:
        """Force-remove a container left behind by a failed start."""
        short_id = container_id[:SHORT_ID_LENGTH]
        logger.info(f"Removing partially started container {short_id}")
        try:
            self._client.api.remove_container(container_id, force=True, v=True)
        except NotFound:
            pass
        except ENGINE_ERRORS as e:
            logger.warning(f"Failed to remove partially started container {short_id}: {e}")

    def inspect_ports(self, container_id: str) -> dict[int, int]:
        """Inspect a container and resolve all of its TCP host ports.

        Raises:
            EngineOperationError: If the inspect call fails
            PortParseError: If the engine reports a malformed host port
        """
        return resolve_mapped_ports(self._inspect_bindings(container_id))

    def refresh(self, instance: ServiceInstance) -> ServiceInstance:
        """Re-inspect an instance's container for ports bound since start."""
        mapped_ports = resolve_mapped_ports(
            self._inspect_bindings(instance.container_id),
            requested=instance.definition.exposed_ports,
        )
        return ServiceInstance(
            container_id=instance.container_id,
            definition=instance.definition,
            mapped_ports=mapped_ports,
            host=instance.host,
        )

    def _inspect_bindings(self, container_id: str) -> dict[str, Any] | None:
        attrs = self._run_phase(
            EnginePhase.INSPECT,
            container_id,
            lambda: self._client.api.inspect_container(container_id),
        )
        return _port_bindings(attrs)

    def stop(self, container_id: str) -> StopResult:
        """Stop and remove a container.

        Never raises for engine errors. Each failed step is logged as a
        warning and recorded in the returned result; removal is attempted
        even when stopping failed. Safe to call on a container that is
        already gone.

        Args:
            container_id: Container to tear down

        Returns:
            StopResult describing which steps succeeded
        """
        short_id = container_id[:SHORT_ID_LENGTH]
        errors: dict[StopStep, str] = {}
        not_found = False
        stopped = False
        removed = False

        logger.info(f"Stopping container: {short_id}")
        try:
            self._client.api.stop(container_id, timeout=self.config.stop_timeout_seconds)
            stopped = True
        except NotFound as e:
            not_found = True
            errors[StopStep.STOP] = str(e)
        except ENGINE_ERRORS as e:
            errors[StopStep.STOP] = str(e)

        logger.info(f"Removing container: {short_id}")
        try:
            self._client.api.remove_container(container_id, force=True, v=True)
            removed = True
        except NotFound as e:
            not_found = True
            errors[StopStep.REMOVE] = str(e)
        except ENGINE_ERRORS as e:
            errors[StopStep.REMOVE] = str(e)

        result = StopResult(
            container_id=container_id,
            stopped=stopped,
            removed=removed,
            not_found=not_found,
            errors=errors,
        )
        if result.ok:
            logger.info(f"Container removed: {short_id}")
        elif result.already_gone:
            logger.warning(f"Container {short_id} was already gone")
        else:
            for step in result.failed_steps:
                logger.warning(
                    f"Could not {step.value} container {short_id}: {result.errors[step]}"
                )
        return result

    def ensure_image(self, image: str, force: bool = False) -> None:
        """Make sure an image is available locally, pulling it if needed.

        Args:
            image: Image reference (e.g., 'nginx:alpine')
            force: Pull even if the image is already present

        Raises:
            ImageUnavailableError: If the image cannot be pulled
        """
        if not force:
            try:
                self._client.images.get(image)
                logger.debug(f"Image {image} already present")
                return
            except ImageNotFound:
                pass
            except ENGINE_ERRORS as e:
                raise ImageUnavailableError(image, e) from e

        logger.info(f"Pulling image {image}...")
        try:
            self._client.images.pull(image)
        except ENGINE_ERRORS as e:
            logger.error(f"Failed to pull image {image}: {e}")
            raise ImageUnavailableError(image, e) from e
        logger.info(f"Successfully pulled {image}")

    @contextlib.contextmanager
    def running(self, definition: ServiceDefinition) -> Iterator[ServiceInstance]:
        """Start a container for the duration of a ``with`` block."""
        instance = self.start(definition)
        try:
            yield instance
        finally:
            self.stop(instance.container_id)

    def close(self) -> None:
        """Close the engine client."""
        with contextlib.suppress(Exception):
            self._client.close()

    def __enter__(self) -> ContainerLifecycleManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _port_bindings(attrs: dict[str, Any] | None) -> dict[str, Any] | None:
    """Pull ``NetworkSettings.Ports`` out of inspect data."""
    if not attrs:
        return None
    network_settings = attrs.get("NetworkSettings") or {}
    return network_settings.get("Ports")
