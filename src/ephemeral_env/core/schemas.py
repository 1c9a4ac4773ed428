"""Pydantic schemas for ephemeral-env.

This module defines the data contracts of the container lifecycle: what to
run (``ServiceDefinition``), what is running (``ServiceInstance``), how to
reach the engine (``EngineConfig``) and how teardown went (``StopResult``).
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from ephemeral_env.core.constants import (
    DEFAULT_ENGINE_TIMEOUT_SECONDS,
    DEFAULT_SERVICE_HOST,
    DEFAULT_STOP_TIMEOUT_SECONDS,
    MAX_PORT,
    MIN_PORT,
    SHORT_ID_LENGTH,
    TCP_PROTOCOL,
)
from ephemeral_env.core.errors import PortNotMappedError

Port = Annotated[int, Field(ge=MIN_PORT, le=MAX_PORT)]


def _frozen_mapping(v: Mapping[Any, Any]) -> Mapping[Any, Any]:
    """Read-only copy of a validated mapping field."""
    return MappingProxyType(dict(v))


def _env_value(val: Any) -> Any:
    if val is None:
        return ""
    if isinstance(val, bool):
        return "true" if val else "false"
    if isinstance(val, (int, float)):
        return str(val)
    return val


class EnginePhase(str, Enum):
    """Engine calls made while bringing a container up."""

    CREATE = "create"
    START = "start"
    INSPECT = "inspect"


class StopStep(str, Enum):
    """Engine calls made while tearing a container down."""

    STOP = "stop"
    REMOVE = "remove"


class ServiceDefinition(BaseModel):
    """Declarative description of a single container to run.

    Attributes:
        image: Image reference (e.g., 'postgres:15'); must already be present
            locally or be pullable by the engine
        exposed_ports: Container TCP ports to publish on dynamic host ports
        environment: Environment variables to set inside the container
    """

    model_config = ConfigDict(frozen=True)

    image: str = Field(..., min_length=1, description="Image reference")
    exposed_ports: tuple[Port, ...] = Field(default=(), description="Container TCP ports")
    environment: Mapping[str, str] = Field(
        default_factory=lambda: MappingProxyType({}), description="Environment variables"
    )

    @classmethod
    def for_image(cls, image: str) -> ServiceDefinition:
        """Definition with no exposed ports and an empty environment."""
        return cls(image=image)

    @classmethod
    def single_port(cls, image: str, port: int) -> ServiceDefinition:
        """Definition with one exposed port and an empty environment."""
        return cls(image=image, exposed_ports=(port,))

    @field_validator("image")
    @classmethod
    def validate_image(cls, v: str) -> str:
        """Reject whitespace-only image references."""
        v = v.strip()
        if not v:
            raise ValueError("image must not be empty")
        return v

    @field_validator("exposed_ports", mode="before")
    @classmethod
    def coerce_ports(cls, v: Any) -> Any:
        """Accept a bare port or any iterable of ports."""
        if v is None:
            return ()
        if isinstance(v, (int, str)):
            return (v,)
        if isinstance(v, (set, frozenset)):
            return tuple(sorted(v))
        if isinstance(v, Iterable):
            return tuple(v)
        return v

    @field_validator("exposed_ports")
    @classmethod
    def dedupe_ports(cls, v: tuple[int, ...]) -> tuple[int, ...]:
        """Drop repeated ports, keeping first occurrence order."""
        return tuple(dict.fromkeys(v))

    @field_validator("environment", mode="before")
    @classmethod
    def stringify_env_values(cls, v: Any) -> Any:
        """Convert YAML scalars to the strings a shell would see.

        An empty value becomes "", booleans become "true"/"false" and numbers
        keep their literal form. Other types are left for validation to reject.
        """
        if isinstance(v, Mapping):
            return {k: _env_value(val) for k, val in v.items()}
        return v

    @field_validator("environment")
    @classmethod
    def validate_env_keys(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        for key in v:
            if not key or "=" in key:
                raise ValueError(f"Invalid environment variable name: {key!r}")
        return _frozen_mapping(v)

    @field_serializer("environment")
    def serialize_environment(self, v: Mapping[str, str]) -> dict[str, str]:
        return dict(v)

    def env_list(self) -> list[str]:
        """Environment encoded as KEY=VALUE strings."""
        return [f"{key}={value}" for key, value in self.environment.items()]

    def port_specs(self) -> dict[str, None]:
        """Port bindings with no fixed host port, so the engine assigns one."""
        return {f"{port}/{TCP_PROTOCOL}": None for port in self.exposed_ports}


class ServiceInstance(BaseModel):
    """A started container and its resolved host ports.

    ``mapped_ports`` only holds ports the engine had bound when the container
    was inspected. A missing port means "not bound yet", never port 0.
    """

    model_config = ConfigDict(frozen=True)

    container_id: str = Field(..., min_length=1)
    definition: ServiceDefinition
    mapped_ports: Mapping[int, int] = Field(default_factory=lambda: MappingProxyType({}))
    host: str = Field(default=DEFAULT_SERVICE_HOST, min_length=1)

    @field_validator("mapped_ports")
    @classmethod
    def freeze_mapped_ports(cls, v: Mapping[int, int]) -> Mapping[int, int]:
        return _frozen_mapping(v)

    @field_serializer("mapped_ports")
    def serialize_mapped_ports(self, v: Mapping[int, int]) -> dict[int, int]:
        return dict(v)

    @property
    def short_id(self) -> str:
        return self.container_id[:SHORT_ID_LENGTH]

    @property
    def unmapped_ports(self) -> tuple[int, ...]:
        """Exposed ports that have no host binding yet."""
        return tuple(p for p in self.definition.exposed_ports if p not in self.mapped_ports)

    @property
    def is_fully_mapped(self) -> bool:
        return not self.unmapped_ports

    def get_mapped_port(self, container_port: int) -> int:
        """Return the host port bound to ``container_port``.

        Raises:
            PortNotMappedError: If the port has no host binding
        """
        if container_port not in self.mapped_ports:
            raise PortNotMappedError(container_port, self.container_id)
        return self.mapped_ports[container_port]

    def endpoint(self, container_port: int) -> str:
        """Return ``host:port`` for connecting to ``container_port``."""
        return f"{self.host}:{self.get_mapped_port(container_port)}"


class StopResult(BaseModel):
    """Outcome of tearing a container down.

    Teardown never raises; each failed step is recorded here instead so the
    caller can decide whether to log, retry or ignore it.
    """

    model_config = ConfigDict(frozen=True)

    container_id: str
    stopped: bool = False
    removed: bool = False
    not_found: bool = Field(default=False, description="Engine reported no such container")
    errors: Mapping[StopStep, str] = Field(default_factory=lambda: MappingProxyType({}))

    @field_validator("errors")
    @classmethod
    def freeze_errors(cls, v: Mapping[StopStep, str]) -> Mapping[StopStep, str]:
        return _frozen_mapping(v)

    @field_serializer("errors")
    def serialize_errors(self, v: Mapping[StopStep, str]) -> dict[StopStep, str]:
        return dict(v)

    @property
    def ok(self) -> bool:
        return self.stopped and self.removed

    @property
    def already_gone(self) -> bool:
        """The container did not exist when teardown ran."""
        return self.not_found and not self.removed

    @property
    def failed_steps(self) -> list[StopStep]:
        return [step for step in StopStep if step in self.errors]


class EngineConfig(BaseModel):
    """Explicit connection settings for the container engine.

    Attributes:
        base_url: Engine endpoint (e.g., 'unix:///var/run/docker.sock' or
            'tcp://10.0.0.5:2376'); None uses the client library default
        timeout_seconds: Timeout for each engine API call
        tls_verify: Verify the engine's TLS certificate
        cert_path: Directory holding ca.pem, cert.pem and key.pem
        stop_timeout_seconds: Grace period before the engine kills a container
        cleanup_on_failure: Remove a container whose start or inspect failed
        pull_missing_images: Pull an image before create if it is not local
        service_host: Address mapped ports are reachable on (overrides the
            host derived from base_url)
    """

    base_url: str | None = Field(default=None)
    timeout_seconds: int = Field(default=DEFAULT_ENGINE_TIMEOUT_SECONDS, ge=1)
    tls_verify: bool = Field(default=False)
    cert_path: Path | None = Field(default=None)
    stop_timeout_seconds: int = Field(default=DEFAULT_STOP_TIMEOUT_SECONDS, ge=0)
    cleanup_on_failure: bool = Field(default=True)
    pull_missing_images: bool = Field(default=False)
    service_host: str | None = Field(default=None)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """Build a config from DOCKER_* and EPHEMERAL_ENV_* variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)
        """
        if environ is None:
            environ = os.environ

        data: dict[str, Any] = {}
        if environ.get("DOCKER_HOST"):
            data["base_url"] = environ["DOCKER_HOST"]
        # Any non-empty value enables verification, as in docker-py's kwargs_from_env
        if environ.get("DOCKER_TLS_VERIFY"):
            data["tls_verify"] = True
        if environ.get("DOCKER_CERT_PATH"):
            data["cert_path"] = Path(environ["DOCKER_CERT_PATH"])
        if environ.get("EPHEMERAL_ENV_TIMEOUT"):
            data["timeout_seconds"] = environ["EPHEMERAL_ENV_TIMEOUT"]
        if environ.get("EPHEMERAL_ENV_STOP_TIMEOUT"):
            data["stop_timeout_seconds"] = environ["EPHEMERAL_ENV_STOP_TIMEOUT"]
        if environ.get("EPHEMERAL_ENV_HOST"):
            data["service_host"] = environ["EPHEMERAL_ENV_HOST"]

        return cls.model_validate(data)

    @property
    def uses_tls(self) -> bool:
        return self.tls_verify or self.cert_path is not None

    def resolved_host(self) -> str:
        """Address that published host ports can be reached on."""
        if self.service_host:
            return self.service_host
        if self.base_url:
            parsed = urlparse(self.base_url)
            if parsed.scheme in ("tcp", "http", "https", "ssh") and parsed.hostname:
                return parsed.hostname
        return DEFAULT_SERVICE_HOST
