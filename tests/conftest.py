"""Shared fixtures: a MagicMock stand-in for the docker client."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from ephemeral_env.core.schemas import EngineConfig
from ephemeral_env.runners.lifecycle import ContainerLifecycleManager

CONTAINER_ID = "3f2a9c8b7d6e5f4a3b2c1d0e9f8a7b6c5d4e3f2a1b0c9d8e7f6a5b4c3d2e1f0a"


def make_attrs(ports: dict[str, Any] | None, status: str = "running") -> dict[str, Any]:
    """Build container inspect data with the given NetworkSettings.Ports."""
    return {
        "Id": CONTAINER_ID,
        "State": {"Status": status, "Running": status == "running"},
        "NetworkSettings": {"Ports": ports},
    }


@pytest.fixture
def container() -> MagicMock:
    """A started container with port 80 bound to host port 49153."""
    mock_container = MagicMock()
    mock_container.id = CONTAINER_ID
    mock_container.short_id = CONTAINER_ID[:12]
    mock_container.status = "running"
    mock_container.attrs = make_attrs(
        {
            "80/tcp": [
                {"HostIp": "0.0.0.0", "HostPort": "49153"},
                {"HostIp": "::", "HostPort": "49153"},
            ]
        }
    )
    return mock_container


@pytest.fixture
def docker_client(container: MagicMock) -> MagicMock:
    client = MagicMock()
    client.ping.return_value = True
    client.info.return_value = {"Name": "test-engine"}
    client.containers.create.return_value = container
    client.api.inspect_container.return_value = container.attrs
    return client


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(stop_timeout_seconds=5)


@pytest.fixture
def manager(engine_config: EngineConfig, docker_client: MagicMock) -> ContainerLifecycleManager:
    return ContainerLifecycleManager(engine_config, client=docker_client)
