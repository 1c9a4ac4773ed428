"""ephemeral-env - Ephemeral container lifecycle management for tests."""

from __future__ import annotations

from ephemeral_env.core.errors import (
    EngineOperationError,
    EngineUnavailableError,
    EphemeralEnvError,
    ImageUnavailableError,
    PortNotMappedError,
    PortParseError,
)
from ephemeral_env.core.schemas import (
    EngineConfig,
    EnginePhase,
    ServiceDefinition,
    ServiceInstance,
    StopResult,
    StopStep,
)
from ephemeral_env.runners.lifecycle import ContainerLifecycleManager

__version__ = "0.1.0"

__all__ = [
    "ContainerLifecycleManager",
    "EngineConfig",
    "EngineOperationError",
    "EnginePhase",
    "EngineUnavailableError",
    "EphemeralEnvError",
    "ImageUnavailableError",
    "PortNotMappedError",
    "PortParseError",
    "ServiceDefinition",
    "ServiceInstance",
    "StopResult",
    "StopStep",
    "__version__",
]
