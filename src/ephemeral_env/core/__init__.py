"""Core module - schemas, errors and configuration."""

from __future__ import annotations

from ephemeral_env.core.config import load_definition, load_engine_config
from ephemeral_env.core.constants import (
    DEFAULT_ENGINE_TIMEOUT_SECONDS,
    DEFAULT_SERVICE_HOST,
    DEFAULT_STOP_TIMEOUT_SECONDS,
    MANAGED_LABEL,
)
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

__all__ = [
    "DEFAULT_ENGINE_TIMEOUT_SECONDS",
    "DEFAULT_SERVICE_HOST",
    "DEFAULT_STOP_TIMEOUT_SECONDS",
    "MANAGED_LABEL",
    "EngineConfig",
    "EngineOperationError",
    "EnginePhase",
    "EngineUnavailableError",
    "EphemeralEnvError",
    "ImageUnavailableError",
    "load_definition",
    "load_engine_config",
    "PortNotMappedError",
    "PortParseError",
    "ServiceDefinition",
    "ServiceInstance",
    "StopResult",
    "StopStep",
]
