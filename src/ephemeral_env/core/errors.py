"""Exception hierarchy for ephemeral-env.

Failures while bringing a container up propagate as one of these types.
Failures while tearing a container down never raise; see ``StopResult``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ephemeral_env.core.constants import SHORT_ID_LENGTH

if TYPE_CHECKING:
    from ephemeral_env.core.schemas import EnginePhase


class EphemeralEnvError(Exception):
    """Base class for all ephemeral-env errors."""


class EngineUnavailableError(EphemeralEnvError):
    """The container engine could not be reached or validated."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class EngineOperationError(EphemeralEnvError):
    """A create, start or inspect call against the engine failed.

    Attributes:
        phase: Which lifecycle phase failed
        container_id: The container involved, if one had been created
        cause: The underlying engine error
    """

    def __init__(
        self,
        phase: EnginePhase,
        cause: Exception,
        container_id: str | None = None,
    ) -> None:
        self.phase = phase
        self.cause = cause
        self.container_id = container_id
        target = f" for container {container_id[:SHORT_ID_LENGTH]}" if container_id else ""
        super().__init__(f"Engine {phase.value} failed{target}: {cause}")


class PortNotMappedError(EphemeralEnvError, KeyError):
    """A container port has no host binding on this instance."""

    def __init__(self, container_port: int, container_id: str) -> None:
        self.container_port = container_port
        self.container_id = container_id
        super().__init__(f"Port {container_port} is not mapped for container {container_id}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return str(self.args[0])


class PortParseError(EphemeralEnvError, ValueError):
    """The engine reported a port value that is not a valid port number."""

    def __init__(self, value: object, container_port: int | None = None) -> None:
        self.value = value
        self.container_port = container_port
        where = f" for container port {container_port}" if container_port is not None else ""
        super().__init__(f"Invalid port value {value!r}{where}")


class ImageUnavailableError(EphemeralEnvError):
    """An image could not be found locally or pulled."""

    def __init__(self, image: str, cause: Exception | None = None) -> None:
        self.image = image
        self.cause = cause
        super().__init__(f"Image {image} is not available: {cause}")
