"""Port resolution over engine-reported binding data.

The engine reports published ports as ``NetworkSettings.Ports``::

    {
        "80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "49153"},
                   {"HostIp": "::", "HostPort": "49153"}],
        "53/udp": None,
    }

Only TCP entries are resolved. When a container port has several host
bindings, the first one in iteration order wins.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from typing import Any

from ephemeral_env.core.constants import MAX_PORT, MIN_PORT, TCP_PROTOCOL
from ephemeral_env.core.errors import PortParseError


def _to_port(value: Any, container_port: int | None = None) -> int:
    if isinstance(value, bool):
        raise PortParseError(value, container_port)
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise PortParseError(value, container_port) from e
    if not MIN_PORT <= port <= MAX_PORT:
        raise PortParseError(value, container_port)
    return port


def _protocol_of(key: str) -> str:
    _, _, protocol = str(key).partition("/")
    return (protocol or TCP_PROTOCOL).lower()


def parse_port_key(key: str) -> tuple[int, str]:
    """Split an engine port key such as '80/tcp' into (80, 'tcp').

    A key without a protocol suffix is treated as TCP.

    Raises:
        PortParseError: If the port part is not a valid port number
    """
    port, _, _ = str(key).partition("/")
    return _to_port(port), _protocol_of(key)


def parse_host_port(value: Any, container_port: int | None = None) -> int:
    """Parse the engine's host port string.

    Raises:
        PortParseError: If the value is not a valid port number
    """
    return _to_port(value, container_port)


def resolve_mapped_ports(
    bindings: Mapping[str, Sequence[Mapping[str, Any]] | None] | None,
    requested: Collection[int] | None = None,
) -> dict[int, int]:
    """Resolve container port -> host port from engine binding data.

    Args:
        bindings: The engine's per-port binding table
        requested: If given, only these container ports are resolved

    Returns:
        Mapping of container port to the first bound host port. Ports that
        are not bound yet are absent.

    Raises:
        PortParseError: If the engine reports a malformed port value
    """
    mapped: dict[int, int] = {}
    if not bindings:
        return mapped

    for key, host_bindings in bindings.items():
        # Non-TCP keys are skipped before their port number is looked at
        if _protocol_of(key) != TCP_PROTOCOL:
            continue
        container_port, _ = parse_port_key(key)
        if requested is not None and container_port not in requested:
            continue
        if not host_bindings:
            continue
        first = host_bindings[0]
        mapped[container_port] = parse_host_port(first.get("HostPort"), container_port)

    return mapped
