"""Runners module - container lifecycle and port resolution."""

from __future__ import annotations

from ephemeral_env.runners.lifecycle import ContainerLifecycleManager, build_client
from ephemeral_env.runners.ports import parse_host_port, parse_port_key, resolve_mapped_ports

__all__ = [
    "ContainerLifecycleManager",
    "build_client",
    "parse_host_port",
    "parse_port_key",
    "resolve_mapped_ports",
]
