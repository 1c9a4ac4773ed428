"""Shared constants for ephemeral-env.

Centralized defaults for engine connectivity and port handling.
"""

from __future__ import annotations

# Only TCP bindings are published and resolved.
TCP_PROTOCOL = "tcp"

# Valid range for container and host ports.
MIN_PORT = 1
MAX_PORT = 65535

# Seconds to wait on any single engine API round trip.
DEFAULT_ENGINE_TIMEOUT_SECONDS = 60

# Grace period given to a container before the engine kills it on stop.
DEFAULT_STOP_TIMEOUT_SECONDS = 10

# Address mapped host ports are reachable on for a local engine.
DEFAULT_SERVICE_HOST = "localhost"

# Length of the abbreviated container id used in log messages.
SHORT_ID_LENGTH = 12

# Label put on every container this package creates.
MANAGED_LABEL = "ephemeral-env.managed"
