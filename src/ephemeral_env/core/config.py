"""Configuration loading utilities.

Supports YAML and JSON files for service definitions and engine settings,
with schema validation.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from ephemeral_env.core.schemas import EngineConfig, ServiceDefinition


def _read_mapping(path: Path | str) -> dict[str, Any]:
    """Read a YAML or JSON file into a dict.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file format is unsupported or not a mapping
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    with open(path, encoding="utf-8") as f:
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif suffix == ".json":
            data = json.load(f)
        else:
            raise ValueError(f"Unsupported config format: {suffix}. Use .yaml, .yml, or .json")

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping at the top level")
    return data


def load_definition(path: Path | str) -> ServiceDefinition:
    """Load and validate a service definition file.

    Example file::

        image: postgres:15
        exposed_ports: [5432]
        environment:
          POSTGRES_PASSWORD: secret

    Args:
        path: Path to YAML or JSON file

    Returns:
        Validated ServiceDefinition

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If file format is unsupported
        pydantic.ValidationError: If the definition is invalid
    """
    return ServiceDefinition.model_validate(_read_mapping(path))


def load_engine_config(path: Path | str) -> EngineConfig:
    """Load and validate an engine connection file.

    Args:
        path: Path to YAML or JSON file

    Returns:
        Validated EngineConfig
    """
    return EngineConfig.model_validate(_read_mapping(path))
