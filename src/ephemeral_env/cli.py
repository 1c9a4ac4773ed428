"""CLI for ephemeral-env.

Provides a small command-line interface using Typer for:
- Starting a container from a definition file or from options
- Inspecting the host ports of a running container
- Stopping and removing a container
- Checking engine connectivity
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from ephemeral_env.core.config import load_definition, load_engine_config
from ephemeral_env.core.errors import EphemeralEnvError
from ephemeral_env.core.schemas import EngineConfig, ServiceDefinition, ServiceInstance
from ephemeral_env.runners.lifecycle import ContainerLifecycleManager
from ephemeral_env.utils.logging import get_logger, setup_logging

app = typer.Typer(
    name="ephemeral-env",
    help="Ephemeral containers for tests and development",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)

LOG_LEVEL_OPTION = typer.Option("WARNING", "--log-level", "-l", help="Logging level")
JSON_LOGS_OPTION = typer.Option(False, "--json-logs", help="Output logs in JSON format")
ENGINE_CONFIG_OPTION = typer.Option(
    None,
    "--engine-config",
    help="Engine connection file (YAML/JSON); defaults to DOCKER_* environment variables",
)


def _connect(engine_config: Path | None) -> ContainerLifecycleManager:
    """Build a manager, exiting with an error message if the engine is unusable."""
    try:
        config = (
            load_engine_config(engine_config)
            if engine_config is not None
            else EngineConfig.from_env()
        )
        return ContainerLifecycleManager(config)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]Error loading engine config: {e}[/]")
        raise typer.Exit(1) from e
    except EphemeralEnvError as e:
        console.print(f"[bold red]{e}[/]")
        raise typer.Exit(1) from e


def _parse_env(pairs: list[str]) -> dict[str, str]:
    env: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--env")
        env[key] = value
    return env


@app.command()
def start(
    config: Path | None = typer.Option(
        None, "--config", "-c", help="Service definition file (YAML/JSON)"
    ),
    image: str | None = typer.Option(None, "--image", "-i", help="Image reference"),
    port: list[int] | None = typer.Option(None, "--port", "-p", help="Container port to publish"),
    env: list[str] | None = typer.Option(None, "--env", "-e", help="Environment KEY=VALUE"),
    engine_config: Path | None = ENGINE_CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Start a container and print its mapped host ports."""
    setup_logging(level=log_level, json_format=json_logs, rich_console=not json_logs)

    try:
        if config is not None:
            definition = load_definition(config)
            overrides: dict[str, object] = {}
            if image:
                overrides["image"] = image
            if port:
                overrides["exposed_ports"] = port
            if env:
                overrides["environment"] = {**definition.environment, **_parse_env(env)}
            if overrides:
                definition = ServiceDefinition.model_validate(
                    {**definition.model_dump(), **overrides}
                )
        elif image:
            definition = ServiceDefinition(
                image=image,
                exposed_ports=port or (),
                environment=_parse_env(env or []),
            )
        else:
            console.print("[bold red]Error:[/] Provide '--config' or '--image'.")
            raise typer.Exit(1)
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[bold red]Invalid service definition: {e}[/]")
        raise typer.Exit(1) from e

    manager = _connect(engine_config)
    try:
        instance = manager.start(definition)
    except EphemeralEnvError as e:
        console.print(f"[bold red]Failed to start {definition.image}: {e}[/]")
        raise typer.Exit(1) from e
    finally:
        manager.close()

    _show_instance(instance)


@app.command()
def stop(
    container_id: str = typer.Argument(..., help="Container to stop and remove"),
    engine_config: Path | None = ENGINE_CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
    json_logs: bool = JSON_LOGS_OPTION,
) -> None:
    """Stop and remove a container."""
    setup_logging(level=log_level, json_format=json_logs, rich_console=not json_logs)

    manager = _connect(engine_config)
    try:
        result = manager.stop(container_id)
    finally:
        manager.close()

    if result.ok:
        console.print(f"[bold green]Stopped and removed {container_id}[/]")
    elif result.already_gone:
        console.print(f"[bold yellow]Container {container_id} does not exist[/]")
    else:
        for step in result.failed_steps:
            console.print(f"[bold red]Failed to {step.value} {container_id}: {result.errors[step]}[/]")
        raise typer.Exit(1)


@app.command()
def ports(
    container_id: str = typer.Argument(..., help="Container to inspect"),
    engine_config: Path | None = ENGINE_CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Show the host ports bound to a running container."""
    setup_logging(level=log_level)

    manager = _connect(engine_config)
    try:
        mapped = manager.inspect_ports(container_id)
    except EphemeralEnvError as e:
        console.print(f"[bold red]{e}[/]")
        raise typer.Exit(1) from e
    finally:
        manager.close()

    if not mapped:
        console.print("[bold yellow]No TCP ports are bound[/]")
        return
    console.print(_ports_table(mapped, manager.config.resolved_host()))


@app.command()
def check(
    engine_config: Path | None = ENGINE_CONFIG_OPTION,
    log_level: str = LOG_LEVEL_OPTION,
) -> None:
    """Check that the container engine is reachable."""
    setup_logging(level=log_level)

    manager = _connect(engine_config)
    manager.close()
    target = manager.config.base_url or "default engine socket"
    console.print(f"[bold green]Container engine reachable at {target}[/]")


@app.command()
def init_config(
    output: Path = typer.Option(
        Path("service.yaml"), "--output", "-o", help="Output definition file"
    ),
) -> None:
    """Generate a sample service definition file."""
    sample_config = """\
# ephemeral-env service definition
image: "postgres:16-alpine"

# Container TCP ports published on dynamically assigned host ports
exposed_ports:
  - 5432

environment:
  POSTGRES_USER: test
  POSTGRES_PASSWORD: test
  POSTGRES_DB: test
"""
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(sample_config)
    console.print(f"[bold green]Sample definition written to {output}[/]")


def _ports_table(mapped: dict[int, int], host: str) -> Table:
    table = Table(title="Mapped Ports")
    table.add_column("Container Port", style="cyan")
    table.add_column("Host Port", style="green")
    table.add_column("Endpoint", style="white")
    for container_port, host_port in sorted(mapped.items()):
        table.add_row(str(container_port), str(host_port), f"{host}:{host_port}")
    return table


def _show_instance(instance: ServiceInstance) -> None:
    """Display a started container and its ports."""
    table = Table(title="Service Instance")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Container ID", instance.container_id)
    table.add_row("Image", instance.definition.image)
    table.add_row("Host", instance.host)
    console.print(table)

    if instance.mapped_ports:
        console.print(_ports_table(instance.mapped_ports, instance.host))
    if instance.unmapped_ports:
        logger.debug(f"Unbound ports for {instance.short_id}: {instance.unmapped_ports}")
        console.print(
            "[bold yellow]Not bound yet: "
            f"{', '.join(str(p) for p in instance.unmapped_ports)}[/]"
        )


if __name__ == "__main__":
    app()
