"""Tests for ephemeral-env schemas."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from ephemeral_env.core.errors import PortNotMappedError
from ephemeral_env.core.schemas import (
    EngineConfig,
    ServiceDefinition,
    ServiceInstance,
    StopResult,
    StopStep,
)


class TestServiceDefinition:
    """Tests for ServiceDefinition schema."""

    def test_valid_definition(self):
        """Test a definition with ports and environment."""
        definition = ServiceDefinition(
            image="postgres:15",
            exposed_ports=[5432],
            environment={"POSTGRES_PASSWORD": "secret"},
        )
        assert definition.image == "postgres:15"
        assert definition.exposed_ports == (5432,)
        assert definition.environment == {"POSTGRES_PASSWORD": "secret"}

    def test_for_image(self):
        """Test the no-ports, no-env convenience constructor."""
        definition = ServiceDefinition.for_image("redis:7")
        assert definition.exposed_ports == ()
        assert definition.environment == {}

    def test_single_port(self):
        """Test the single-port convenience constructor."""
        definition = ServiceDefinition.single_port("nginx:alpine", 80)
        assert definition.exposed_ports == (80,)
        assert definition.environment == {}

    def test_duplicate_ports_deduplicated(self):
        """Test that repeated ports collapse, keeping first-seen order."""
        definition = ServiceDefinition(image="app", exposed_ports=[8080, 80, 8080, 80])
        assert definition.exposed_ports == (8080, 80)

    def test_port_set_accepted(self):
        definition = ServiceDefinition(image="app", exposed_ports={9000, 80})
        assert definition.exposed_ports == (80, 9000)

    def test_string_ports_coerced(self):
        """Test that ports read from text config become ints."""
        definition = ServiceDefinition(image="app", exposed_ports=["80", "443"])
        assert definition.exposed_ports == (80, 443)

    @pytest.mark.parametrize("image", ["", "   "])
    def test_empty_image_rejected(self, image):
        with pytest.raises(ValidationError):
            ServiceDefinition(image=image)

    def test_image_stripped(self):
        assert ServiceDefinition(image="  nginx:alpine ").image == "nginx:alpine"

    @pytest.mark.parametrize("port", [0, -1, 65536])
    def test_out_of_range_port_rejected(self, port):
        with pytest.raises(ValidationError):
            ServiceDefinition(image="app", exposed_ports=[port])

    @pytest.mark.parametrize("key", ["", "A=B"])
    def test_invalid_env_key_rejected(self, key):
        with pytest.raises(ValidationError):
            ServiceDefinition(image="app", environment={key: "value"})

    def test_env_values_stringified(self):
        """Test that YAML scalars become the strings a shell would see."""
        definition = ServiceDefinition(
            image="app",
            environment={"PORT": 8080, "RATIO": 0.5, "DEBUG": True, "QUIET": False, "EMPTY": None},
        )
        assert definition.environment == {
            "PORT": "8080",
            "RATIO": "0.5",
            "DEBUG": "true",
            "QUIET": "false",
            "EMPTY": "",
        }

    def test_nested_env_value_rejected(self):
        with pytest.raises(ValidationError):
            ServiceDefinition(image="app", environment={"LIST": [1, 2]})

    def test_env_list(self):
        """Test KEY=VALUE encoding, including values containing '='."""
        definition = ServiceDefinition(
            image="app", environment={"A": "1", "DSN": "host=db user=x"}
        )
        assert sorted(definition.env_list()) == ["A=1", "DSN=host=db user=x"]

    def test_port_specs_request_dynamic_host_ports(self):
        definition = ServiceDefinition(image="app", exposed_ports=[80, 443])
        assert definition.port_specs() == {"80/tcp": None, "443/tcp": None}

    def test_immutable(self):
        """Test that fields cannot be reassigned after construction."""
        definition = ServiceDefinition.single_port("nginx:alpine", 80)
        with pytest.raises(ValidationError):
            definition.image = "other"

    def test_environment_copied(self):
        """Test that mutating the caller's dict does not affect the definition."""
        env = {"A": "1"}
        definition = ServiceDefinition(image="app", environment=env)
        env["B"] = "2"
        assert definition.environment == {"A": "1"}

    def test_environment_read_only(self):
        """Test that the stored environment cannot be changed in place."""
        definition = ServiceDefinition(image="app", environment={"A": "1"})
        with pytest.raises(TypeError):
            definition.environment["INJECTED"] = "x"
        with pytest.raises(TypeError):
            del definition.environment["A"]
        assert definition.env_list() == ["A=1"]

    def test_model_dump_emits_plain_dicts(self):
        definition = ServiceDefinition(image="app", environment={"A": "1"})
        dumped = definition.model_dump()
        assert type(dumped["environment"]) is dict
        assert ServiceDefinition.model_validate(dumped) == definition


class TestServiceInstance:
    """Tests for ServiceInstance schema."""

    def make_instance(self, mapped_ports=None, exposed_ports=(80, 443)):
        return ServiceInstance(
            container_id="abc123def456789",
            definition=ServiceDefinition(image="nginx:alpine", exposed_ports=exposed_ports),
            mapped_ports=mapped_ports if mapped_ports is not None else {80: 49153},
        )

    def test_get_mapped_port(self):
        """Test exact lookup of a mapped port."""
        instance = self.make_instance()
        assert instance.get_mapped_port(80) == 49153

    def test_unmapped_port_raises(self):
        """Test that an unbound port raises instead of returning a default."""
        instance = self.make_instance()
        with pytest.raises(PortNotMappedError) as exc_info:
            instance.get_mapped_port(443)
        assert exc_info.value.container_port == 443
        assert exc_info.value.container_id == "abc123def456789"
        assert "443" in str(exc_info.value)

    def test_unmapped_port_is_key_error(self):
        instance = self.make_instance(mapped_ports={})
        with pytest.raises(KeyError):
            instance.get_mapped_port(80)

    def test_never_exposed_port_raises(self):
        instance = self.make_instance()
        with pytest.raises(PortNotMappedError):
            instance.get_mapped_port(5432)

    def test_endpoint(self):
        instance = self.make_instance()
        assert instance.endpoint(80) == "localhost:49153"

    def test_unmapped_ports(self):
        """Test reporting of exposed ports that are not bound yet."""
        instance = self.make_instance()
        assert instance.unmapped_ports == (443,)
        assert instance.is_fully_mapped is False

    def test_fully_mapped(self):
        instance = self.make_instance(mapped_ports={80: 49153, 443: 49154})
        assert instance.is_fully_mapped is True

    def test_definition_kept_by_reference(self):
        """Test that the instance holds the exact definition it was given."""
        definition = ServiceDefinition.single_port("nginx:alpine", 80)
        instance = ServiceInstance(container_id="abc", definition=definition)
        assert instance.definition is definition

    def test_short_id(self):
        assert self.make_instance().short_id == "abc123def456"

    def test_mapped_ports_read_only(self):
        """Test that a mapped port cannot be overwritten with a default."""
        instance = self.make_instance()
        with pytest.raises(TypeError):
            instance.mapped_ports[80] = 0
        with pytest.raises(TypeError):
            instance.mapped_ports[443] = 49154
        assert instance.get_mapped_port(80) == 49153
        with pytest.raises(PortNotMappedError):
            instance.get_mapped_port(443)

    def test_mapped_ports_copied(self):
        ports = {80: 49153}
        instance = self.make_instance(mapped_ports=ports)
        ports[80] = 0
        assert instance.get_mapped_port(80) == 49153

    def test_model_dump_emits_plain_dicts(self):
        dumped = self.make_instance().model_dump()
        assert type(dumped["mapped_ports"]) is dict
        assert type(dumped["definition"]["environment"]) is dict

    def test_empty_container_id_rejected(self):
        with pytest.raises(ValidationError):
            ServiceInstance(
                container_id="", definition=ServiceDefinition.for_image("nginx:alpine")
            )


class TestStopResult:
    """Tests for StopResult schema."""

    def test_ok(self):
        result = StopResult(container_id="abc", stopped=True, removed=True)
        assert result.ok is True
        assert result.failed_steps == []
        assert result.already_gone is False

    def test_errors_read_only(self):
        result = StopResult(container_id="abc", errors={StopStep.STOP: "timeout"})
        with pytest.raises(TypeError):
            result.errors[StopStep.REMOVE] = "busy"
        assert result.failed_steps == [StopStep.STOP]

    def test_failed_steps_in_order(self):
        result = StopResult(
            container_id="abc",
            errors={StopStep.REMOVE: "busy", StopStep.STOP: "timeout"},
        )
        assert result.ok is False
        assert result.failed_steps == [StopStep.STOP, StopStep.REMOVE]

    def test_already_gone(self):
        """Test a teardown of a container the engine no longer knows."""
        result = StopResult(
            container_id="abc",
            not_found=True,
            errors={StopStep.STOP: "No such container", StopStep.REMOVE: "No such container"},
        )
        assert result.already_gone is True
        assert result.ok is False


class TestEngineConfig:
    """Tests for EngineConfig schema."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.base_url is None
        assert config.cleanup_on_failure is True
        assert config.uses_tls is False
        assert config.resolved_host() == "localhost"

    def test_from_empty_env(self):
        assert EngineConfig.from_env({}) == EngineConfig()

    def test_from_env(self):
        """Test reading DOCKER_* and EPHEMERAL_ENV_* variables."""
        config = EngineConfig.from_env(
            {
                "DOCKER_HOST": "tcp://10.0.0.5:2376",
                "DOCKER_TLS_VERIFY": "1",
                "DOCKER_CERT_PATH": "/certs",
                "EPHEMERAL_ENV_TIMEOUT": "30",
                "EPHEMERAL_ENV_STOP_TIMEOUT": "2",
            }
        )
        assert config.base_url == "tcp://10.0.0.5:2376"
        assert config.tls_verify is True
        assert config.cert_path == Path("/certs")
        assert config.timeout_seconds == 30
        assert config.stop_timeout_seconds == 2
        assert config.uses_tls is True
        assert config.resolved_host() == "10.0.0.5"

    def test_tls_verify_empty_value_disabled(self):
        assert EngineConfig.from_env({"DOCKER_TLS_VERIFY": ""}).tls_verify is False

    @pytest.mark.parametrize("value", ["1", "0", "false"])
    def test_tls_verify_any_non_empty_value_enables(self, value):
        """Test that any non-empty value turns verification on, as docker-py does."""
        assert EngineConfig.from_env({"DOCKER_TLS_VERIFY": value}).tls_verify is True

    def test_unix_socket_resolves_to_localhost(self):
        config = EngineConfig(base_url="unix:///var/run/docker.sock")
        assert config.resolved_host() == "localhost"

    def test_service_host_override(self):
        config = EngineConfig.from_env(
            {"DOCKER_HOST": "tcp://10.0.0.5:2376", "EPHEMERAL_ENV_HOST": "docker.internal"}
        )
        assert config.resolved_host() == "docker.internal"

    def test_invalid_timeout_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig.from_env({"EPHEMERAL_ENV_TIMEOUT": "0"})
