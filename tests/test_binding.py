"""Test cases for binding configuration trees onto annotated classes."""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Annotated, List, Literal, Set

import pytest
from treeconf import (
    BindingError,
    Configuration,
    ConfigurationError,
    ConfigValue,
    DateTimeTransformer,
    MissingValueError,
    bind,
    config_path,
    describe_bindings,
    get_binding_table,
    method_invoke,
)
from treeconf.nodes import PathNode, ValueNode
from tests.conftest import parse_json
from tests.data.bindings import (
    AppConfig,
    BadPort,
    ConstructedServer,
    Endpoint,
    Environment,
    Limits,
    OptionalMissing,
    RequiredMissing,
    ServerConfig,
    ServiceConfig,
)


def test_bind_scalar_fields(configuration: Configuration):
    """Test scalar binding.

    Given the loaded sample configuration
    When ServerConfig is bound at its declared path
    Then values, parameters and attributes are converted to the declared types
    """
    server = bind(ServerConfig, configuration)

    assert server.host == "prod.example.com"
    assert server.port == 8080
    assert server.secure is True
    assert server.timeout == 30
    assert server.retries == 3
    assert server.region == "eu-west"


def test_bind_nested_types_and_collections(configuration: Configuration):
    """Test composite binding.

    Given the loaded sample configuration
    When AppConfig is bound
    Then lists, sets, nested types, element lists and tag shorthands are all bound
    """
    app = bind(AppConfig, configuration)

    assert app.name == "demo-app"
    assert app.environment is Environment.PROD
    assert app.ports == {80, 443, 8080}
    assert app.port_list == [80, 443, 8080]
    assert app.services == [
        ServiceConfig(name="auth", url="http://prod.auth"),
        ServiceConfig(name="billing", url="http://prod.billing"),
    ]
    assert app.server == Endpoint(host="prod.example.com", port=8080)
    assert app.limits == Limits(max_connections=100, timeout=timedelta(seconds=5))
    assert app.server_timeout == 30
    assert app.server_region == "eu-west"
    assert app.first_service == "billing"
    assert app.server_parameters == {"timeout": 30, "retries": 3}


def test_transformer_receives_scope(configuration: Configuration):
    """Test custom transformers.

    Given a field with a transformer
    When it is bound
    Then the transformer gets the raw value and the properties visible at the node
    """
    app = bind(AppConfig, configuration)

    assert app.tagged_name == "DEMO-APP@prod"


def test_value_list_to_set_of_int():
    data = {"header": {"name": "demo", "version": "1.0"}, "root": {"values": ["1", "2", "3"]}}

    @config_path("root")
    class Numbers:
        values: Annotated[Set[int], ConfigValue()]

    numbers = bind(Numbers, parse_json(data))

    assert numbers.values == {1, 2, 3}


def test_required_missing_field_names_the_field(configuration: Configuration):
    """Test required values.

    Given a required field whose path does not exist
    When the type is bound
    Then ConfigurationError names the field
    """
    with pytest.raises(ConfigurationError) as exc_info:
        bind(RequiredMissing, configuration)

    assert isinstance(exc_info.value, MissingValueError)
    assert exc_info.value.missing.field == "RequiredMissing.missing_field"
    assert "missing_field" in str(exc_info.value)


def test_required_empty_value_is_missing():
    data = {"header": {"name": "demo", "version": "1.0"}, "root": {"host": ""}}

    @config_path("root")
    class Host:
        host: Annotated[str, ConfigValue(required=True)]

    with pytest.raises(MissingValueError):
        bind(Host, parse_json(data))


def test_optional_missing_field_keeps_existing_value(configuration: Configuration):
    instance = bind(OptionalMissing, configuration)

    assert instance.absent == "unchanged"


def test_conversion_failure_raises_binding_error(configuration: Configuration):
    """Test conversion errors.

    Given a field whose value cannot be parsed as the declared type
    When the type is bound
    Then BindingError is raised with the original cause chained
    """
    with pytest.raises(BindingError) as exc_info:
        bind(BadPort, configuration)

    assert exc_info.value.field == "port"
    assert isinstance(exc_info.value.cause, ValueError)
    assert exc_info.value.__cause__ is exc_info.value.cause


def test_binding_is_deterministic_and_leaves_tree_unchanged(configuration: Configuration):
    """Test idempotent binding.

    Given a loaded configuration
    When the same type is bound twice
    Then both results are equal and the tree is untouched
    """
    before = configuration.to_dict()

    first = bind(AppConfig, configuration)
    second = bind(AppConfig, configuration)

    assert vars(first) == vars(second)
    assert configuration.to_dict() == before


def test_bind_into_existing_instance(configuration: Configuration):
    server = ServerConfig()
    server.port = 1

    result = bind(ServerConfig, configuration, instance=server)

    assert result is server
    assert server.port == 8080


def test_bind_beneath_explicit_path(configuration: Configuration):
    """Test explicit anchors.

    Given a type anchored at "." and a list element path
    When it is bound beneath app.services.1
    Then values come from that element
    """
    service = bind(ServiceConfig, configuration, path="app.services.1")

    assert service == ServiceConfig(name="billing", url="http://prod.billing")


def test_anchor_must_exist_and_be_a_path_node(configuration: Configuration):
    @config_path("app.nowhere")
    class Nowhere:
        value: Annotated[str, ConfigValue()] = ""

    @config_path("app.name")
    class NotAPath:
        value: Annotated[str, ConfigValue()] = ""

    with pytest.raises(ConfigurationError, match="not found"):
        bind(Nowhere, configuration)
    with pytest.raises(ConfigurationError, match="expected PATH"):
        bind(NotAPath, configuration)


def test_declared_path_relative_to_root(configuration: Configuration):
    @config_path("server")
    class RelativeServer:
        host: Annotated[str, ConfigValue()] = ""

    assert bind(RelativeServer, configuration).host == "prod.example.com"


def test_unloaded_configuration_rejected():
    root = PathNode("root")
    root.add_child(ValueNode("a", "1"))

    with pytest.raises(ConfigurationError, match="not loaded"):
        bind(ServerConfig, Configuration("demo", root))


def test_constructor_injection_and_method_invoke(configuration: Configuration):
    """Test constructor and method bindings.

    Given a class binding constructor parameters and marked methods
    When it is bound
    Then the constructor receives bound values and methods run in definition order
    """
    server = bind(ConstructedServer, configuration)

    assert server.host == "prod.example.com"
    assert server.port == 8080
    assert server.label == "default"
    assert server.calls == [("timeouts", 30, 3), ("finish", 8080)]


def test_method_with_missing_required_parameter(configuration: Configuration):
    @config_path("app")
    class Broken:
        @method_invoke("server.parameters")
        def apply(self, missing: Annotated[int, ConfigValue(required=True)]):
            raise AssertionError("should not be called")

    with pytest.raises(MissingValueError):
        bind(Broken, configuration)


def test_element_list_of_dicts(configuration: Configuration):
    @config_path("app")
    class Services:
        services: Annotated[List[dict], ConfigValue()] = []

    services = bind(Services, configuration)

    assert services.services[0] == {"name": "auth", "url": "http://prod.auth"}


def test_binding_table_is_cached():
    """Test compiled declarations.

    Given a bound class
    When its binding table is requested twice
    Then the same compiled table is returned
    """
    table = get_binding_table(ServerConfig)

    assert get_binding_table(ServerConfig) is table
    assert table.path == "app.server"
    assert [binding.field for binding in table.fields] == ["host", "port", "secure", "timeout", "retries", "region"]
    assert [binding.path for binding in table.fields][3:] == ["#timeout", "#retries", "@region"]
    assert get_binding_table(ConstructedServer).constructor_fields == frozenset({"host", "port"})


def test_describe_bindings_uses_docstrings():
    """Test binding description.

    Given a class documenting its attributes
    When its bindings are described
    Then each line shows type, source and description
    """
    text = describe_bindings(ServerConfig)

    lines = text.splitlines()
    assert lines[0].endswith("ServerConfig (path=app.server):")
    assert "    host(str, value 'host', required): Host name the server listens on" in lines
    assert "    timeout(int, parameter '#timeout'): Request timeout in seconds" in lines

    constructed = describe_bindings(ConstructedServer)
    assert "→ configure_timeouts(path=parameters):" in constructed
    assert "    timeout(int, value 'timeout', required): Request timeout" in constructed


def test_datetime_transformer_formats():
    """Test date-time transformers.

    Given ISO text, epoch milliseconds and text in a custom format
    When each is bound through a DateTimeTransformer
    Then all three become datetime values
    """
    data = {
        "header": {"name": "demo", "version": "1.0"},
        "root": {"iso": "2024-01-02T03:04:05", "epoch": "86400000", "custom": "02/01/2024"},
    }

    @config_path("root")
    class Stamps:
        iso: Annotated[datetime, ConfigValue(transformer=DateTimeTransformer)] = None
        epoch: Annotated[datetime, ConfigValue(transformer=DateTimeTransformer())] = None
        custom: Annotated[datetime, ConfigValue(transformer=DateTimeTransformer("%d/%m/%Y"))] = None

    stamps = bind(Stamps, parse_json(data))

    assert stamps.iso == datetime(2024, 1, 2, 3, 4, 5)
    assert stamps.epoch == datetime(1970, 1, 2, tzinfo=timezone.utc)
    assert stamps.custom == datetime(2024, 1, 2)


def test_transformer_given_as_import_path():
    """Test dotted transformer references.

    Given transformers named by their import path
    When the fields are bound
    Then the function is called directly and the class is instantiated first
    """
    data = {
        "header": {"name": "demo", "version": "1.0"},
        "root": {"properties": {"env": "dev"}, "name": "svc", "timeout": "1m30s"},
    }

    @config_path("root")
    class Named:
        name: Annotated[str, ConfigValue(transformer="tests.data.bindings.upper_transformer")] = ""
        timeout: Annotated[timedelta, ConfigValue(transformer="treeconf.transformers.DurationTransformer")] = None

    named = bind(Named, parse_json(data))

    assert named.name == "SVC@dev"
    assert named.timeout == timedelta(minutes=1, seconds=30)


def test_transformer_import_path_must_exist():
    data = {"header": {"name": "demo", "version": "1.0"}, "root": {"name": "svc"}}

    @config_path("root")
    class Broken:
        name: Annotated[str, ConfigValue(transformer="tests.data.bindings.no_such_transformer")] = ""

    with pytest.raises(BindingError) as exc_info:
        bind(Broken, parse_json(data))
    assert isinstance(exc_info.value.cause, ImportError)


def test_scalar_conversions():
    """Test scalar target types.

    Given string values in the tree
    When they are bound to Decimal, date, time, Path and Literal fields
    Then each value is parsed into the declared type
    """
    data = {
        "header": {"name": "demo", "version": "1.0"},
        "root": {
            "price": "19.99",
            "day": "2024-03-01",
            "at": "08:30:00",
            "home": "/var/lib/app",
            "mode": "fast",
        },
    }

    @config_path("root")
    class Scalars:
        price: Annotated[Decimal, ConfigValue()] = None
        day: Annotated[date, ConfigValue()] = None
        at: Annotated[time, ConfigValue()] = None
        home: Annotated[Path, ConfigValue()] = None
        mode: Annotated[Literal["slow", "fast"], ConfigValue()] = "slow"

    scalars = bind(Scalars, parse_json(data))

    assert scalars.price == Decimal("19.99")
    assert scalars.day == date(2024, 3, 1)
    assert scalars.at == time(8, 30)
    assert scalars.home == Path("/var/lib/app")
    assert scalars.mode == "fast"


def test_literal_rejects_unknown_option():
    data = {"header": {"name": "demo", "version": "1.0"}, "root": {"mode": "medium"}}

    @config_path("root")
    class Mode:
        mode: Annotated[Literal["slow", "fast"], ConfigValue()] = "slow"

    with pytest.raises(BindingError) as exc_info:
        bind(Mode, parse_json(data))
    assert exc_info.value.field == "mode"


def test_value_list_to_tuple_and_frozenset():
    """Test immutable collection targets.

    Given a value list
    When it is bound to tuple[int, ...] and frozenset[str] fields
    Then items keep their order in the tuple and are converted to the item type
    """
    data = {"header": {"name": "demo", "version": "1.0"}, "root": {"values": ["3", "1", "3"]}}

    @config_path("root")
    class Collections:
        ordered: Annotated[tuple[int, ...], ConfigValue("values")] = ()
        unique: Annotated[frozenset[str], ConfigValue("values")] = frozenset()

    collections = bind(Collections, parse_json(data))

    assert collections.ordered == (3, 1, 3)
    assert collections.unique == frozenset({"1", "3"})
