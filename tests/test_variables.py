"""Test cases for variable detection and resolution."""

import pytest
from treeconf import PropertyScope, VariableResolver
from tests.conftest import cleanup_env_vars, set_env_vars


@pytest.fixture
def resolver() -> VariableResolver:
    return VariableResolver(environ={})


def test_value_without_tokens_is_unchanged(resolver: VariableResolver):
    """Test resolution identity.

    Given strings without variable tokens
    When they are resolved
    Then they are returned unchanged
    """
    scope = PropertyScope({"env": "prod"})

    for value in ["plain", "", "$env", "${", "{env}"]:
        assert resolver.resolve(value, scope) == value
    assert resolver.resolve(None, scope) is None


def test_scope_substitution(resolver: VariableResolver):
    """Test substitution from scope.

    Given env=prod in scope
    When ${env}.example.com is resolved
    Then the result is prod.example.com
    """
    scope = PropertyScope({"env": "prod"})

    assert resolver.resolve("${env}.example.com", scope) == "prod.example.com"
    assert resolver.resolve("${ env }", scope) == "prod"


def test_unresolved_tokens_pass_through(resolver: VariableResolver):
    """Test passthrough of unknown variables.

    Given a scope without x
    When ${x} is resolved
    Then the token is left intact and other tokens are still substituted
    """
    scope = PropertyScope({"env": "prod"})

    assert resolver.resolve("${x}", scope) == "${x}"
    assert resolver.resolve("${env}-${x}", scope) == "prod-${x}"


def test_empty_values_count_as_absent(resolver: VariableResolver):
    scope = PropertyScope({"env": ""})

    assert resolver.resolve("${env}", scope) == "${env}"


def test_resolution_is_single_pass_and_idempotent(resolver: VariableResolver):
    """Test single-pass resolution.

    Given a property whose value itself contains a token
    When resolution is repeated on a fully resolved string
    Then substituted text is not re-scanned and a second pass changes nothing
    """
    scope = PropertyScope({"a": "${b}", "b": "value", "env": "prod"})

    assert resolver.resolve("${a}", scope) == "${b}"
    resolved = resolver.resolve("${env}.example.com", scope)
    assert resolver.resolve(resolved, scope) == resolved


def test_variables_in_order_of_occurrence():
    assert VariableResolver.variables("${a}-${b}-${a}") == ["a", "b", "a"]
    assert VariableResolver.variables("none") == []
    assert VariableResolver.has_variable("x ${y} z")
    assert not VariableResolver.has_variable("x $y z")


def test_environment_fallback():
    """Test environment lookup.

    Given TREECONF_TEST_HOST in the process environment
    When a value referencing it is resolved with an empty scope
    Then the environment value is used, unless the environment is disabled
    """
    set_env_vars(TREECONF_TEST_HOST="db.local")
    try:
        assert VariableResolver().resolve("${TREECONF_TEST_HOST}", PropertyScope()) == "db.local"
        assert VariableResolver(use_environment=False).resolve("${TREECONF_TEST_HOST}") == "${TREECONF_TEST_HOST}"
        # Scope wins over environment
        scope = PropertyScope({"TREECONF_TEST_HOST": "scoped"})
        assert VariableResolver().resolve("${TREECONF_TEST_HOST}", scope) == "scoped"
    finally:
        cleanup_env_vars("TREECONF_TEST_HOST")


def test_scope_derive_is_copy_on_descend():
    """Test scope layering.

    Given a parent scope
    When a child scope is derived with overriding entries
    Then the child sees local values first and the parent is unchanged
    """
    parent = PropertyScope({"env": "dev", "region": "eu"})

    child = parent.derive({"env": "prod"})

    assert dict(child) == {"env": "prod", "region": "eu"}
    assert dict(parent) == {"env": "dev", "region": "eu"}
    assert parent.derive({}) is parent
