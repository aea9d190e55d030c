"""Pytest configuration and shared fixtures for TreeConf tests."""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator

import pytest
import yaml
from treeconf import Configuration, ConfigurationSettings, get_parser

SAMPLE_DATA: Dict[str, Any] = {
    "header": {
        "name": "demo",
        "version": "1.2.0",
        "description": "Demo configuration",
        "createdBy": {"user": "admin", "timestamp": "2024-01-01T00:00:00"},
    },
    "app": {
        "properties": {"env": "prod", "domain": "example.com"},
        "name": "demo-app",
        "server": {
            "host": "${env}.${domain}",
            "port": "8080",
            "secure": "true",
            "parameters": {"timeout": "30", "retries": "3"},
            "@": {"region": "eu-west"},
        },
        "ports": ["80", "443", "8080"],
        "services": [
            {"name": "auth", "url": "http://${env}.auth"},
            {"name": "billing", "url": "http://${env}.billing"},
        ],
        "limits": {"maxConnections": "100", "timeout": "5s"},
    },
}

SAMPLE_XML = """\
<configuration>
    <header name="demo" version="1.2.0">
        <description>Demo configuration</description>
        <createdBy user="admin" timestamp="2024-01-01T00:00:00"/>
    </header>
    <app>
        <properties>
            <env>prod</env>
            <domain>example.com</domain>
        </properties>
        <name>demo-app</name>
        <server region="eu-west">
            <host>${env}.${domain}</host>
            <port>8080</port>
            <secure>true</secure>
            <parameters>
                <timeout>30</timeout>
                <retries>3</retries>
            </parameters>
        </server>
        <ports>
            <port>80</port>
            <port>443</port>
            <port>8080</port>
        </ports>
        <services>
            <service><name>auth</name><url>http://${env}.auth</url></service>
            <service><name>billing</name><url>http://${env}.billing</url></service>
        </services>
        <limits>
            <maxConnections>100</maxConnections>
            <timeout>5s</timeout>
        </limits>
    </app>
</configuration>
"""


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def sample_data() -> Dict[str, Any]:
    """Sample document as plain data (a fresh deep copy per test)."""
    return json.loads(json.dumps(SAMPLE_DATA))


@pytest.fixture
def settings() -> ConfigurationSettings:
    """Settings with the environment fallback disabled, so tests do not depend on os.environ."""
    return ConfigurationSettings(use_environment=False)


@pytest.fixture
def configuration(sample_data: Dict[str, Any], settings: ConfigurationSettings) -> Configuration:
    """Loaded configuration parsed from the JSON sample."""
    return get_parser("json").parse("demo", json.dumps(sample_data), settings=settings)


def write_json_file(file_path: Path, data: Dict[str, Any]) -> None:
    """Write data to JSON file.

    Args:
        file_path: Path to write file
        data: Data to write
    """
    with open(file_path, "w") as f:
        json.dump(data, f, indent=2)


def write_yaml_file(file_path: Path, data: Dict[str, Any]) -> None:
    """Write data to YAML file.

    Args:
        file_path: Path to write file
        data: Data to write
    """
    with open(file_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def parse_json(data: Dict[str, Any], name: str = "demo", **kwargs: Any) -> Configuration:
    """Parse plain data through the JSON parser.

    Args:
        data: Document data
        name: Expected configuration name
        **kwargs: Extra arguments for ConfigParser.parse
    """
    kwargs.setdefault("settings", ConfigurationSettings(use_environment=False))
    return get_parser("json").parse(name, json.dumps(data), **kwargs)


def set_env_vars(**env_vars: str) -> None:
    """Set environment variables.

    Args:
        **env_vars: Environment variables to set
    """
    for key, value in env_vars.items():
        os.environ[key] = value


def cleanup_env_vars(*var_names: str) -> None:
    """Clean up environment variables.

    Args:
        *var_names: Variable names to remove
    """
    for var_name in var_names:
        os.environ.pop(var_name, None)
