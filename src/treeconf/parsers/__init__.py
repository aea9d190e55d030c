"""Configuration parsers and the format registry."""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Type, Union

from ..configuration import Configuration, ConfigurationSettings, Version
from ..exceptions import ConfigurationError
from .base import ConfigParser
from .json_parser import JSONConfigParser
from .xml_parser import XMLConfigParser
from .yaml_parser import YAMLConfigParser

logger = logging.getLogger(__name__)


class ConfigFormat(Enum):
    """Supported document formats."""

    JSON = "json"
    XML = "xml"
    YAML = "yaml"

    @classmethod
    def from_filename(cls, filename: Union[str, Path]) -> "ConfigFormat":
        """Pick the format from a file extension.

        Raises:
            ConfigurationError: If the extension is not recognized
        """
        suffix = Path(filename).suffix.lower()
        if suffix in _SUFFIXES:
            return _SUFFIXES[suffix]
        raise ConfigurationError(f"Unsupported configuration file type: {filename}")


_SUFFIXES: Dict[str, ConfigFormat] = {
    ".json": ConfigFormat.JSON,
    ".xml": ConfigFormat.XML,
    ".yaml": ConfigFormat.YAML,
    ".yml": ConfigFormat.YAML,
}

_PARSERS: Dict[ConfigFormat, Type[ConfigParser]] = {
    ConfigFormat.JSON: JSONConfigParser,
    ConfigFormat.XML: XMLConfigParser,
    ConfigFormat.YAML: YAMLConfigParser,
}


def get_parser(format: Union[ConfigFormat, str], settings: Optional[ConfigurationSettings] = None) -> ConfigParser:
    """Create the parser for a format.

    Args:
        format: Format or its name  # (e.g., ConfigFormat.JSON or "yaml")
        settings: Default settings for the parser

    Returns:
        Parser instance
    """
    if isinstance(format, str):
        try:
            format = ConfigFormat(format.lower())
        except ValueError:
            raise ConfigurationError(f"Unsupported configuration format: {format}") from None
    return _PARSERS[format](settings)


def load_configuration(
    filename: Union[str, Path],
    name: str,
    version: Optional[Union[Version, str]] = None,
    settings: Optional[ConfigurationSettings] = None,
    password: Optional[str] = None,
) -> Configuration:
    """Load a configuration file, choosing the parser by extension.

    Args:
        filename: Path to a .json, .xml, .yaml or .yml file
        name: Expected configuration name
        version: Expected version  # (string versions are parsed)
        settings: Parse settings
        password: Password for encrypted values

    Returns:
        Loaded configuration

    Raises:
        ConfigurationError: If the file is missing, unsupported or invalid
    """
    path = Path(filename)
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")
    if isinstance(version, str):
        version = Version.parse(version)
    parser = get_parser(ConfigFormat.from_filename(path), settings)
    logger.debug("Loading configuration '%s' from %s", name, path)
    with open(path, "r", encoding="utf-8") as f:
        return parser.parse(name, f, settings=settings, version=version, password=password)


__all__ = [
    "ConfigFormat",
    "ConfigParser",
    "JSONConfigParser",
    "XMLConfigParser",
    "YAMLConfigParser",
    "get_parser",
    "load_configuration",
]
