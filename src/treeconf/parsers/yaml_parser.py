"""YAML configuration parser."""

from typing import Any

import yaml

from ..exceptions import ConfigurationError
from ..utils import load_yaml
from .mapping import MappingConfigParser


class YAMLConfigParser(MappingConfigParser):
    """Parses YAML configuration documents; every scalar is kept exactly as written."""

    def load(self, text: str) -> Any:
        try:
            return load_yaml(text)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Malformed YAML document: {e}") from e
