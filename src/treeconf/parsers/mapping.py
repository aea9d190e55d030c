"""Tree building for formats that decode to nested mappings and lists (JSON, YAML)."""

from abc import abstractmethod
from datetime import date, datetime
from typing import Any, Mapping, Optional, Tuple

from ..configuration import Configuration, ConfigurationSettings, Version
from ..exceptions import ConfigurationError
from ..nodes import (
    AttributesNode,
    KeyValueNode,
    ListElementNode,
    ListValueNode,
    ParametersNode,
    PathNode,
    PropertiesNode,
    ValueNode,
)
from .base import HEADER_NODE, ConfigParser


class MappingConfigParser(ConfigParser):
    """Builds the node tree from decoded mapping data.

    Layout: a ``header`` section plus exactly one body section whose key names
    the root node. Inside the body, mappings become path nodes (or properties/
    parameters/attributes blocks when named so by the settings), lists of
    scalars become value lists, lists of mappings become element lists and
    everything else becomes a scalar value.
    """

    @abstractmethod
    def load(self, text: str) -> Any:
        """Decode document text into plain data."""
        raise NotImplementedError

    def parse_document(
        self, name: str, text: str, settings: ConfigurationSettings, version: Optional[Version]
    ) -> Configuration:
        document = self.load(text)
        if not isinstance(document, Mapping):
            raise ConfigurationError("Invalid configuration: document must contain a mapping at the top level")

        body = [(key, value) for key, value in document.items() if key != HEADER_NODE]
        if not body:
            raise ConfigurationError("Invalid configuration: no configuration body found")
        if len(body) > 1:
            raise ConfigurationError(
                f"Invalid configuration: expected one root node, found {[str(key) for key, _ in body]}"
            )
        root_name, root_data = body[0]
        if not isinstance(root_data, Mapping):
            raise ConfigurationError(
                f"Invalid configuration node '{root_name}': [expected=object][actual={type(root_data).__name__}]"
            )

        root = PathNode(str(root_name))
        self._build_children(root, root_data, settings)

        configuration = Configuration(name, root, settings=settings)
        self.apply_header(configuration, document.get(HEADER_NODE), version)
        return configuration

    def _build_children(self, parent: PathNode, data: Mapping[str, Any], settings: ConfigurationSettings) -> None:
        for key, value in data.items():
            self._build_node(parent, str(key), value, settings)

    def _build_node(self, parent: PathNode, name: str, value: Any, settings: ConfigurationSettings) -> None:
        if isinstance(value, Mapping):
            if name == settings.properties_node_name:
                parent.set_properties(self._build_key_values(PropertiesNode(name), value, settings))
            elif name == settings.parameters_node_name:
                parent.add_child(self._build_key_values(ParametersNode(name), value, settings))
            elif name == settings.attributes_node_name:
                parent.add_child(self._build_key_values(AttributesNode(name), value, settings))
            else:
                node = PathNode(name)
                parent.add_child(node)
                self._build_children(node, value, settings)
        elif isinstance(value, list):
            parent.add_child(self._build_list(name, value, settings))
        else:
            text, encrypted = self._scalar(value, settings, name)
            parent.add_child(ValueNode(name, text, encrypted=encrypted))

    def _build_key_values(
        self, node: KeyValueNode, data: Mapping[str, Any], settings: ConfigurationSettings
    ) -> KeyValueNode:
        for key, value in data.items():
            if isinstance(value, (Mapping, list)):
                raise ConfigurationError(f"Invalid value for '{node.name}.{key}': only scalar values are allowed")
            text, encrypted = self._scalar(value, settings, str(key))
            node.add_key_value(str(key), text, encrypted=encrypted)
        return node

    def _build_list(self, name: str, items: list, settings: ConfigurationSettings) -> Any:
        if items and all(isinstance(item, Mapping) for item in items):
            element_list = ListElementNode(name)
            for item in items:
                element = element_list.add_element()
                self._build_children(element, item, settings)
            return element_list
        if any(isinstance(item, (Mapping, list)) for item in items):
            raise ConfigurationError(f"Invalid array '{name}': elements must be all scalars or all objects")
        value_list = ListValueNode(name)
        for item in items:
            text, encrypted = self._scalar(item, settings, name)
            value_list.add_value(text, encrypted=encrypted)
        return value_list

    def _scalar(self, value: Any, settings: ConfigurationSettings, name: str) -> Tuple[str, bool]:
        """Render a decoded scalar as (text, encrypted)."""
        if value is None:
            return "", False
        if isinstance(value, bool):
            return ("true" if value else "false"), False
        if isinstance(value, (datetime, date)):
            return value.isoformat(), False
        if isinstance(value, (int, float)):
            return str(value), False
        if isinstance(value, str):
            if settings.is_encrypted(value):
                return settings.strip_encrypted(value), True
            return value, False
        raise ConfigurationError(f"Unsupported value type for '{name}': {type(value).__name__}")
