"""XML configuration parser.

Document layout::

    <configuration>
        <header name="demo" version="1.0">
            <description>Demo configuration</description>
            <createdBy user="admin" timestamp="2024-01-01T00:00:00"/>
        </header>
        <demo>
            <properties><env>prod</env></properties>
            <server host="${env}.example.com">
                <parameters><timeout>30</timeout></parameters>
            </server>
            <tags><tag>a</tag><tag>b</tag></tags>
        </demo>
    </configuration>

Element attributes become an attributes block, ``properties``/``parameters``
elements become key/value blocks and an element whose children (more than
one) all share the same tag becomes a list.
"""

import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional, Tuple

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

ENCRYPTED_ATTRIBUTE = "encrypted"


class XMLConfigParser(ConfigParser):
    """Parses XML configuration documents."""

    def parse_document(
        self, name: str, text: str, settings: ConfigurationSettings, version: Optional[Version]
    ) -> Configuration:
        try:
            document = ET.fromstring(text)
        except ET.ParseError as e:
            raise ConfigurationError(f"Malformed XML document: {e}") from e

        header: Optional[ET.Element] = None
        body: List[ET.Element] = []
        for element in document:
            if element.tag == HEADER_NODE:
                header = element
            else:
                body.append(element)
        if not body:
            raise ConfigurationError("Invalid configuration: no configuration body found")
        if len(body) > 1:
            raise ConfigurationError(
                f"Invalid configuration: expected one root node, found {[element.tag for element in body]}"
            )

        root = PathNode(body[0].tag)
        self._populate_path(root, body[0], settings)

        configuration = Configuration(name, root, settings=settings)
        self.apply_header(configuration, self._header_data(header) if header is not None else None, version)
        return configuration

    def _header_data(self, element: ET.Element) -> Dict[str, Any]:
        """Flatten the header element into plain data (attributes and child elements alike)."""
        data: Dict[str, Any] = dict(element.attrib)
        for child in element:
            if len(child) or child.attrib:
                data[child.tag] = self._header_data(child)
            else:
                data[child.tag] = (child.text or "").strip()
        return data

    def _populate_path(self, node: PathNode, element: ET.Element, settings: ConfigurationSettings) -> None:
        if element.attrib:
            attributes = AttributesNode(settings.attributes_node_name)
            for key, value in element.attrib.items():
                text, encrypted = self._scalar(value, settings)
                attributes.add_key_value(key, text, encrypted=encrypted)
            node.add_child(attributes)
        for child in element:
            self._build_node(node, child, settings)

    def _build_node(self, parent: PathNode, element: ET.Element, settings: ConfigurationSettings) -> None:
        name = element.tag
        if name == settings.properties_node_name:
            parent.set_properties(self._build_key_values(PropertiesNode(name), element, settings))
        elif name == settings.parameters_node_name:
            parent.add_child(self._build_key_values(ParametersNode(name), element, settings))
        elif self._is_leaf(element):
            text, encrypted = self._leaf_value(element, settings)
            parent.add_child(ValueNode(name, text, encrypted=encrypted))
        elif self._is_list(element):
            parent.add_child(self._build_list(element, settings))
        else:
            node = PathNode(name)
            parent.add_child(node)
            self._populate_path(node, element, settings)

    def _build_key_values(self, node: KeyValueNode, element: ET.Element, settings: ConfigurationSettings) -> KeyValueNode:
        for key, value in element.attrib.items():
            text, encrypted = self._scalar(value, settings)
            node.add_key_value(key, text, encrypted=encrypted)
        for child in element:
            if not self._is_leaf(child):
                raise ConfigurationError(f"Invalid value for '{node.name}.{child.tag}': only scalar values are allowed")
            text, encrypted = self._leaf_value(child, settings)
            node.add_key_value(child.tag, text, encrypted=encrypted)
        return node

    def _build_list(self, element: ET.Element, settings: ConfigurationSettings) -> Any:
        items = list(element)
        if all(self._is_leaf(item) for item in items):
            value_list = ListValueNode(element.tag)
            for item in items:
                text, encrypted = self._leaf_value(item, settings)
                value_list.add_value(text, encrypted=encrypted)
            return value_list
        element_list = ListElementNode(element.tag)
        for item in items:
            self._populate_path(element_list.add_element(), item, settings)
        return element_list

    @staticmethod
    def _is_leaf(element: ET.Element) -> bool:
        return len(element) == 0 and all(key == ENCRYPTED_ATTRIBUTE for key in element.attrib)

    @staticmethod
    def _is_list(element: ET.Element) -> bool:
        if element.attrib or len(element) < 2:
            return False
        return len({child.tag for child in element}) == 1

    def _leaf_value(self, element: ET.Element, settings: ConfigurationSettings) -> Tuple[str, bool]:
        text, encrypted = self._scalar((element.text or "").strip(), settings)
        if element.get(ENCRYPTED_ATTRIBUTE, "").lower() == "true":
            encrypted = True
        return text, encrypted

    @staticmethod
    def _scalar(value: str, settings: ConfigurationSettings) -> Tuple[str, bool]:
        if settings.is_encrypted(value):
            return settings.strip_encrypted(value), True
        return value, False
