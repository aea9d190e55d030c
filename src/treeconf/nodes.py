"""Configuration node tree.

The tree is made of a small closed set of node variants, each carrying an
immutable :class:`NodeType` tag. Traversal code dispatches on that tag.
Parents are held through weak references: a node never owns its parent, the
owning direction is always parent -> child (and Configuration -> root).

Paths are dot-delimited. Besides plain child names a segment may be:

* a list index (``servers.0.host``),
* ``#KEY`` to read a value from the node's parameters block,
* ``@KEY`` to read a value from the node's attributes block.
"""

from __future__ import annotations

import weakref
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Mapping, Optional, Tuple

from .exceptions import ConfigurationError, PathNotFound

if TYPE_CHECKING:
    from .configuration import Configuration

PATH_SEPARATOR = "."
WILDCARD = "*"
PARAMETER_TAG = "#"
ATTRIBUTE_TAG = "@"

DEFAULT_PROPERTIES_NAME = "properties"
DEFAULT_PARAMETERS_NAME = "parameters"
DEFAULT_ATTRIBUTES_NAME = "@"


class NodeType(Enum):
    """Kinds of configuration nodes."""

    PATH = "path"
    PROPERTIES = "properties"
    KEY_VALUE = "key_value"
    PARAMETERS = "parameters"
    ATTRIBUTES = "attributes"
    VALUE = "value"
    LIST_ELEMENT = "list_element"
    LIST_VALUE = "list_value"

    @property
    def is_key_value(self) -> bool:
        return self in (NodeType.KEY_VALUE, NodeType.PROPERTIES, NodeType.PARAMETERS, NodeType.ATTRIBUTES)

    @property
    def is_list(self) -> bool:
        return self in (NodeType.LIST_ELEMENT, NodeType.LIST_VALUE)


def split_path(path: str) -> List[str]:
    """Split a dot-delimited path into segments.

    Args:
        path: Dot-delimited path  # (e.g., "root.server.host")

    Returns:
        List of segments, empty for an empty path

    Raises:
        ConfigurationError: If the path contains an empty segment
    """
    path = path.strip()
    if not path:
        return []
    segments = path.split(PATH_SEPARATOR)
    if any(not segment for segment in segments):
        raise ConfigurationError(f"Invalid path '{path}': empty segment")
    return segments


def check_name(name: str) -> str:
    """Validate a node name."""
    if not isinstance(name, str) or not name:
        raise ConfigurationError("Invalid node name: name is NULL/empty")
    if PATH_SEPARATOR in name or "/" in name:
        raise ConfigurationError(f"Invalid node name '{name}': name cannot contain '.' or '/'")
    return name


class ConfigNode:
    """Base class of every node in the configuration tree."""

    _node_type: NodeType

    def __init__(self, name: str):
        self._name = check_name(name)
        self._parent: Optional[weakref.ReferenceType] = None
        self._configuration: Optional[weakref.ReferenceType] = None

    @property
    def node_type(self) -> NodeType:
        return self._node_type

    @property
    def name(self) -> str:
        return self._name

    @property
    def parent(self) -> Optional["ConfigNode"]:
        return self._parent() if self._parent is not None else None

    @property
    def path(self) -> str:
        """Dot-delimited path from the root to this node."""
        names = []  # List[str] (node names from this node upwards)
        node: Optional[ConfigNode] = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return PATH_SEPARATOR.join(reversed(names))

    @property
    def absolute_path(self) -> str:
        """Slash-delimited path from the root to this node."""
        return "/" + self.path.replace(PATH_SEPARATOR, "/")

    @property
    def root(self) -> "ConfigNode":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    @property
    def configuration(self) -> Optional["Configuration"]:
        """Configuration owning the tree this node belongs to, if any."""
        ref = self.root._configuration
        return ref() if ref is not None else None

    def _attach(self, parent: "ConfigNode") -> None:
        if self.parent is not None:
            raise ConfigurationError(f"Node '{self.name}' already has a parent: {self.parent.path}")
        self._parent = weakref.ref(parent)

    def _detach(self) -> None:
        self._parent = None

    def _check_mutable(self) -> None:
        """Refuse structural changes once the owning configuration is loaded."""
        configuration = self.configuration
        if configuration is not None and configuration.loaded:
            raise ConfigurationError(f"Configuration '{configuration.name}' is loaded: cannot modify {self.path}")

    def find(self, path: str) -> "ConfigNode":
        """Find a node by path relative to this node.

        Args:
            path: Dot-delimited relative path  # (empty path returns this node)

        Returns:
            Node at the terminal segment  # (its .path equals the lookup path only for canonical paths:
                                          #  "server.#timeout" returns "server.parameters.timeout")

        Raises:
            PathNotFound: If any segment is absent
            ConfigurationError: If the path itself is malformed  # (empty segment, e.g. "a..b")
        """
        current: ConfigNode = self
        for segment in split_path(path):
            child = current._child(segment)
            if child is None:
                raise PathNotFound(path, segment)
            current = child
        return current

    def search(self, path: str) -> List["ConfigNode"]:
        """Find every node matching a path which may contain ``*`` segments.

        Args:
            path: Dot-delimited relative path with optional wildcard segments

        Returns:
            Matching nodes in tree order  # (empty list when nothing matches)
        """
        matches: List[ConfigNode] = [self]
        for segment in split_path(path):
            next_matches: List[ConfigNode] = []
            for node in matches:
                if segment == WILDCARD:
                    next_matches.extend(node._iter_children())
                else:
                    child = node._child(segment)
                    if child is not None:
                        next_matches.append(child)
            matches = next_matches
        return matches

    def _child(self, segment: str) -> Optional["ConfigNode"]:
        return None

    def _iter_children(self) -> Iterator["ConfigNode"]:
        return iter(())

    def validate(self) -> None:
        """Check structural invariants of this node and its subtree; never repairs."""
        check_name(self._name)

    def to_data(self) -> Any:
        """Convert this subtree to plain Python data."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.path!r})"


class ValueNode(ConfigNode):
    """A single scalar value."""

    _node_type = NodeType.VALUE

    def __init__(self, name: str, value: Optional[str] = "", encrypted: bool = False):
        super().__init__(name)
        self._value = "" if value is None else str(value)
        self.encrypted = encrypted

    @property
    def value(self) -> str:
        return self._value

    @value.setter
    def value(self, value: Optional[str]) -> None:
        # Scalar replacement is allowed after loading; only structure is frozen.
        self._value = "" if value is None else str(value)

    @property
    def is_empty(self) -> bool:
        return not self._value

    def to_data(self) -> str:
        return self._value

    def __repr__(self) -> str:
        return f"ValueNode({self.path!r}, {self._value!r})"


class KeyValueNode(ConfigNode):
    """A flat block mapping keys to scalar value nodes."""

    _node_type = NodeType.KEY_VALUE

    def __init__(self, name: str, values: Optional[Mapping[str, str]] = None):
        super().__init__(name)
        self._values: Dict[str, ValueNode] = {}
        for key, value in (values or {}).items():
            self.add_key_value(key, value)

    def add_key_value(self, key: str, value: Optional[str], encrypted: bool = False) -> ValueNode:
        """Add a key, or replace the value of an existing key.

        Args:
            key: Entry key  # (same naming rules as node names)
            value: Scalar value
            encrypted: Whether the value is stored encrypted

        Returns:
            Value node holding the entry
        """
        node = self._values.get(key)
        if node is not None:
            node.value = value
            node.encrypted = encrypted
            return node
        self._check_mutable()
        node = ValueNode(key, value, encrypted=encrypted)
        node._attach(self)
        self._values[key] = node
        return node

    def remove_key(self, key: str) -> bool:
        self._check_mutable()
        node = self._values.pop(key, None)
        if node is None:
            return False
        node._detach()
        return True

    def has_key(self, key: str) -> bool:
        return key in self._values

    def get_value(self, key: str) -> Optional[str]:
        node = self._values.get(key)
        return node.value if node is not None else None

    def get_node(self, key: str) -> Optional[ValueNode]:
        return self._values.get(key)

    def keys(self) -> List[str]:
        return list(self._values.keys())

    def items(self) -> List[Tuple[str, str]]:
        return [(key, node.value) for key, node in self._values.items()]

    def value_nodes(self) -> List[ValueNode]:
        return list(self._values.values())

    @property
    def is_empty(self) -> bool:
        return not self._values

    def __len__(self) -> int:
        return len(self._values)

    def to_dict(self) -> Dict[str, str]:
        return dict(self.items())

    def _child(self, segment: str) -> Optional[ConfigNode]:
        return self._values.get(segment)

    def _iter_children(self) -> Iterator[ConfigNode]:
        return iter(list(self._values.values()))

    def validate(self) -> None:
        super().validate()
        for key, node in self._values.items():
            if node.node_type is not NodeType.VALUE or node.name != key:
                raise ConfigurationError(f"Invalid key/value entry '{key}' in {self.path}")

    def to_data(self) -> Dict[str, str]:
        return self.to_dict()


class PropertiesNode(KeyValueNode):
    """Variable definitions visible to the owning path node and its subtree."""

    _node_type = NodeType.PROPERTIES

    def __init__(self, name: str = DEFAULT_PROPERTIES_NAME, values: Optional[Mapping[str, str]] = None):
        super().__init__(name, values)


class ParametersNode(KeyValueNode):
    """Flat parameter block of a path node."""

    _node_type = NodeType.PARAMETERS

    def __init__(self, name: str = DEFAULT_PARAMETERS_NAME, values: Optional[Mapping[str, str]] = None):
        super().__init__(name, values)


class AttributesNode(KeyValueNode):
    """Attribute block of a path node (XML element attributes)."""

    _node_type = NodeType.ATTRIBUTES

    def __init__(self, name: str = DEFAULT_ATTRIBUTES_NAME, values: Optional[Mapping[str, str]] = None):
        super().__init__(name, values)


class PathNode(ConfigNode):
    """Namespace node holding uniquely named children."""

    _node_type = NodeType.PATH

    def __init__(self, name: str):
        super().__init__(name)
        self._children: Dict[str, ConfigNode] = {}
        self._properties: Optional[PropertiesNode] = None

    @property
    def children(self) -> Mapping[str, ConfigNode]:
        return MappingProxyType(self._children)

    @property
    def properties(self) -> Optional[PropertiesNode]:
        return self._properties

    def set_properties(self, node: PropertiesNode) -> PropertiesNode:
        """Attach the properties block defining this subtree's variable scope."""
        self._check_mutable()
        if node.node_type is not NodeType.PROPERTIES:
            raise ConfigurationError(f"Expected a properties node, got {node.node_type.name}")
        if self._properties is not None:
            raise ConfigurationError(f"Properties already defined for {self.path}")
        node._attach(self)
        self._properties = node
        return node

    @property
    def parameters(self) -> Optional[ParametersNode]:
        return self._first_child_of(NodeType.PARAMETERS)

    @property
    def attributes(self) -> Optional[AttributesNode]:
        return self._first_child_of(NodeType.ATTRIBUTES)

    def _first_child_of(self, node_type: NodeType) -> Optional[Any]:
        for child in self._children.values():
            if child.node_type is node_type:
                return child
        return None

    def add_child(self, node: ConfigNode) -> ConfigNode:
        """Attach a child node.

        Args:
            node: Child to attach  # (properties nodes become this node's scope)

        Returns:
            The attached node

        Raises:
            ConfigurationError: If a child with the same name exists or the configuration is loaded
        """
        if node.node_type is NodeType.PROPERTIES:
            return self.set_properties(node)
        self._check_mutable()
        if node.name in self._children:
            raise ConfigurationError(f"Duplicate node name '{node.name}' under {self.path}")
        node._attach(self)
        self._children[node.name] = node
        return node

    def get_child(self, name: str) -> Optional[ConfigNode]:
        return self._children.get(name)

    def remove_child(self, name: str) -> bool:
        """Detach a child; the removed node becomes the root of its own subtree."""
        self._check_mutable()
        node = self._children.pop(name, None)
        if node is None:
            return False
        node._detach()
        return True

    def _child(self, segment: str) -> Optional[ConfigNode]:
        child = self._children.get(segment)
        if child is not None:
            return child
        if self._properties is not None and segment == self._properties.name:
            return self._properties
        if len(segment) > 1 and segment.startswith(PARAMETER_TAG):
            parameters = self.parameters
            return parameters.get_node(segment[1:]) if parameters is not None else None
        if len(segment) > 1 and segment.startswith(ATTRIBUTE_TAG):
            attributes = self.attributes
            return attributes.get_node(segment[1:]) if attributes is not None else None
        return None

    def _iter_children(self) -> Iterator[ConfigNode]:
        return iter(list(self._children.values()))

    def validate(self) -> None:
        super().validate()
        if self._properties is not None:
            self._properties.validate()
        for name, child in self._children.items():
            if child.name != name or child.parent is not self:
                raise ConfigurationError(f"Corrupted child link '{name}' under {self.path}")
            child.validate()

    def to_data(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self._properties is not None:
            data[self._properties.name] = self._properties.to_data()
        for name, child in self._children.items():
            data[name] = child.to_data()
        return data


class _ListNode(ConfigNode):
    """Ordered sequence of child nodes named by their index."""

    def __init__(self, name: str):
        super().__init__(name)
        self._items: List[ConfigNode] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ConfigNode]:
        return iter(list(self._items))

    def __getitem__(self, index: int) -> ConfigNode:
        return self._items[index]

    @property
    def is_empty(self) -> bool:
        return not self._items

    def _append(self, node: ConfigNode) -> ConfigNode:
        self._check_mutable()
        if node.name != str(len(self._items)):
            raise ConfigurationError(f"List element of {self.path} must be named '{len(self._items)}', got '{node.name}'")
        node._attach(self)
        self._items.append(node)
        return node

    def _child(self, segment: str) -> Optional[ConfigNode]:
        if segment.isdigit():
            index = int(segment)
            if index < len(self._items):
                return self._items[index]
        return None

    def _iter_children(self) -> Iterator[ConfigNode]:
        return iter(list(self._items))

    def validate(self) -> None:
        super().validate()
        for index, node in enumerate(self._items):
            if node.name != str(index):
                raise ConfigurationError(f"List element {index} of {self.path} is misnamed '{node.name}'")
            node.validate()

    def to_data(self) -> List[Any]:
        return [node.to_data() for node in self._items]


class ListValueNode(_ListNode):
    """Homogeneous list of scalar values."""

    _node_type = NodeType.LIST_VALUE

    def add_value(self, value: Optional[str], encrypted: bool = False) -> ValueNode:
        node = ValueNode(str(len(self._items)), value, encrypted=encrypted)
        self._append(node)
        return node

    def scalar_values(self) -> List[str]:
        return [node.value for node in self._items]

    def validate(self) -> None:
        for node in self._items:
            if node.node_type is not NodeType.VALUE:
                raise ConfigurationError(f"Value list {self.path} contains a {node.node_type.name} node")
        super().validate()


class ListElementNode(_ListNode):
    """List of structured elements."""

    _node_type = NodeType.LIST_ELEMENT

    def add_element(self, node: Optional[ConfigNode] = None) -> ConfigNode:
        """Append an element; a new path node is created when none is given."""
        if node is None:
            node = PathNode(str(len(self._items)))
        self._append(node)
        return node

    def validate(self) -> None:
        for node in self._items:
            if node.node_type is NodeType.VALUE:
                raise ConfigurationError(f"Element list {self.path} contains a scalar value node")
        super().validate()
