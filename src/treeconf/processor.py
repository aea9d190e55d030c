"""Binding processor: walks a binding table against the node tree."""

import inspect
import logging
from typing import Any, Dict, Optional, Type

from .binding import BindingTable, FieldBinding, get_binding_table
from .configuration import Configuration
from .exceptions import BindingError, ConfigurationError, MissingValue, MissingValueError, PathNotFound, TreeConfError
from .nodes import ConfigNode, KeyValueNode, ListElementNode, ListValueNode, NodeType, PathNode
from .transformers import resolve_transformer
from .utils import collection_info, convert_scalar, format_type, mapping_info, unwrap_optional
from .variables import PropertyScope

logger = logging.getLogger(__name__)

_SELF_PATHS = (None, "", ".")


def scope_at(node: ConfigNode) -> PropertyScope:
    """Properties visible at a node: the properties of every ancestor path node, innermost wins."""
    chain = []  # List[PathNode] (path nodes from the node up to the root)
    current: Optional[ConfigNode] = node
    while current is not None:
        if current.node_type is NodeType.PATH:
            chain.append(current)
        current = current.parent
    scope = PropertyScope()
    for path_node in reversed(chain):
        if path_node.properties is not None:
            scope = scope.derive(path_node.properties.to_dict())
    return scope


class BindingProcessor:
    """Binds loaded configuration trees onto annotated classes.

    The tree is only read, so binding the same type against the same tree
    always yields equal objects.
    """

    def bind(
        self,
        target_type: Type[Any],
        configuration: Configuration,
        instance: Any = None,
        path: Optional[str] = None,
    ) -> Any:
        """Bind a configuration onto a type.

        Args:
            target_type: Class declaring bindings
            configuration: Loaded configuration
            instance: Existing object to populate  # (a new one is constructed when None)
            path: Absolute node path the type's anchor is resolved beneath  # (e.g., "app.services.0")

        Returns:
            Bound instance

        Raises:
            ConfigurationError: If the configuration is not loaded, the anchor is invalid or a required value is missing
            BindingError: If a value cannot be converted or a transformer fails
        """
        if not configuration.loaded:
            raise ConfigurationError(f"Configuration '{configuration.name}' is not loaded")
        table = get_binding_table(target_type)
        if path:
            base = self._find(configuration, path)
            anchor = base if table.path in _SELF_PATHS else self._find_relative(base, table.path)
        elif table.path in _SELF_PATHS:
            anchor = configuration.root
        else:
            anchor = self._find_declared(configuration, table.path)
        return self._bind_table(table, self._require_path_node(anchor, target_type), instance)

    def bind_node(self, target_type: Type[Any], node: ConfigNode, instance: Any = None) -> Any:
        """Bind a type at a node; the type's own anchor path is resolved beneath it."""
        table = get_binding_table(target_type)
        anchor = node if table.path in _SELF_PATHS else self._find_relative(node, table.path)
        return self._bind_table(table, self._require_path_node(anchor, target_type), instance)

    def _find(self, configuration: Configuration, path: str) -> ConfigNode:
        try:
            return configuration.find(path)
        except PathNotFound as e:
            raise ConfigurationError(f"Binding path not found: {path}") from e

    def _find_relative(self, node: ConfigNode, path: str) -> ConfigNode:
        try:
            return node.find(path)
        except PathNotFound as e:
            raise ConfigurationError(f"Binding path not found: {node.path}.{path}") from e

    def _find_declared(self, configuration: Configuration, path: str) -> ConfigNode:
        """Declared anchors may be absolute (starting at the root name) or relative to the root."""
        try:
            return configuration.find(path)
        except PathNotFound:
            return self._find_relative(configuration.root, path)

    @staticmethod
    def _require_path_node(node: ConfigNode, target_type: Type[Any]) -> PathNode:
        if node.node_type is not NodeType.PATH:
            raise ConfigurationError(
                f"Cannot bind {target_type.__name__}: {node.path} is a {node.node_type.name} node, expected PATH"
            )
        return node

    def _bind_table(self, table: BindingTable, anchor: PathNode, instance: Any) -> Any:
        skip = frozenset()
        if instance is None:
            kwargs = self._collect(table.constructor, anchor, table.target_type)
            instance = self._construct(table.target_type, kwargs)
            skip = table.constructor_fields

        for binding in table.fields:
            if binding.field in skip:
                continue
            found, value = self._resolve(binding, anchor, table.target_type)
            if found:
                setattr(instance, binding.field, value)

        for method in table.methods:
            node = self._locate(anchor, method.path) if method.path else anchor
            kwargs = self._collect(method.parameters, node, table.target_type, anchor_path=f"{anchor.path}.{method.path}")
            try:
                getattr(instance, method.name)(**kwargs)
            except TreeConfError:
                raise
            except Exception as e:
                raise BindingError(
                    f"Method {table.target_type.__name__}.{method.name} failed at {anchor.path}", e, field=method.name
                ) from e

        logger.debug("Bound %s at %s", table.target_type.__name__, anchor.path)
        return instance

    def _construct(self, target_type: Type[Any], kwargs: Dict[str, Any]) -> Any:
        try:
            return target_type(**kwargs)
        except TreeConfError:
            raise
        except Exception as e:
            raise BindingError(f"Cannot construct {target_type.__name__}", e) from e

    def _collect(
        self,
        bindings: list,
        node: Optional[ConfigNode],
        target_type: Type[Any],
        anchor_path: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Resolve a list of bindings into keyword arguments; absent optional values are left out."""
        kwargs: Dict[str, Any] = {}
        for binding in bindings:
            if node is None:
                if binding.required:
                    self._missing(binding, anchor_path or "", target_type)
                continue
            found, value = self._resolve(binding, node, target_type)
            if found:
                kwargs[binding.field] = value
        return kwargs

    @staticmethod
    def _locate(anchor: ConfigNode, path: str) -> Optional[ConfigNode]:
        try:
            return anchor.find(path)
        except PathNotFound:
            return None

    def _missing(self, binding: FieldBinding, node_path: str, target_type: Type[Any]) -> None:
        raise MissingValueError(
            MissingValue(
                field=f"{target_type.__name__}.{binding.field}",
                name=binding.marker.name or binding.field,
                node_path=node_path,
                kind=binding.kind,
            )
        )

    def _resolve(self, binding: FieldBinding, anchor: PathNode, target_type: Type[Any]) -> tuple[bool, Any]:
        """Look up and convert one binding.

        Returns:
            (found, value)  # (found is False for absent or empty optional values)
        """
        node = self._locate(anchor, binding.path)
        if node is None or getattr(node, "is_empty", False):
            if binding.required:
                self._missing(binding, f"{anchor.path}.{binding.path}", target_type)
            return False, None
        try:
            return True, self._convert(node, binding.type, binding)
        except TreeConfError:
            raise
        except Exception as e:
            raise BindingError(
                f"Cannot bind {target_type.__name__}.{binding.field} from {node.path}", e, field=binding.field
            ) from e

    def _convert(self, node: ConfigNode, type_annotation: Any, binding: Optional[FieldBinding] = None) -> Any:
        """Convert a node to the declared type.

        Args:
            node: Source node
            type_annotation: Declared type of the receiving field
            binding: Field binding  # (supplies the transformer, if any)

        Returns:
            Converted value
        """
        type_annotation = unwrap_optional(type_annotation)
        node_type = node.node_type
        transform = None
        if binding is not None and binding.transformer is not None:
            transform = resolve_transformer(binding.transformer)

        if node_type is NodeType.VALUE:
            if transform is not None:
                return transform(node.value, scope_at(node))
            return convert_scalar(node.value, type_annotation)
        if node_type is NodeType.LIST_VALUE:
            return self._convert_value_list(node, type_annotation, transform)
        if node_type is NodeType.LIST_ELEMENT:
            return self._convert_element_list(node, type_annotation)
        if node_type is NodeType.PATH:
            return self._convert_path(node, type_annotation)
        if node_type.is_key_value:
            return self._convert_key_values(node, type_annotation)
        raise TypeError(f"Cannot convert {node_type.name} node to {format_type(type_annotation)}")

    def _convert_value_list(self, node: ListValueNode, type_annotation: Any, transform: Any) -> Any:
        info = collection_info(type_annotation)
        if info is None:
            if type_annotation is not Any:
                raise TypeError(f"Cannot convert a value list to {format_type(type_annotation)}")
            info = (list, Any)
        collection_type, item_type = info
        scope = scope_at(node) if transform is not None else None
        items = [
            transform(item.value, scope) if transform is not None else convert_scalar(item.value, item_type)
            for item in node
        ]
        return collection_type(items)

    def _convert_element_list(self, node: ListElementNode, type_annotation: Any) -> Any:
        info = collection_info(type_annotation)
        if info is None:
            if type_annotation is not Any:
                raise TypeError(f"Cannot convert an element list to {format_type(type_annotation)}")
            info = (list, Any)
        collection_type, item_type = info
        return collection_type(self._convert(element, item_type) for element in node)

    def _convert_path(self, node: PathNode, type_annotation: Any) -> Any:
        if type_annotation is Any or mapping_info(type_annotation) is not None:
            _, value_type = mapping_info(type_annotation) or (str, Any)
            return {name: self._convert(child, value_type) for name, child in node.children.items()}
        if inspect.isclass(type_annotation) and get_binding_table(type_annotation).is_bindable:
            return self.bind_node(type_annotation, node)
        raise TypeError(f"Cannot convert a path node to {format_type(type_annotation)}")

    def _convert_key_values(self, node: KeyValueNode, type_annotation: Any) -> Dict[str, Any]:
        info = mapping_info(type_annotation)
        if info is None:
            if type_annotation is not Any:
                raise TypeError(f"Cannot convert a {node.node_type.name} block to {format_type(type_annotation)}")
            info = (str, Any)
        _, value_type = info
        return {key: convert_scalar(value, value_type) for key, value in node.items()}


_processor = BindingProcessor()


def bind(target_type: Type[Any], configuration: Configuration, instance: Any = None, path: Optional[str] = None) -> Any:
    """Bind a loaded configuration onto ``target_type``; see :meth:`BindingProcessor.bind`."""
    return _processor.bind(target_type, configuration, instance=instance, path=path)
