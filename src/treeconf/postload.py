"""Post-load processing: scoped variable resolution, decryption and validation."""

import logging
from typing import Optional

from .configuration import Configuration
from .exceptions import ConfigurationError
from .nodes import ConfigNode, KeyValueNode, NodeType, PathNode, ValueNode, _ListNode
from .variables import PropertyScope, VariableResolver

logger = logging.getLogger(__name__)


class PostLoadProcessor:
    """Single depth-first pass over a freshly parsed tree."""

    def __init__(self, configuration: Configuration, resolver: Optional[VariableResolver] = None):
        """Initialize post-load processor.

        Args:
            configuration: Parsed, not yet loaded configuration
            resolver: Variable resolver  # (defaults to one honouring settings.use_environment)
        """
        self.configuration = configuration
        self.settings = configuration.settings
        self.resolver = resolver or VariableResolver(use_environment=self.settings.use_environment)
        self.replaced = 0  # (number of scalar values changed by the pass)

    def process(self) -> Configuration:
        """Resolve all variables in place, validate the tree and mark the configuration loaded.

        Returns:
            The loaded configuration

        Raises:
            ConfigurationError: If validation fails  # (configuration is left unloaded)
        """
        if self.configuration.loaded:
            raise ConfigurationError(f"Configuration '{self.configuration.name}' is already loaded")
        try:
            self._process_node(self.configuration.root, PropertyScope())
            self.configuration.root.validate()
        except ConfigurationError as e:
            self.configuration.error = e
            raise
        self.configuration.mark_loaded()
        logger.debug(
            "Configuration '%s' loaded: %d value(s) replaced during post-load", self.configuration.name, self.replaced
        )
        return self.configuration

    def _process_node(self, node: ConfigNode, scope: PropertyScope) -> None:
        """Recursively process a node with the scope inherited from its ancestors.

        Args:
            node: Node to process (scalars modified in-place)
            scope: Properties visible at this position
        """
        node_type = node.node_type
        if node_type is NodeType.PATH:
            self._process_path(node, scope)
        elif node_type.is_key_value:
            self._process_key_values(node, scope)
        elif node_type is NodeType.LIST_ELEMENT or node_type is NodeType.LIST_VALUE:
            self._process_list(node, scope)
        elif node_type is NodeType.VALUE:
            self._process_value(node, scope)

    def _process_path(self, node: PathNode, scope: PropertyScope) -> None:
        # Rebuild the scope for this subtree; siblings never see each other's properties.
        properties = node.properties
        if properties is not None:
            for value_node in properties.value_nodes():
                self._process_value(value_node, scope)
            scope = scope.derive(properties.to_dict())
        for child in node.children.values():
            self._process_node(child, scope)

    def _process_key_values(self, node: KeyValueNode, scope: PropertyScope) -> None:
        for value_node in node.value_nodes():
            self._process_value(value_node, scope)

    def _process_list(self, node: _ListNode, scope: PropertyScope) -> None:
        for element in node:
            self._process_node(element, scope)

    def _process_value(self, node: ValueNode, scope: PropertyScope) -> None:
        if node.encrypted:
            self._decrypt(node)
            if node.encrypted:
                return
        value = node.value
        if not value:
            return
        resolved = self.resolver.resolve(value, scope)
        if resolved != value:
            logger.debug("Resolved %s: %r -> %r", node.path, value, resolved)
            node.value = resolved
            self.replaced += 1

    def _decrypt(self, node: ValueNode) -> None:
        password = self.configuration.password
        decryptor = self.settings.decryptor
        if password is None or decryptor is None:
            logger.warning("Encrypted value %s left undecrypted: no password/decryptor configured", node.path)
            return
        try:
            node.value = decryptor(node.value, password)
        except Exception as e:
            raise ConfigurationError(f"Failed to decrypt value {node.path}: {e}") from e
        node.encrypted = False
