"""TreeConf - Hierarchical Configuration Framework.

Parses JSON, XML and YAML configuration documents into a node tree, resolves
scoped ``${name}`` variables and binds tree values onto annotated classes.
"""
# ruff: noqa: F401

import logging

from .binding import (
    BindingTable,
    ConfigAttribute,
    ConfigParam,
    ConfigValue,
    config_path,
    describe_bindings,
    get_binding_table,
    method_invoke,
)
from .component import ConfigurableComponent
from .configuration import Configuration, ConfigurationSettings, ModifiedBy, Version
from .exceptions import (
    BindingError,
    ConfigurationError,
    MissingValueError,
    PathNotFound,
    StateError,
    TreeConfError,
)
from .nodes import (
    AttributesNode,
    ConfigNode,
    KeyValueNode,
    ListElementNode,
    ListValueNode,
    NodeType,
    ParametersNode,
    PathNode,
    PropertiesNode,
    ValueNode,
)
from .parsers import ConfigFormat, ConfigParser, get_parser, load_configuration
from .postload import PostLoadProcessor
from .processor import BindingProcessor, bind
from .state import LifecycleState, ServiceState
from .transformers import DateTimeTransformer, DurationTransformer, Transformer
from .variables import PropertyScope, VariableResolver

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
