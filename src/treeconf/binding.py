"""Declarative binding of configuration nodes onto Python classes.

A class opts in with field annotations carrying a marker::

    @config_path("app.server")
    class ServerConfig:
        host: Annotated[str, ConfigValue(required=True)]
        port: Annotated[int, ConfigValue("listen.port")] = 8080
        timeout: Annotated[int, ConfigParam("#timeout")] = 30
        region: Annotated[str, ConfigAttribute("@region")] = ""

        @method_invoke("limits")
        def set_limits(self, max_connections: Annotated[int, ConfigValue(required=True)]): ...

The declarations of a class are compiled once into a :class:`BindingTable`.
"""

import functools
import inspect
from dataclasses import dataclass, field
from typing import Any, Annotated, Callable, ClassVar, List, Optional, Type, get_args, get_origin, get_type_hints

import docstring_parser

from .exceptions import BindingError
from .nodes import ATTRIBUTE_TAG, PARAMETER_TAG, PATH_SEPARATOR
from .utils import format_type, object_display_name

CONFIG_PATH_ATTRIBUTE = "__config_path__"
METHOD_INVOKE_ATTRIBUTE = "__method_invoke__"


@dataclass(frozen=True)
class ConfigValue:
    """Bind a field to the node at ``name`` (dot path relative to the anchor).

    Attributes:
        name: Node path  # (defaults to the field name)
        required: Fail when the node is absent or empty
        transformer: Custom conversion  # (Transformer instance/class, callable or dotted import path)
    """

    name: Optional[str] = None
    required: bool = False
    transformer: Any = None

    kind: ClassVar[str] = "value"
    tag: ClassVar[Optional[str]] = None

    def lookup_path(self, field_name: str) -> str:
        """Path of the bound node relative to the anchor."""
        name = self.name or field_name
        if self.tag is None:
            return name
        # "sub.path#KEY" -> "sub.path.#KEY", "KEY" -> "#KEY"
        prefix, tag, key = name.rpartition(self.tag)
        if not tag:
            return self.tag + name
        return f"{prefix}{PATH_SEPARATOR}{self.tag}{key}" if prefix else self.tag + key


@dataclass(frozen=True)
class ConfigParam(ConfigValue):
    """Bind a field to an entry of a parameters block (``KEY`` or ``sub.path#KEY``)."""

    kind: ClassVar[str] = "parameter"
    tag: ClassVar[Optional[str]] = PARAMETER_TAG


@dataclass(frozen=True)
class ConfigAttribute(ConfigValue):
    """Bind a field to an entry of an attributes block (``KEY`` or ``sub.path@KEY``)."""

    kind: ClassVar[str] = "attribute"
    tag: ClassVar[Optional[str]] = ATTRIBUTE_TAG


def config_path(path: str = "."):
    """Class decorator declaring where a type is anchored in the tree.

    Args:
        path: Anchor path  # ("." binds at whatever node the type is bound to)
    """

    def decorator(cls):
        setattr(cls, CONFIG_PATH_ATTRIBUTE, path)
        return cls

    return decorator


def method_invoke(path: Any = ""):
    """Mark a method to be called after field binding.

    Usable bare (``@method_invoke``) or with a path relative to the anchor
    (``@method_invoke("limits")``). Parameters are bound like fields: annotate
    them with a marker, unannotated parameters bind by their own name.
    """
    if callable(path):
        setattr(path, METHOD_INVOKE_ATTRIBUTE, "")
        return path

    def decorator(func):
        setattr(func, METHOD_INVOKE_ATTRIBUTE, path or "")
        return func

    return decorator


@dataclass
class FieldBinding:
    """One compiled field (or parameter) binding."""

    field: str
    marker: ConfigValue
    type: Any
    required: bool
    path: str  # (lookup path relative to the anchor)

    @property
    def kind(self) -> str:
        return self.marker.kind

    @property
    def transformer(self) -> Any:
        return self.marker.transformer


@dataclass
class MethodBinding:
    """A ``@method_invoke`` method and its parameter bindings."""

    name: str
    path: str
    parameters: List[FieldBinding] = field(default_factory=list)


@dataclass
class BindingTable:
    """Compiled binding declarations of one type."""

    target_type: Type[Any]
    path: Optional[str]
    fields: List[FieldBinding] = field(default_factory=list)
    constructor: List[FieldBinding] = field(default_factory=list)
    methods: List[MethodBinding] = field(default_factory=list)

    @property
    def is_bindable(self) -> bool:
        return self.path is not None or bool(self.fields or self.constructor or self.methods)

    @property
    def constructor_fields(self) -> frozenset:
        return frozenset(binding.field for binding in self.constructor)


def get_marker(annotation: Any) -> tuple[Any, Optional[ConfigValue]]:
    """Split an annotation into (inner type, marker).

    Args:
        annotation: Type annotation, possibly ``Annotated[T, ConfigValue(...)]``

    Returns:
        Inner type and the first binding marker found  # (marker is None for plain annotations)
    """
    if get_origin(annotation) is Annotated:
        inner, *metadata = get_args(annotation)
        for item in metadata:
            if isinstance(item, ConfigValue):
                return inner, item
        return inner, None
    return annotation, None


def _type_hints(obj: Any) -> dict:
    try:
        return get_type_hints(obj, include_extras=True)
    except Exception as e:
        raise BindingError(f"Cannot resolve annotations of {object_display_name(obj)}", e) from e


def _compile_field(name: str, annotation: Any, marker: ConfigValue, required: Optional[bool] = None) -> FieldBinding:
    return FieldBinding(
        field=name,
        marker=marker,
        type=annotation,
        required=marker.required if required is None else required,
        path=marker.lookup_path(name),
    )


def _compile_parameters(func: Callable, annotated_only: bool) -> List[FieldBinding]:
    """Compile the parameters of a callable (``self`` and variadics excluded)."""
    hints = _type_hints(func)
    bindings: List[FieldBinding] = []
    for index, param in enumerate(inspect.signature(func).parameters.values()):
        if index == 0 and param.name in ("self", "cls"):
            continue
        if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
            continue
        annotation, marker = get_marker(hints.get(param.name, Any))
        if marker is None:
            if annotated_only:
                continue
            marker = ConfigValue()
        has_default = param.default is not inspect.Parameter.empty
        bindings.append(_compile_field(param.name, annotation, marker, required=marker.required or not has_default))
    return bindings


def _own_init(cls: Type[Any]) -> Optional[Callable]:
    for klass in cls.__mro__:
        if klass is object:
            return None
        if "__init__" in klass.__dict__:
            return klass.__dict__["__init__"]
    return None


@functools.lru_cache(maxsize=None)
def get_binding_table(cls: Type[Any]) -> BindingTable:
    """Compile (once) the binding declarations of a class.

    Args:
        cls: Target class

    Returns:
        Binding table  # (cached per class)

    Raises:
        BindingError: If the class annotations cannot be resolved
    """
    table = BindingTable(target_type=cls, path=getattr(cls, CONFIG_PATH_ATTRIBUTE, None))

    init = _own_init(cls)
    if init is not None:
        table.constructor = _compile_parameters(init, annotated_only=True)

    for name, hint in _type_hints(cls).items():
        annotation, marker = get_marker(hint)
        if marker is not None:
            table.fields.append(_compile_field(name, annotation, marker))

    methods = {}  # Dict[str, Callable] (method name -> function, definition order, subclasses override)
    for klass in reversed(cls.__mro__):
        for name, member in klass.__dict__.items():
            if callable(member) and hasattr(member, METHOD_INVOKE_ATTRIBUTE):
                methods[name] = member
            elif name in methods:
                del methods[name]
    for name, func in methods.items():
        table.methods.append(
            MethodBinding(
                name=name,
                path=getattr(func, METHOD_INVOKE_ATTRIBUTE),
                parameters=_compile_parameters(func, annotated_only=False),
            )
        )
    return table


def _docstring_params(obj: Any) -> dict:
    """Map documented parameter/attribute names to their one-line descriptions."""
    docstring = inspect.getdoc(obj) if obj is not None else None
    if not docstring:
        return {}
    # docstring_parser needs a short description before the first section
    if docstring.strip().startswith(("Args:", "Attributes:")):
        docstring = f"Description.\n\n{docstring}"
    try:
        parsed = docstring_parser.parse(docstring)
    except docstring_parser.ParseError:
        return {}
    return {
        param.arg_name: param.description.strip().rstrip("。.")
        for param in parsed.params
        if param.description
    }


def _format_binding(binding: FieldBinding, docs: dict) -> str:
    details = [format_type(binding.type), f"{binding.kind} '{binding.path}'"]
    if binding.required:
        details.append("required")
    if binding.transformer is not None:
        details.append(f"transformer={object_display_name(binding.transformer)}")
    line = f"    {binding.field}({', '.join(details)})"
    if docs.get(binding.field):
        line += f": {docs[binding.field]}"
    return line


def describe_bindings(cls: Type[Any]) -> str:
    """Render the binding table of a class for display.

    Args:
        cls: Target class

    Returns:
        Multi-line description  # (one line per binding, documented descriptions appended)
    """
    table = get_binding_table(cls)
    docs = _docstring_params(cls)
    docs.update({key: value for key, value in _docstring_params(_own_init(cls)).items() if key not in docs})

    header = object_display_name(cls)
    if table.path is not None:
        header += f" (path={table.path})"
    lines = [f"{header}:"]
    for binding in table.constructor:
        lines.append(_format_binding(binding, docs))
    for binding in table.fields:
        if binding.field not in table.constructor_fields:
            lines.append(_format_binding(binding, docs))
    for method in table.methods:
        lines.append(f"→ {method.name}(path={method.path or '.'}):")
        method_docs = _docstring_params(getattr(cls, method.name))
        for binding in method.parameters:
            lines.append(_format_binding(binding, method_docs))
    return "\n".join(lines)
