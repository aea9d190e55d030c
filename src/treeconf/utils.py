"""Utility functions for treeconf."""

import collections.abc
import importlib
import inspect
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import Path, PurePath
from typing import Any, Callable, Optional, Tuple, Type, Union, get_args, get_origin

import yaml

OBJECT_TYPE = Callable | Type[Any]

TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
FALSE_STRINGS = frozenset({"false", "no", "off", "0"})

_LIST_ORIGINS = (list, collections.abc.Sequence, collections.abc.MutableSequence, collections.abc.Iterable)
_SET_ORIGINS = (set, collections.abc.Set, collections.abc.MutableSet)
_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)


def load_yaml(stream: Any) -> Any:
    """Load YAML content from a stream.

    Args:
        stream: Stream to read YAML from  # (file-like object or string)
    Returns:
        Parsed YAML content  # (nested dicts/lists with every scalar kept as written, as a string)
    """
    # BaseLoader resolves no implicit tags: "1e-4", "yes" and "08" all stay strings
    return yaml.load(stream, Loader=yaml.BaseLoader)


def import_object(path: str) -> OBJECT_TYPE:
    """Import an object by its module path.

    Args:
        path: Import path like 'module.submodule.ClassName' or 'module.ClassName.method'

    Returns:
        Imported object  # (class, function, or other importable object)

    Raises:
        ImportError: If object cannot be imported
    """
    if "." not in path:
        raise ImportError(f"Cannot import {path}: expected a dotted module path")

    # Try to import progressively from longest to shortest module path
    parts = path.split(".")  # List[str] (path components)

    for i in range(len(parts) - 1, 0, -1):
        module_path = ".".join(parts[:i])  # Module path to try
        remaining_parts = parts[i:]  # Remaining attribute path

        try:
            module = importlib.import_module(module_path)

            # Navigate through the remaining parts (classes, methods, etc.)
            obj = module
            for part in remaining_parts:
                obj = getattr(obj, part)

            return obj
        except (ImportError, AttributeError):
            # Try shorter module path
            continue

    raise ImportError(f"Cannot import {path}")


def object_display_name(obj: Any) -> str:
    """Get display name for a class or callable."""
    if hasattr(obj, "__qualname__") and hasattr(obj, "__module__"):
        return f"{obj.__module__}.{obj.__qualname__}"
    elif hasattr(obj, "__name__"):
        return obj.__name__
    return str(obj)


def format_type(type_annotation: Any) -> str:
    """Format type annotation for display."""
    if type_annotation is inspect.Parameter.empty:
        return "Any"
    if type_annotation in (int, float, str, bool):
        return type_annotation.__name__
    type_str = str(type_annotation).replace("typing.", "")
    if "[" in type_str or "(" in type_str:
        # Parameterized generic, keep the full representation
        return type_str
    elif hasattr(type_annotation, "__name__"):
        return type_annotation.__name__
    return type_str


def is_union_type(type_annotation: Any) -> bool:
    """Check for typing.Union as well as the ``X | Y`` syntax."""
    origin = get_origin(type_annotation)
    return origin is Union or (
        hasattr(type_annotation, "__class__") and type_annotation.__class__.__name__ == "UnionType"
    )


def is_literal_type(type_annotation: Any) -> bool:
    """Check if type annotation is a Literal type."""
    origin = get_origin(type_annotation)
    if hasattr(origin, "_name") and origin._name == "Literal":
        return True
    return str(type_annotation).startswith("typing.Literal")


def unwrap_optional(type_annotation: Any) -> Any:
    """Strip ``Optional[...]`` / ``X | None``; other unions are returned unchanged."""
    if is_union_type(type_annotation):
        args = [arg for arg in get_args(type_annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return type_annotation


def collection_info(type_annotation: Any) -> Optional[Tuple[type, Any]]:
    """Describe a collection annotation.

    Args:
        type_annotation: Annotation such as ``list[int]`` or ``Set[str]``

    Returns:
        (concrete collection type, item type) or None if not a collection  # (item type is Any when unparameterized)
    """
    if type_annotation in (list, set, frozenset, tuple):
        return type_annotation, Any
    origin = get_origin(type_annotation)
    if origin is None:
        return None
    args = get_args(type_annotation)
    item_type = args[0] if args else Any
    if origin is tuple:
        # Only homogeneous tuples: tuple[X, ...]
        if len(args) == 2 and args[1] is Ellipsis:
            return tuple, item_type
        return None
    if origin is frozenset:
        return frozenset, item_type
    if origin in _SET_ORIGINS:
        return set, item_type
    if origin in _LIST_ORIGINS:
        return list, item_type
    return None


def mapping_info(type_annotation: Any) -> Optional[Tuple[Any, Any]]:
    """Describe a mapping annotation as (key type, value type), or None if not a mapping."""
    if type_annotation is dict:
        return str, Any
    origin = get_origin(type_annotation)
    if origin in _MAPPING_ORIGINS:
        args = get_args(type_annotation)
        if len(args) == 2:
            return args[0], args[1]
        return str, Any
    return None


def convert_scalar(value: str, target_type: Any) -> Any:
    """Convert a scalar string to the target type.

    Args:
        value: Raw scalar value from the configuration tree
        target_type: Annotation of the receiving field  # (str, int, float, bool, Decimal, Enum, datetime, ...)

    Returns:
        Converted value

    Raises:
        ValueError: If the string cannot be parsed as the target type
        TypeError: If the target type is not a supported scalar type
    """
    target_type = unwrap_optional(target_type)

    if target_type in (Any, str, inspect.Parameter.empty):
        return value

    if is_literal_type(target_type):
        for option in get_args(target_type):
            if str(option) == value:
                return option
        raise ValueError(f"{value!r} is not one of {list(get_args(target_type))}")

    if not inspect.isclass(target_type):
        raise TypeError(f"Unsupported scalar type: {format_type(target_type)}")

    # bool before int: bool is an int subclass
    if issubclass(target_type, bool):
        lowered = value.strip().lower()
        if lowered in TRUE_STRINGS:
            return True
        if lowered in FALSE_STRINGS:
            return False
        raise ValueError(f"Invalid boolean value: {value!r}")
    if issubclass(target_type, Enum):
        return _convert_enum(value, target_type)
    if issubclass(target_type, int):
        return target_type(value.strip())
    if issubclass(target_type, (float, Decimal)):
        return target_type(value.strip())
    if issubclass(target_type, datetime):
        return datetime.fromisoformat(value.strip())
    if issubclass(target_type, date):
        return date.fromisoformat(value.strip())
    if issubclass(target_type, time):
        return time.fromisoformat(value.strip())
    if issubclass(target_type, PurePath):
        return Path(value) if target_type is PurePath else target_type(value)
    if issubclass(target_type, str):
        return target_type(value)

    raise TypeError(f"Unsupported scalar type: {format_type(target_type)}")


def _convert_enum(value: str, enum_type: Type[Enum]) -> Enum:
    """Look up an enum member by name, then case-insensitive name, then value."""
    value = value.strip()
    if value in enum_type.__members__:
        return enum_type.__members__[value]
    for name, member in enum_type.__members__.items():
        if name.lower() == value.lower():
            return member
    for member in enum_type:
        if str(member.value) == value:
            return member
    raise ValueError(f"{value!r} is not a valid {enum_type.__name__}")
