"""Custom exceptions for treeconf."""

from dataclasses import dataclass
from textwrap import dedent
from typing import Any, Optional


class TreeConfError(Exception):
    """Base exception for treeconf errors."""

    pass


class ConfigurationError(TreeConfError):
    """Raised for malformed sources, structural violations and missing required values."""

    pass


class PathNotFound(TreeConfError):
    """Raised when a path lookup hits a missing segment."""

    def __init__(self, path: str, segment: Optional[str] = None):
        self.path = path
        self.segment = segment
        if segment is None or segment == path:
            message = f"Path not found: {path}"
        else:
            message = f"Path not found: {path} (missing segment '{segment}')"
        super().__init__(message)


@dataclass
class MissingValue:
    """Represents a required binding that could not be satisfied."""

    field: str
    name: str
    node_path: str
    kind: str = "value"  # "value", "parameter" or "attribute"

    def format_error_message(self) -> str:
        """Format error message for a missing required value.

        Returns:
            Formatted error message string
        """
        return dedent(f"""\
            ❌ Required {self.kind} not specified
            Field: {self.field}
            Name: {self.name}
            Path: {self.node_path}\
            """).strip()


class MissingValueError(ConfigurationError):
    """Raised when a required field has no node or an empty scalar."""

    def __init__(self, missing: MissingValue):
        self.missing = missing
        super().__init__(missing.format_error_message())


class BindingError(TreeConfError):
    """Raised when binding a value into a target fails; always carries the original cause."""

    def __init__(self, message: str, cause: Optional[BaseException] = None, field: Optional[str] = None):
        self.cause = cause
        self.field = field
        if cause is not None:
            message = f"{message}: {type(cause).__name__}: {cause}"
        super().__init__(message)
        self.__cause__ = cause


class StateError(TreeConfError):
    """Raised when a lifecycle precondition is violated."""

    def __init__(self, expected: Any, current: Any):
        self.expected = expected
        self.current = current
        super().__init__(f"Invalid state: expected={_state_name(expected)} current={_state_name(current)}")


def _state_name(state: Any) -> str:
    """Display name for a state tag."""
    return getattr(state, "name", str(state))
