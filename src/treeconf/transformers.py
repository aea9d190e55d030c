"""Custom value transformers used by binding markers."""

import inspect
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Mapping

from .utils import import_object

TRANSFORM_TYPE = Callable[[str, Mapping[str, str]], Any]


class Transformer(ABC):
    """Converts a raw scalar into a field value."""

    @abstractmethod
    def transform(self, value: str, scope: Mapping[str, str]) -> Any:
        """Transform a raw value.

        Args:
            value: Raw scalar from the configuration tree
            scope: Properties visible at the node the value came from

        Returns:
            Converted value
        """
        raise NotImplementedError


class DateTimeTransformer(Transformer):
    """ISO-8601 text, epoch milliseconds, or text in a custom ``strptime`` format."""

    def __init__(self, format: str | None = None):
        self.format = format

    def transform(self, value: str, scope: Mapping[str, str]) -> datetime:
        value = value.strip()
        if self.format:
            return datetime.strptime(value, self.format)
        if value.isdigit():
            return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
        return datetime.fromisoformat(value)


class DurationTransformer(Transformer):
    """Durations such as ``500ms``, ``30s``, ``5m``, ``2h``, ``1d`` or ``1h30m``; bare numbers are seconds."""

    UNITS = {
        "ms": timedelta(milliseconds=1),
        "s": timedelta(seconds=1),
        "m": timedelta(minutes=1),
        "h": timedelta(hours=1),
        "d": timedelta(days=1),
    }
    _PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")

    def transform(self, value: str, scope: Mapping[str, str]) -> timedelta:
        text = value.strip().lower().replace(" ", "")
        if not text:
            raise ValueError("Empty duration")
        try:
            return timedelta(seconds=float(text))
        except ValueError:
            pass
        total = timedelta()
        position = 0
        for match in self._PART.finditer(text):
            if match.start() != position:
                break
            total += float(match.group(1)) * self.UNITS[match.group(2)]
            position = match.end()
        if position != len(text):
            raise ValueError(f"Invalid duration: {value!r}")
        return total


def resolve_transformer(reference: Any) -> TRANSFORM_TYPE:
    """Turn a transformer reference into a ``(value, scope) -> Any`` callable.

    Args:
        reference: Transformer instance, Transformer subclass, plain callable or dotted import path

    Returns:
        Transform callable

    Raises:
        ImportError: If a dotted path cannot be imported
        TypeError: If the reference is not usable as a transformer
    """
    if isinstance(reference, str):
        reference = import_object(reference)
    if inspect.isclass(reference):
        reference = reference()
    if isinstance(reference, Transformer):
        return reference.transform
    if callable(reference):
        return reference
    raise TypeError(f"Invalid transformer: {reference!r}")
