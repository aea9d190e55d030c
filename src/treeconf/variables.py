"""Variable references (``${name}``) and the property scopes they resolve against."""

import logging
import os
import re
from typing import Dict, Iterator, List, Mapping, Optional

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\$\{\s*([A-Za-z_][\w.\-]*)\s*\}")


class PropertyScope(Mapping[str, str]):
    """Immutable snapshot of the properties visible at one tree position."""

    def __init__(self, values: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, str] = dict(values or {})

    def derive(self, local: Optional[Mapping[str, str]]) -> "PropertyScope":
        """Create a child scope; local entries override inherited ones, this scope is untouched.

        Args:
            local: Properties defined at the child position  # (name -> value)

        Returns:
            New merged scope
        """
        if not local:
            return self
        merged = dict(self._values)
        merged.update(local)
        return PropertyScope(merged)

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"PropertyScope({self._values})"


class VariableResolver:
    """Resolver for ``${name}`` tokens inside scalar values.

    Lookup order per token is the given scope, then the process environment.
    Tokens that resolve nowhere are left intact, since some values are only
    resolved by the code consuming them. Substituted text is never re-scanned,
    so resolution is a single pass and cannot loop.
    """

    def __init__(self, environ: Optional[Mapping[str, str]] = None, use_environment: bool = True):
        """Initialize resolver.

        Args:
            environ: Environment mapping  # (defaults to os.environ, read at lookup time)
            use_environment: Fall back to the environment for names missing from the scope
        """
        self._environ = environ
        self.use_environment = use_environment

    @staticmethod
    def has_variable(value: Optional[str]) -> bool:
        """Check whether a string contains at least one variable token."""
        return bool(value) and VARIABLE_PATTERN.search(value) is not None

    @staticmethod
    def variables(value: Optional[str]) -> List[str]:
        """Get referenced variable names in order of occurrence (duplicates kept)."""
        if not value:
            return []
        return VARIABLE_PATTERN.findall(value)

    def lookup(self, name: str, scope: Optional[Mapping[str, str]] = None) -> Optional[str]:
        """Look up a variable; empty values count as undefined.

        Args:
            name: Variable name
            scope: Properties visible at the value's position

        Returns:
            Variable value, or None when it is undefined everywhere
        """
        if scope:
            value = scope.get(name)
            if value:
                return value
        if self.use_environment:
            environ = self._environ if self._environ is not None else os.environ
            value = environ.get(name)
            if value:
                return value
        return None

    def resolve(self, value: Optional[str], scope: Optional[Mapping[str, str]] = None) -> Optional[str]:
        """Resolve every variable token of a string in one pass.

        Args:
            value: String that may contain ``${name}`` tokens
            scope: Properties visible at the value's position  # (name -> value)

        Returns:
            Resolved string  # (input returned unchanged when it holds no tokens)
        """
        if not self.has_variable(value):
            return value

        def replace_var(m: re.Match) -> str:
            resolved = self.lookup(m.group(1), scope)
            if resolved is None:
                logger.debug("Variable '%s' is undefined; leaving token in place", m.group(1))
                return m.group(0)
            return resolved

        return VARIABLE_PATTERN.sub(replace_var, value)
