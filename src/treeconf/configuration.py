"""Configuration handle, header metadata and parse settings."""

from __future__ import annotations

import re
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import yaml

from .exceptions import ConfigurationError, PathNotFound
from .nodes import (
    DEFAULT_ATTRIBUTES_NAME,
    DEFAULT_PARAMETERS_NAME,
    DEFAULT_PROPERTIES_NAME,
    ConfigNode,
    PathNode,
    split_path,
)

DECRYPTOR_TYPE = Callable[[str, str], str]


@dataclass(frozen=True, order=True)
class Version:
    """Semantic version of a configuration document."""

    major: int
    minor: int
    patch: int = 0

    _PATTERN = re.compile(r"^\s*(\d+)\.(\d+)(?:\.(\d+))?\s*$")

    @classmethod
    def parse(cls, value: str) -> "Version":
        """Parse a version string.

        Args:
            value: Version string  # (e.g., "1.2" or "1.2.3")

        Returns:
            Parsed version

        Raises:
            ConfigurationError: If the string is not a valid version
        """
        match = cls._PATTERN.match(str(value)) if value is not None else None
        if not match:
            raise ConfigurationError(f"Invalid version string: {value!r}")
        major, minor, patch = match.groups()
        return cls(int(major), int(minor), int(patch or 0))

    def is_compatible(self, other: "Version") -> bool:
        """Versions are compatible when major and minor match; patch levels may differ."""
        return self.major == other.major and self.minor == other.minor

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


@dataclass
class ModifiedBy:
    """Who changed a configuration and when."""

    user: str
    timestamp: datetime


@dataclass
class ConfigurationSettings:
    """Settings controlling how a configuration document is parsed."""

    properties_node_name: str = DEFAULT_PROPERTIES_NAME
    parameters_node_name: str = DEFAULT_PARAMETERS_NAME
    attributes_node_name: str = DEFAULT_ATTRIBUTES_NAME
    use_environment: bool = True  # (fall back to os.environ for unresolved variables)
    encrypted_prefix: str = "ENC("
    encrypted_suffix: str = ")"
    decryptor: Optional[DECRYPTOR_TYPE] = None  # (callable(value, password) -> plain text)

    def is_encrypted(self, value: Any) -> bool:
        return (
            isinstance(value, str)
            and len(value) >= len(self.encrypted_prefix) + len(self.encrypted_suffix)
            and value.startswith(self.encrypted_prefix)
            and value.endswith(self.encrypted_suffix)
        )

    def strip_encrypted(self, value: str) -> str:
        """Return the payload of an ``ENC(...)`` value."""
        end = len(value) - len(self.encrypted_suffix)
        return value[len(self.encrypted_prefix) : end]


class Configuration:
    """A parsed configuration: header metadata plus exactly one root path node."""

    def __init__(
        self,
        name: str,
        root: PathNode,
        version: Optional[Version] = None,
        settings: Optional[ConfigurationSettings] = None,
    ):
        """Initialize configuration.

        Args:
            name: Configuration name  # (must match the document header)
            root: Root path node of the tree
            version: Version declared by the document header
            settings: Settings used to parse the document
        """
        if not name:
            raise ConfigurationError("Invalid configuration: name is NULL/empty")
        if root.parent is not None:
            raise ConfigurationError(f"Root node '{root.name}' already has a parent")
        self.name = name
        self.version = version
        self.settings = settings or ConfigurationSettings()
        self.description: Optional[str] = None
        self.created_by: Optional[ModifiedBy] = None
        self.updated_by: Optional[ModifiedBy] = None
        self.password: Optional[str] = None
        self.error: Optional[BaseException] = None
        self._loaded = False
        self._root = root
        root._configuration = weakref.ref(self)

    @property
    def root(self) -> PathNode:
        return self._root

    @property
    def loaded(self) -> bool:
        return self._loaded

    def mark_loaded(self) -> None:
        """Freeze the tree structure; called once post-load processing has completed."""
        if self.error is not None:
            raise ConfigurationError(f"Cannot mark configuration '{self.name}' loaded: {self.error}")
        self._loaded = True

    def find(self, path: str) -> ConfigNode:
        """Find a node by absolute path.

        Args:
            path: Dot-delimited path whose first segment is the root name  # (e.g., "root.server.host")

        Returns:
            Node at the terminal segment

        Raises:
            PathNotFound: If any segment is absent
        """
        segments = split_path(path)
        if not segments or segments[0] != self._root.name:
            raise PathNotFound(path, segments[0] if segments else path)
        try:
            return self._root.find(".".join(segments[1:]))
        except PathNotFound as e:
            raise PathNotFound(path, e.segment) from None

    def search(self, path: str) -> List[ConfigNode]:
        """Find all nodes matching an absolute path with optional ``*`` segments."""
        segments = split_path(path)
        if not segments or segments[0] not in (self._root.name, "*"):
            return []
        return self._root.search(".".join(segments[1:]))

    def __contains__(self, path: str) -> bool:
        try:
            self.find(path)
        except PathNotFound:
            return False
        return True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain dictionary.

        Returns:
            Plain dictionary with a header section and the root section
        """
        header: Dict[str, Any] = {"name": self.name}
        if self.version is not None:
            header["version"] = str(self.version)
        if self.description:
            header["description"] = self.description
        for key, stamp in (("createdBy", self.created_by), ("updatedBy", self.updated_by)):
            if stamp is not None:
                header[key] = {"user": stamp.user, "timestamp": stamp.timestamp.isoformat()}
        return {"header": header, self._root.name: self._root.to_data()}

    def dump(self) -> str:
        """Render the configuration as YAML text."""
        return yaml.safe_dump(self.to_dict(), default_flow_style=False, indent=2, sort_keys=False)

    def __repr__(self) -> str:
        return f"Configuration(name={self.name!r}, version={self.version}, loaded={self._loaded})"
