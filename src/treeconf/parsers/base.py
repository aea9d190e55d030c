"""Parser contract shared by every configuration format."""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from ..configuration import Configuration, ConfigurationSettings, ModifiedBy, Version
from ..exceptions import ConfigurationError
from ..postload import PostLoadProcessor
from ..variables import VariableResolver

logger = logging.getLogger(__name__)

HEADER_NODE = "header"
HEADER_NAME = "name"
HEADER_VERSION = "version"
HEADER_DESCRIPTION = "description"
CREATED_BY = "createdBy"
UPDATED_BY = "updatedBy"
UPDATE_OWNER = "user"
UPDATE_TIMESTAMP = "timestamp"


def read_source(reader: Any) -> str:
    """Read the full text of a configuration source.

    Args:
        reader: Text/binary stream with ``read()``, or the document itself as str/bytes

    Returns:
        Document text
    """
    if isinstance(reader, str):
        return reader
    if hasattr(reader, "read"):
        reader = reader.read()
    if isinstance(reader, (bytes, bytearray)):
        return bytes(reader).decode("utf-8")
    if isinstance(reader, str):
        return reader
    raise ConfigurationError(f"Invalid configuration source: {type(reader).__name__}")


class ConfigParser(ABC):
    """Parses a raw document into a loaded :class:`Configuration`."""

    def __init__(self, settings: Optional[ConfigurationSettings] = None):
        """Initialize parser.

        Args:
            settings: Default settings for documents parsed without explicit settings
        """
        self.settings = settings

    def parse(
        self,
        name: str,
        reader: Any,
        settings: Optional[ConfigurationSettings] = None,
        version: Optional[Version] = None,
        password: Optional[str] = None,
    ) -> Configuration:
        """Parse a document and run post-load processing.

        Args:
            name: Expected configuration name  # (must match the header name)
            reader: Source stream or document text
            settings: Parse settings  # (falls back to the parser's settings, then defaults)
            version: Expected version  # (header version must be compatible when given)
            password: Password handed to settings.decryptor for ENC(...) values

        Returns:
            Loaded configuration

        Raises:
            ConfigurationError: On malformed input, name or version mismatch, or invalid structure
        """
        if not name:
            raise ConfigurationError("Invalid configuration name: NULL/empty")
        if isinstance(version, str):
            version = Version.parse(version)
        settings = settings or self.settings or ConfigurationSettings()

        try:
            text = read_source(reader)
            configuration = self.parse_document(name, text, settings, version)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Malformed configuration '{name}': {e}") from e

        configuration.password = password
        self.validate_tree(configuration)
        resolver = VariableResolver(use_environment=settings.use_environment)
        PostLoadProcessor(configuration, resolver).process()
        logger.debug("Parsed configuration '%s' (version %s) with %s", name, configuration.version, type(self).__name__)
        return configuration

    @abstractmethod
    def parse_document(
        self, name: str, text: str, settings: ConfigurationSettings, version: Optional[Version]
    ) -> Configuration:
        """Build the (not yet loaded) configuration tree from document text."""
        raise NotImplementedError

    def validate_tree(self, configuration: Configuration) -> None:
        """Format-specific structural checks; the default requires a non-empty root."""
        if not configuration.root.children and configuration.root.properties is None:
            raise ConfigurationError(f"Configuration '{configuration.name}' has an empty root node")

    def apply_header(
        self, configuration: Configuration, header: Optional[Mapping[str, Any]], version: Optional[Version]
    ) -> None:
        """Validate the document header and copy its metadata onto the configuration.

        Args:
            configuration: Configuration being built
            header: Header section as plain data  # (name, version, description, createdBy, updatedBy)
            version: Expected version, if any
        """
        if not isinstance(header, Mapping):
            raise ConfigurationError(f"Invalid configuration: missing '{HEADER_NODE}' section")

        header_name = header.get(HEADER_NAME)
        if not header_name:
            raise ConfigurationError(f"Invalid header: missing property '{HEADER_NAME}'")
        if str(header_name) != configuration.name:
            raise ConfigurationError(
                f"Invalid configuration: name does not match [expected={configuration.name}][actual={header_name}]"
            )

        version_string = header.get(HEADER_VERSION)
        if not version_string:
            raise ConfigurationError(f"Invalid header: missing property '{HEADER_VERSION}'")
        actual = Version.parse(str(version_string))
        if version is not None and not version.is_compatible(actual):
            raise ConfigurationError(f"Incompatible configuration version [expected={version}][actual={actual}]")
        configuration.version = actual

        description = header.get(HEADER_DESCRIPTION)
        if description:
            configuration.description = str(description)
        if header.get(CREATED_BY) is not None:
            configuration.created_by = self._parse_modified_by(header[CREATED_BY], CREATED_BY)
        if header.get(UPDATED_BY) is not None:
            configuration.updated_by = self._parse_modified_by(header[UPDATED_BY], UPDATED_BY)

    def _parse_modified_by(self, data: Any, key: str) -> ModifiedBy:
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Invalid header: '{key}' must be a section")
        owner = data.get(UPDATE_OWNER)
        if not owner:
            raise ConfigurationError(f"Invalid header: '{key}.{UPDATE_OWNER}' is NULL/empty")
        timestamp = data.get(UPDATE_TIMESTAMP)
        if timestamp is None or timestamp == "":
            raise ConfigurationError(f"Invalid header: '{key}.{UPDATE_TIMESTAMP}' is NULL/empty")
        return ModifiedBy(user=str(owner), timestamp=parse_timestamp(timestamp))


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string or epoch milliseconds."""
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
    try:
        return datetime.fromisoformat(text)
    except ValueError as e:
        raise ConfigurationError(f"Invalid timestamp: {value!r}") from e
