"""JSON configuration parser."""

import json
from typing import Any

from ..exceptions import ConfigurationError
from .mapping import MappingConfigParser


class JSONConfigParser(MappingConfigParser):
    """Parses JSON configuration documents."""

    def load(self, text: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Malformed JSON document: {e}") from e
