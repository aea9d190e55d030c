"""Base class for components configured from a configuration tree."""

import logging
from typing import Optional

from .configuration import Configuration
from .exceptions import TreeConfError
from .processor import bind
from .state import LifecycleState, ServiceState

logger = logging.getLogger(__name__)


class ConfigurableComponent:
    """A component that binds its own declared fields and gates operations on its state.

    Subclasses declare bindings like any other bound type and call
    :meth:`check_state` before state-dependent operations::

        @config_path("app.cache")
        class Cache(ConfigurableComponent):
            size: Annotated[int, ConfigValue(required=True)]

            def get(self, key):
                self.check_state(ServiceState.RUNNING)
                ...
    """

    def __init__(self):
        self.state = LifecycleState()

    def configure(self, configuration: Configuration, path: Optional[str] = None) -> "ConfigurableComponent":
        """Bind this component from a configuration and move it to INITIALIZED.

        Args:
            configuration: Loaded configuration
            path: Absolute node path to bind beneath  # (defaults to the declared anchor)

        Returns:
            self

        Raises:
            ConfigurationError: If binding fails  # (the component is left in ERROR)
            BindingError: If a value cannot be converted
        """
        try:
            bind(type(self), configuration, instance=self, path=path)
        except TreeConfError as e:
            logger.error("Failed to configure %s: %s", type(self).__name__, e)
            self.state.set_error(e)
            raise
        self.state.set_state(ServiceState.INITIALIZED)
        return self

    def start(self) -> "ConfigurableComponent":
        """Move an initialized component to RUNNING."""
        self.check_state(ServiceState.INITIALIZED)
        self.state.set_state(ServiceState.RUNNING)
        return self

    def check_state(self, expected: ServiceState) -> None:
        self.state.check_state(expected)

    def dispose(self) -> None:
        """Release the component; subclasses free their own resources before calling this."""
        self.state.dispose()
