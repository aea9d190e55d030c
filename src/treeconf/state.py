"""Lifecycle state of configuration-dependent components."""

import logging
from enum import Enum
from typing import Optional

from .exceptions import StateError

logger = logging.getLogger(__name__)


class ServiceState(Enum):
    """States of a component lifecycle."""

    UNKNOWN = "unknown"
    INITIALIZED = "initialized"
    RUNNING = "running"
    AVAILABLE = "running"  # alias of RUNNING
    STOPPED = "stopped"
    ERROR = "error"


class LifecycleState:
    """Current state tag plus the last error of one owning component.

    Transitions only happen through explicit calls; callers check the state
    before every state-dependent operation. Not thread-safe: a component
    shared between threads must synchronize around it.
    """

    def __init__(self, state: ServiceState = ServiceState.UNKNOWN):
        self._state = state
        self._error: Optional[BaseException] = None

    @property
    def state(self) -> ServiceState:
        return self._state

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def set_state(self, state: ServiceState) -> "LifecycleState":
        """Overwrite the current state unconditionally."""
        logger.debug("State %s -> %s", self._state.name, state.name)
        self._state = state
        return self

    def set_error(self, error: BaseException) -> "LifecycleState":
        """Move to ERROR and remember the failure."""
        self._error = error
        return self.set_state(ServiceState.ERROR)

    def check_state(self, expected: ServiceState) -> None:
        """Require the current state to be ``expected``.

        Raises:
            StateError: If the current state differs
        """
        if self._state is not expected:
            raise StateError(expected, self._state)

    def stop(self) -> "LifecycleState":
        """Move a running component to STOPPED; any other state is left unchanged."""
        if self._state is ServiceState.RUNNING:
            self.set_state(ServiceState.STOPPED)
        return self

    def dispose(self) -> "LifecycleState":
        """Terminal transition: STOPPED with the error cleared."""
        self._error = None
        return self.set_state(ServiceState.STOPPED)

    @property
    def is_running(self) -> bool:
        return self._state is ServiceState.RUNNING

    @property
    def is_initialized(self) -> bool:
        return self._state is ServiceState.INITIALIZED

    @property
    def has_error(self) -> bool:
        return self._state is ServiceState.ERROR

    def __repr__(self) -> str:
        if self._error is not None:
            return f"LifecycleState({self._state.name}, error={self._error!r})"
        return f"LifecycleState({self._state.name})"
