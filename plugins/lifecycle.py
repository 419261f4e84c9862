"""Plugin lifecycle state machine.

The host drives every transition; a plugin never changes its own state::

    LOADED --on_load--> PREPARED --on_enable--> ENABLED --on_disable--> DISABLED
                                                                          |
                                                                     DISCARDED

``LOADED`` and ``PREPARED`` may also go straight to ``DISCARDED`` when the
plugin failed to load or enable and is being retired.
"""

from __future__ import annotations

import threading
from enum import Enum

from core.exceptions import LifecycleError


class PluginState(str, Enum):
    """Lifecycle states of one plugin instance."""

    LOADED = "loaded"
    PREPARED = "prepared"
    ENABLED = "enabled"
    DISABLED = "disabled"
    DISCARDED = "discarded"


_TRANSITIONS: dict[PluginState, frozenset[PluginState]] = {
    PluginState.LOADED: frozenset({PluginState.PREPARED, PluginState.DISCARDED}),
    PluginState.PREPARED: frozenset({PluginState.ENABLED, PluginState.DISCARDED}),
    PluginState.ENABLED: frozenset({PluginState.DISABLED}),
    PluginState.DISABLED: frozenset({PluginState.DISCARDED}),
    PluginState.DISCARDED: frozenset(),
}


class LifecycleState:
    """Current lifecycle state plus the free-standing naggable flag."""

    def __init__(self) -> None:
        self._state = PluginState.LOADED
        self._naggable = True
        self._lock = threading.Lock()

    @property
    def state(self) -> PluginState:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._state is PluginState.ENABLED

    @property
    def discarded(self) -> bool:
        return self._state is PluginState.DISCARDED

    @property
    def naggable(self) -> bool:
        return self._naggable

    @naggable.setter
    def naggable(self, value: bool) -> None:
        self._naggable = bool(value)

    def can_transition(self, target: PluginState) -> bool:
        return target in _TRANSITIONS[self._state]

    def transition(self, target: PluginState) -> PluginState:
        """Move to ``target`` and return the previous state.

        Raises:
            LifecycleError: If the transition is not allowed.
        """
        with self._lock:
            previous = self._state
            if target not in _TRANSITIONS[previous]:
                raise LifecycleError(
                    "Invalid lifecycle transition",
                    context={"from": previous.value, "to": target.value},
                )
            self._state = target
            return previous
