"""Unit tests for the lifecycle state machine."""

from __future__ import annotations

import pytest

from core.exceptions import LifecycleError
from plugins.lifecycle import LifecycleState, PluginState


def test_initial_state() -> None:
    state = LifecycleState()

    assert state.state is PluginState.LOADED
    assert state.enabled is False
    assert state.naggable is True


def test_full_forward_path() -> None:
    state = LifecycleState()

    for target in (
        PluginState.PREPARED,
        PluginState.ENABLED,
        PluginState.DISABLED,
        PluginState.DISCARDED,
    ):
        state.transition(target)

    assert state.discarded is True
    assert state.enabled is False


def test_enabled_only_while_in_enabled_state() -> None:
    state = LifecycleState()
    state.transition(PluginState.PREPARED)
    assert state.enabled is False

    state.transition(PluginState.ENABLED)
    assert state.enabled is True

    state.transition(PluginState.DISABLED)
    assert state.enabled is False


@pytest.mark.parametrize(
    "path",
    [
        [PluginState.ENABLED],
        [PluginState.DISABLED],
        [PluginState.PREPARED, PluginState.DISABLED],
        [PluginState.PREPARED, PluginState.ENABLED, PluginState.DISCARDED],
        [
            PluginState.PREPARED,
            PluginState.ENABLED,
            PluginState.DISABLED,
            PluginState.ENABLED,
        ],
    ],
)
def test_invalid_transitions(path: list[PluginState]) -> None:
    state = LifecycleState()

    with pytest.raises(LifecycleError):
        for target in path:
            state.transition(target)


def test_failed_plugins_can_be_discarded_early() -> None:
    loaded = LifecycleState()
    loaded.transition(PluginState.DISCARDED)

    prepared = LifecycleState()
    prepared.transition(PluginState.PREPARED)
    prepared.transition(PluginState.DISCARDED)

    assert loaded.discarded and prepared.discarded


def test_no_transition_out_of_discarded() -> None:
    state = LifecycleState()
    state.transition(PluginState.DISCARDED)

    assert not any(state.can_transition(target) for target in PluginState)


def test_naggable_is_independent_of_state() -> None:
    state = LifecycleState()
    state.naggable = False
    state.transition(PluginState.PREPARED)
    assert state.naggable is False

    state.transition(PluginState.DISCARDED)
    state.naggable = True
    assert state.naggable is True
