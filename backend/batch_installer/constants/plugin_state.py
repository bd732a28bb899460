"""Plugin installation status values and their lifecycle.

Tokens are persisted as-is in `repositories.state`; never rename one silently.
"""
from __future__ import annotations
from enum import Enum
from typing import Dict, FrozenSet, Union

from batch_installer.utils.fsm import FiniteStateMachine, InvalidState


class PluginState(str, Enum):
    UNKNOWN = 'unknown'                        # not checked yet
    CHECKING = 'checking'                      # detection in progress
    AVAILABLE = 'available'                    # is a plugin, can be installed
    NOT_PLUGIN = 'not_plugin'                  # repository exists but carries no plugin
    INSTALLED_INACTIVE = 'installed_inactive'
    INSTALLED_ACTIVE = 'installed_active'
    ERROR = 'error'

    def __str__(self) -> str:
        return self.value

    @property
    def is_installed(self) -> bool:
        return is_installed(self)

    @property
    def is_plugin(self) -> bool:
        return is_plugin_by_state(self)


StateLike = Union[PluginState, str]

INSTALLED_STATES: FrozenSet[PluginState] = frozenset({
    PluginState.INSTALLED_INACTIVE,
    PluginState.INSTALLED_ACTIVE,
})

PLUGIN_STATE_TRANSITIONS: Dict[PluginState, FrozenSet[PluginState]] = {
    PluginState.UNKNOWN: frozenset({PluginState.CHECKING}),
    PluginState.CHECKING: frozenset({
        PluginState.AVAILABLE,
        PluginState.NOT_PLUGIN,
        PluginState.INSTALLED_INACTIVE,
        PluginState.INSTALLED_ACTIVE,
        PluginState.ERROR,
    }),
    PluginState.AVAILABLE: frozenset({PluginState.CHECKING, PluginState.INSTALLED_INACTIVE, PluginState.ERROR}),
    PluginState.NOT_PLUGIN: frozenset({PluginState.CHECKING}),
    PluginState.INSTALLED_INACTIVE: frozenset({PluginState.INSTALLED_ACTIVE, PluginState.CHECKING}),
    PluginState.INSTALLED_ACTIVE: frozenset({PluginState.INSTALLED_INACTIVE, PluginState.CHECKING}),
    PluginState.ERROR: frozenset({PluginState.CHECKING}),
}

ALL_STATE_VALUES = tuple(s.value for s in PluginState)


def parse_plugin_state(raw: StateLike) -> PluginState:
    """Coerce a stored/requested token to PluginState or raise InvalidState."""
    if isinstance(raw, PluginState):
        return raw
    try:
        return PluginState(raw)
    except ValueError:
        raise InvalidState(raw) from None


def is_installed(state: StateLike) -> bool:
    try:
        return parse_plugin_state(state) in INSTALLED_STATES
    except InvalidState:
        return False


def is_plugin_by_state(state: StateLike) -> bool:
    try:
        parsed = parse_plugin_state(state)
    except InvalidState:
        return False
    return parsed is PluginState.AVAILABLE or is_installed(parsed)


def build_plugin_state_machine(initial: StateLike = PluginState.UNKNOWN) -> FiniteStateMachine[PluginState]:
    fsm: FiniteStateMachine[PluginState] = FiniteStateMachine()
    fsm.set_states(PluginState)
    fsm.set_transitions(PLUGIN_STATE_TRANSITIONS)
    fsm.set_initial_state(parse_plugin_state(initial))
    return fsm


__all__ = [
    'PluginState', 'INSTALLED_STATES', 'PLUGIN_STATE_TRANSITIONS', 'ALL_STATE_VALUES',
    'parse_plugin_state', 'is_installed', 'is_plugin_by_state', 'build_plugin_state_machine',
]
