from __future__ import annotations
"""Generic finite state machine used to guard lifecycle status changes.

States and transitions are plain data supplied by the caller, so the same
engine drives any lifecycle (plugin install status, order workflow, ...).
Usage:
    from batch_installer.utils.fsm import FiniteStateMachine
    fsm = FiniteStateMachine()
    fsm.set_states({'pending', 'scheduled', 'done'})
    fsm.set_transitions({'pending': {'scheduled'}, 'scheduled': {'done'}})
    fsm.set_initial_state('pending')
    fsm.on('done', lambda state: print('entered', state))
    fsm.transition_to('scheduled')

Listeners run synchronously, in registration order, after the state has
changed. A listener that raises aborts the remaining listeners and the error
propagates to the caller of transition_to(); the state change is kept.

Instances hold no locks: callers sharing one machine between threads must
serialize access themselves.
"""
import logging
from typing import Callable, Dict, FrozenSet, Generic, Hashable, Iterable, List, Mapping, Optional, TypeVar

logger = logging.getLogger(__name__)

StateT = TypeVar('StateT', bound=Hashable)
Listener = Callable[[StateT], None]


class FSMError(Exception):
    """Base class for state machine errors."""


class InvalidState(FSMError, ValueError):
    def __init__(self, state):
        self.state = state
        super().__init__(f"Invalid initial state: {state}")


class InvalidTransition(FSMError, ValueError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Invalid transition from {current} to {target}")


class StateRegistry(Generic[StateT]):
    """Immutable set of state identifiers known to one machine."""

    def __init__(self, states: Iterable[StateT] = ()):
        self._states: FrozenSet[StateT] = frozenset(states)

    def __contains__(self, state: object) -> bool:
        return state in self._states

    def __iter__(self):
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)


class TransitionTable(Generic[StateT]):
    """Source state -> permitted destinations. Missing sources have no exits."""

    def __init__(self, table: Optional[Mapping[StateT, Iterable[StateT]]] = None):
        self._table: Dict[StateT, FrozenSet[StateT]] = {
            source: frozenset(targets) for source, targets in (table or {}).items()
        }

    def targets(self, source: Optional[StateT]) -> FrozenSet[StateT]:
        return self._table.get(source, frozenset())

    def allows(self, source: Optional[StateT], target: StateT) -> bool:
        return target in self.targets(source)

    def as_dict(self) -> Dict[StateT, FrozenSet[StateT]]:
        return dict(self._table)


class CallbackRegistry(Generic[StateT]):
    """Ordered entry listeners per state."""

    def __init__(self):
        self._callbacks: Dict[StateT, List[Listener]] = {}

    def add(self, state: StateT, callback: Listener) -> None:
        self._callbacks.setdefault(state, []).append(callback)

    def listeners(self, state: StateT) -> List[Listener]:
        # snapshot: listeners added during dispatch only see later entries
        return list(self._callbacks.get(state, ()))


class FiniteStateMachine(Generic[StateT]):
    def __init__(self):
        self._states: StateRegistry[StateT] = StateRegistry()
        self._transitions: TransitionTable[StateT] = TransitionTable()
        self._callbacks: CallbackRegistry[StateT] = CallbackRegistry()
        self._current: Optional[StateT] = None

    def set_states(self, states: Iterable[StateT]) -> None:
        self._states = StateRegistry(states)

    def set_transitions(self, table: Mapping[StateT, Iterable[StateT]]) -> None:
        """Replace the transition table wholesale, e.g. {'pending': {'scheduled'}}."""
        self._transitions = TransitionTable(table)

    def set_initial_state(self, state: StateT) -> None:
        """Assign the current state without consulting transitions or listeners.

        Raises InvalidState (leaving the current state untouched) when the
        state is not registered.
        """
        if state not in self._states:
            raise InvalidState(state)
        self._current = state
        logger.debug('FSM initialised at %s', state)

    def on(self, state: StateT, callback: Listener) -> None:
        self._callbacks.add(state, callback)

    def get_state(self) -> Optional[StateT]:
        return self._current

    @property
    def state(self) -> Optional[StateT]:
        return self._current

    @property
    def states(self) -> StateRegistry[StateT]:
        return self._states

    @property
    def transitions(self) -> TransitionTable[StateT]:
        return self._transitions

    def can_transition(self, to: StateT) -> bool:
        return self._transitions.allows(self._current, to)

    def transition_to(self, to: StateT) -> None:
        if not self.can_transition(to):
            raise InvalidTransition(self._current, to)
        previous = self._current
        self._current = to
        logger.debug('FSM transition %s -> %s', previous, to)
        for callback in self._callbacks.listeners(to):
            callback(to)


__all__ = [
    'FSMError', 'InvalidState', 'InvalidTransition',
    'StateRegistry', 'TransitionTable', 'CallbackRegistry', 'FiniteStateMachine',
]
