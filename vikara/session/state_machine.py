"""State machines for the realtime transport and the voice session lifecycle.

Both are pure, synchronous components: they do not know asyncio, audio
devices or the model SDK. Owners call transition() at the right times and
query ``state`` to guard their operations.

Transport:
    IDLE -> OPENING -> OPEN -> CLOSING -> CLOSED
    OPENING | OPEN -> CLOSED (error or remote close)
    IDLE -> CLOSED (closed before it was opened)

Lifecycle:
    READY -> STARTING -> ACTIVE -> STOPPING -> READY
    STARTING | ACTIVE -> READY (error)

Rules:
- Transport CLOSED is terminal: a new connection needs a new session object.
- Lifecycle READY is reused as the idle state.
- Invalid transitions raise InvalidTransitionError.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from vikara._types import LifecycleState, TransportState
from vikara.exceptions import InvalidTransitionError

if TYPE_CHECKING:
    from collections.abc import Mapping

S = TypeVar("S", bound=Enum)

TRANSPORT_TRANSITIONS: dict[TransportState, frozenset[TransportState]] = {
    TransportState.IDLE: frozenset({TransportState.OPENING, TransportState.CLOSED}),
    TransportState.OPENING: frozenset({TransportState.OPEN, TransportState.CLOSED}),
    TransportState.OPEN: frozenset({TransportState.CLOSING, TransportState.CLOSED}),
    TransportState.CLOSING: frozenset({TransportState.CLOSED}),
    TransportState.CLOSED: frozenset(),
}

LIFECYCLE_TRANSITIONS: dict[LifecycleState, frozenset[LifecycleState]] = {
    LifecycleState.READY: frozenset({LifecycleState.STARTING}),
    LifecycleState.STARTING: frozenset(
        {LifecycleState.ACTIVE, LifecycleState.STOPPING, LifecycleState.READY}
    ),
    LifecycleState.ACTIVE: frozenset({LifecycleState.STOPPING, LifecycleState.READY}),
    LifecycleState.STOPPING: frozenset({LifecycleState.READY}),
}


class StateMachine(Generic[S]):
    """Table-driven state machine.

    Args:
        initial: Starting state.
        transitions: ``{state: allowed_targets}``. Every state must be a key.
    """

    def __init__(self, initial: S, transitions: Mapping[S, frozenset[S]]) -> None:
        if initial not in transitions:
            msg = f"Initial state {initial!r} missing from transition table"
            raise ValueError(msg)
        self._state = initial
        self._transitions = transitions

    @property
    def state(self) -> S:
        """Current state."""
        return self._state

    def can_transition(self, target: S) -> bool:
        return target in self._transitions[self._state]

    def transition(self, target: S) -> None:
        """Transition to the target state.

        Raises:
            InvalidTransitionError: If the transition is not in the table.
        """
        if target not in self._transitions[self._state]:
            raise InvalidTransitionError(self._state.value, target.value)
        self._state = target


def transport_state_machine() -> StateMachine[TransportState]:
    return StateMachine(TransportState.IDLE, TRANSPORT_TRANSITIONS)


def lifecycle_state_machine() -> StateMachine[LifecycleState]:
    return StateMachine(LifecycleState.READY, LIFECYCLE_TRANSITIONS)
