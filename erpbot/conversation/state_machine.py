"""
Finite state machine tracking the lifecycle of one inbound event.

Every message or callback moves through an explicit path:

    received -> parsed -> classified -> {clarify | dispatched}
             -> {handled | backend_fallback | error_reported}

Callbacks skip parsing and classification. Nothing is retried: a failed
action ends in ERROR_REPORTED after one user-visible error message.

Usage:
    sm = EventStateMachine()
    sm.transition(EventTrigger.NLU_PARSED)
    assert sm.current_state == EventState.PARSED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class EventState(str, Enum):
    """All possible states of an inbound event."""
    RECEIVED = "received"
    PARSED = "parsed"
    CLASSIFIED = "classified"
    CLARIFY = "clarify"
    DISPATCHED = "dispatched"
    HANDLED = "handled"
    BACKEND_FALLBACK = "backend_fallback"
    ERROR_REPORTED = "error_reported"


class EventTrigger(str, Enum):
    """Events that cause state transitions."""
    NLU_PARSED = "nlu_parsed"
    CONFIDENCE_CLASSIFIED = "confidence_classified"
    LOW_CONFIDENCE = "low_confidence"
    ROUTED = "routed"
    CALLBACK_ROUTED = "callback_routed"
    REPLY_SENT = "reply_sent"
    FALLBACK_USED = "fallback_used"
    FAILED = "failed"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: EventState
    to_state: EventState
    trigger: EventTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: EventState
    entered_at: datetime
    trigger: Optional[EventTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


_TERMINAL_STATES = frozenset(
    {EventState.CLARIFY, EventState.HANDLED, EventState.BACKEND_FALLBACK,
     EventState.ERROR_REPORTED}
)


class EventStateMachine:
    """
    Deterministic state machine for a single inbound event.

    FAILED is accepted from every non-terminal state so that an unexpected
    error anywhere in the pipeline still ends in ERROR_REPORTED.
    """

    TRANSITIONS: list[Transition] = [
        # --- Free-text path ---
        Transition(EventState.RECEIVED, EventState.PARSED, EventTrigger.NLU_PARSED),
        Transition(EventState.PARSED, EventState.CLASSIFIED,
                   EventTrigger.CONFIDENCE_CLASSIFIED),
        Transition(EventState.CLASSIFIED, EventState.CLARIFY, EventTrigger.LOW_CONFIDENCE),
        Transition(EventState.CLASSIFIED, EventState.DISPATCHED, EventTrigger.ROUTED),

        # --- Commands and callbacks bypass NLU ---
        Transition(EventState.RECEIVED, EventState.DISPATCHED, EventTrigger.CALLBACK_ROUTED),

        # --- Outcome ---
        Transition(EventState.DISPATCHED, EventState.HANDLED, EventTrigger.REPLY_SENT),
        Transition(EventState.DISPATCHED, EventState.BACKEND_FALLBACK,
                   EventTrigger.FALLBACK_USED),
    ] + [
        Transition(state, EventState.ERROR_REPORTED, EventTrigger.FAILED)
        for state in EventState
        if state not in _TERMINAL_STATES
    ]

    def __init__(self) -> None:
        self._current_state = EventState.RECEIVED
        self._history: list[StateEntry] = [
            StateEntry(state=EventState.RECEIVED, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> EventState:
        return self._current_state

    def transition(self, trigger: EventTrigger) -> EventState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Event transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def fail(self) -> None:
        """Move to ERROR_REPORTED unless the event already finished."""
        if not self.is_terminal():
            self.transition(EventTrigger.FAILED)

    def get_valid_triggers(self) -> list[EventTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in _TERMINAL_STATES
