"""
Finite state machine for a single appointment's pass through the weather sweep.

Each appointment examined in a sweep walks an explicit path: it is assessed,
compared against what was already alerted, and either dispatched or left
alone. Undefined moves raise instead of silently succeeding, so an alert
can never be recorded for an appointment that was not dispatched.

Usage:
    sm = AlertStateMachine("evt-1")
    sm.transition(AlertTrigger.RISK_FOUND)
    sm.transition(AlertTrigger.NEW_LEVEL)
    sm.transition(AlertTrigger.DELIVERED)
    assert sm.current_state == AlertState.ALERT_DISPATCHED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class AlertState(str, Enum):
    UNASSESSED = "unassessed"
    ASSESSED_SAFE = "assessed-safe"
    ASSESSED_UNKNOWN = "assessed-unknown"
    ASSESSED_RISKY = "assessed-risky"
    ALREADY_ALERTED = "already-alerted"
    ALERT_DISPATCHED = "alert-dispatched"


class AlertTrigger(str, Enum):
    RISK_BELOW_THRESHOLD = "risk_below_threshold"
    FORECAST_UNAVAILABLE = "forecast_unavailable"
    RISK_FOUND = "risk_found"
    LEVEL_ALREADY_SENT = "level_already_sent"
    NEW_LEVEL = "new_level"
    DELIVERED = "delivered"
    DELIVERY_FAILED = "delivery_failed"


@dataclass
class Transition:
    from_state: AlertState
    to_state: AlertState
    trigger: AlertTrigger


@dataclass
class StateEntry:
    state: AlertState
    entered_at: datetime
    trigger: Optional[AlertTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


TERMINAL_STATES = frozenset({
    AlertState.ASSESSED_SAFE,
    AlertState.ASSESSED_UNKNOWN,
    AlertState.ALREADY_ALERTED,
    AlertState.ALERT_DISPATCHED,
})


class AlertStateMachine:
    """Tracks one appointment from assessment to (at most) one dispatched alert."""

    TRANSITIONS: list[Transition] = [
        # --- Assessment ---
        Transition(AlertState.UNASSESSED, AlertState.ASSESSED_SAFE,
                   AlertTrigger.RISK_BELOW_THRESHOLD),
        Transition(AlertState.UNASSESSED, AlertState.ASSESSED_UNKNOWN,
                   AlertTrigger.FORECAST_UNAVAILABLE),
        Transition(AlertState.UNASSESSED, AlertState.ASSESSED_RISKY,
                   AlertTrigger.RISK_FOUND),

        # --- Dedup against prior alerts ---
        Transition(AlertState.ASSESSED_RISKY, AlertState.ALREADY_ALERTED,
                   AlertTrigger.LEVEL_ALREADY_SENT),
        Transition(AlertState.ASSESSED_RISKY, AlertState.ASSESSED_RISKY,
                   AlertTrigger.NEW_LEVEL),

        # --- Delivery ---
        Transition(AlertState.ASSESSED_RISKY, AlertState.ALERT_DISPATCHED,
                   AlertTrigger.DELIVERED),
        # Nothing is recorded; the next sweep retries.
        Transition(AlertState.ASSESSED_RISKY, AlertState.UNASSESSED,
                   AlertTrigger.DELIVERY_FAILED),
    ]

    def __init__(self, appointment_id: str) -> None:
        self.appointment_id = appointment_id
        self._current_state = AlertState.UNASSESSED
        self._history: list[StateEntry] = [
            StateEntry(state=AlertState.UNASSESSED, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> AlertState:
        return self._current_state

    def transition(self, trigger: AlertTrigger) -> AlertState:
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
                    "Alert %s: %s -> %s (trigger: %s)",
                    self.appointment_id, old_state.value,
                    self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[AlertTrigger]:
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state in TERMINAL_STATES
