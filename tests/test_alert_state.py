"""Tests for the per-appointment alert state machine."""

import pytest

from detail_scheduler.weather.alert_state import (
    AlertState,
    AlertStateMachine,
    AlertTrigger,
    InvalidTransitionError,
)


@pytest.fixture
def sm():
    return AlertStateMachine("evt-1")


class TestInitialState:
    def test_starts_unassessed(self, sm):
        assert sm.current_state == AlertState.UNASSESSED
        assert not sm.is_terminal()
        assert len(sm.get_history()) == 1


class TestPaths:
    def test_safe_path(self, sm):
        assert sm.transition(AlertTrigger.RISK_BELOW_THRESHOLD) == AlertState.ASSESSED_SAFE
        assert sm.is_terminal()

    def test_unknown_path(self, sm):
        assert sm.transition(AlertTrigger.FORECAST_UNAVAILABLE) == AlertState.ASSESSED_UNKNOWN
        assert sm.is_terminal()

    def test_dispatch_path(self, sm):
        sm.transition(AlertTrigger.RISK_FOUND)
        sm.transition(AlertTrigger.NEW_LEVEL)
        assert sm.transition(AlertTrigger.DELIVERED) == AlertState.ALERT_DISPATCHED
        assert sm.get_state_trace() == [
            "unassessed", "assessed-risky", "assessed-risky", "alert-dispatched",
        ]

    def test_already_alerted_path(self, sm):
        sm.transition(AlertTrigger.RISK_FOUND)
        assert sm.transition(AlertTrigger.LEVEL_ALREADY_SENT) == AlertState.ALREADY_ALERTED
        assert sm.is_terminal()

    def test_failed_delivery_returns_to_unassessed(self, sm):
        sm.transition(AlertTrigger.RISK_FOUND)
        sm.transition(AlertTrigger.NEW_LEVEL)
        assert sm.transition(AlertTrigger.DELIVERY_FAILED) == AlertState.UNASSESSED
        assert not sm.is_terminal()


class TestInvalidTransitions:
    def test_cannot_dispatch_without_assessment(self, sm):
        with pytest.raises(InvalidTransitionError, match="Valid triggers"):
            sm.transition(AlertTrigger.DELIVERED)

    def test_safe_is_final(self, sm):
        sm.transition(AlertTrigger.RISK_BELOW_THRESHOLD)
        with pytest.raises(InvalidTransitionError):
            sm.transition(AlertTrigger.RISK_FOUND)

    def test_unknown_cannot_escalate(self, sm):
        sm.transition(AlertTrigger.FORECAST_UNAVAILABLE)
        with pytest.raises(InvalidTransitionError):
            sm.transition(AlertTrigger.NEW_LEVEL)
        assert sm.get_valid_triggers() == []

    def test_history_records_triggers(self, sm):
        sm.transition(AlertTrigger.RISK_FOUND)
        entry = sm.get_history()[-1]
        assert entry.trigger == AlertTrigger.RISK_FOUND
        assert entry.state == AlertState.ASSESSED_RISKY
