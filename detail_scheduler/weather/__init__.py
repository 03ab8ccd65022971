from detail_scheduler.weather.alert_scheduler import AlertScheduler, SweepResult
from detail_scheduler.weather.alert_state import (
    AlertState,
    AlertStateMachine,
    AlertTrigger,
    InvalidTransitionError,
)
from detail_scheduler.weather.alert_store import AlertRecord, AlertRecordStore
from detail_scheduler.weather.risk_evaluator import WeatherRiskEvaluator

__all__ = [
    "AlertScheduler", "SweepResult", "AlertState", "AlertStateMachine", "AlertTrigger",
    "InvalidTransitionError", "AlertRecord", "AlertRecordStore", "WeatherRiskEvaluator",
]
