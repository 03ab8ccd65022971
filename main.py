"""
Detail scheduler entry point.

Runs the HTTP API, or one pass of a recurring job for an external scheduler
(cron, Cloud Scheduler) to trigger.

Usage:
    API server:        python main.py serve
    Weather sweep:     python main.py sweep
    Due reminders:     python main.py reminders
"""

import logging
import sys

from detail_scheduler.config import settings
from detail_scheduler.errors import UpstreamUnavailable
from detail_scheduler.logging_context import REMINDER_PREFIX, new_request_id

logger = logging.getLogger(__name__)

MODES = ("serve", "sweep", "reminders")


def _run_server() -> None:
    """Serve the API with uvicorn (HOST/PORT from the environment)."""
    import os

    import uvicorn

    from detail_scheduler.api.app import create_app
    from detail_scheduler.bootstrap import build_container

    app = create_app(build_container(settings))
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


def _run_sweep() -> int:
    from detail_scheduler.bootstrap import build_container

    container = build_container(settings)
    try:
        result = container.alert_scheduler.run_sweep()
    except UpstreamUnavailable as exc:
        logger.error("Weather sweep failed: %s", exc)
        return 1
    finally:
        container.close()
    logger.info(
        "Checked %d appointments, sent %d alerts, %d need manual review",
        result.checked, result.alerts_sent, len(result.manual_review),
    )
    return 0


def _run_reminders() -> int:
    from detail_scheduler.bootstrap import build_container

    new_request_id(REMINDER_PREFIX)
    container = build_container(settings)
    try:
        sent = container.notifications.run_due()
    finally:
        container.close()
    logger.info("Delivered %d due notifications", sent)
    return 0


def main(argv: list[str]) -> int:
    mode = argv[0] if argv else "serve"
    if mode not in MODES:
        print(f"Unknown mode {mode!r}; expected one of {', '.join(MODES)}", file=sys.stderr)
        return 2
    if mode == "serve":
        _run_server()
        return 0
    if mode == "sweep":
        return _run_sweep()
    return _run_reminders()


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
