"""Tests for correlation ids on log records."""

import logging
import re

from detail_scheduler.logging_context import (
    SWEEP_PREFIX,
    RequestIdFilter,
    get_request_id,
    get_request_logger,
    new_request_id,
    set_request_id,
)


class TestRequestIds:
    def test_new_id_is_prefixed_and_current(self):
        request_id = new_request_id(SWEEP_PREFIX)
        assert re.fullmatch(r"SWEEP-[0-9a-f]{8}", request_id)
        assert get_request_id() == request_id

    def test_supplied_id_is_adopted(self):
        set_request_id("caller-123")
        assert get_request_id() == "caller-123"

    def test_filter_stamps_record(self):
        set_request_id("REQ-00000001")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert RequestIdFilter().filter(record)
        assert record.request_id == "REQ-00000001"

    def test_logger_gets_one_filter(self):
        logger = get_request_logger("detail_scheduler.tests.logging_context")
        get_request_logger("detail_scheduler.tests.logging_context")
        assert sum(isinstance(f, RequestIdFilter) for f in logger.filters) == 1
