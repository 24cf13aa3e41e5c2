"""
Structured logging (fuel_kernel/logging_config.py).

Every fuel_kernel record is one JSON line: envelope, bound request context,
the event's ``extra`` data, and the flattened attributes of any FuelKernelError.
"""

import json
import logging
import threading
from datetime import UTC, datetime
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from fuel_kernel.domain.values import ConsistencyStatus
from fuel_kernel.exceptions import (
    InsufficientLotCoverageError,
    InvalidMrnFormatError,
    TokenExpiredError,
)
from fuel_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)

MRN = "BA23061712345678X"


@pytest.fixture(autouse=True)
def _isolated_logging():
    """Start each test unconfigured, then hand the suite's DEBUG setup back."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


@pytest.fixture
def json_log():
    """Configure fuel_kernel logging into a buffer; return a reader of parsed lines."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    configure_logging(level=logging.DEBUG, handler=handler)

    def read() -> list[dict]:
        return [json.loads(line) for line in stream.getvalue().splitlines() if line]

    return read


def only(records: list[dict], message: str) -> dict:
    (record,) = [r for r in records if r["message"] == message]
    return record


class TestEventLines:
    def test_event_name_is_the_message(self, json_log):
        get_logger("services.lot_ledger").info(
            "lot_added", extra={"mrn": MRN, "quantity": "250.000", "topped_up": False}
        )

        record = only(json_log(), "lot_added")
        assert record["logger"] == "fuel_kernel.services.lot_ledger"
        assert record["level"] == "INFO"
        assert record["mrn"] == MRN
        assert record["quantity"] == "250.000"
        assert record["topped_up"] is False
        assert datetime.fromisoformat(record["ts"]).utcoffset().total_seconds() == 0

    def test_ledger_values_rendered_exactly(self, json_log):
        lot_id = uuid4()
        get_logger("selectors.consistency").warning(
            "tank_inconsistent",
            extra={
                "lot_id": lot_id,
                "difference": Decimal("-0.001"),
                "status": ConsistencyStatus.MINOR,
                "checked_at": datetime(2024, 1, 1, 12, 0, tzinfo=UTC),
            },
        )

        record = only(json_log(), "tank_inconsistent")
        assert record["lot_id"] == str(lot_id)
        assert record["difference"] == "-0.001"
        assert record["status"] == "minor"
        assert record["checked_at"] == "2024-01-01T12:00:00+00:00"

    def test_every_line_parses(self, json_log):
        logger = get_logger("services.allocation")
        logger.debug("allocation_planned")
        logger.info("allocation_completed", extra={"lines": 2})
        logger.warning("allocation_insufficient_coverage")

        assert [r["message"] for r in json_log()] == [
            "allocation_planned",
            "allocation_completed",
            "allocation_insufficient_coverage",
        ]

    def test_envelope_cannot_be_overwritten_by_extra(self, json_log):
        get_logger("test").info("override_issued", extra={"level": "spoofed"})

        assert only(json_log(), "override_issued")["level"] == "INFO"


class TestErrorRecords:
    def test_coverage_error_quantities_flattened(self, json_log):
        try:
            raise InsufficientLotCoverageError("tank-1", Decimal("120"), Decimal("100"))
        except InsufficientLotCoverageError:
            get_logger("services.allocation").error("draw_failed", exc_info=True)

        record = only(json_log(), "draw_failed")
        assert record["exc_type"] == "InsufficientLotCoverageError"
        assert record["exc_code"] == "INSUFFICIENT_LOT_COVERAGE"
        assert record["exc_tank_id"] == "tank-1"
        assert record["exc_uncovered"] == "20"
        assert "Traceback" in record["traceback"]

    def test_mrn_rejection_carries_reason(self, json_log):
        try:
            raise InvalidMrnFormatError("BAL-x", reason="balancing MRNs are issued only by corrections")
        except InvalidMrnFormatError:
            get_logger("services.lot_ledger").warning("intake_rejected", exc_info=True)

        record = only(json_log(), "intake_rejected")
        assert record["exc_mrn"] == "BAL-x"
        assert record["exc_reason"] == "balancing MRNs are issued only by corrections"

    def test_token_timestamps_serialized(self, json_log):
        expired = datetime(2024, 1, 1, 12, 5, tzinfo=UTC)
        try:
            raise TokenExpiredError("tok-1", expired)
        except TokenExpiredError:
            get_logger("services.override_tokens").warning("override_rejected", exc_info=True)

        record = only(json_log(), "override_rejected")
        assert record["exc_code"] == "TOKEN_EXPIRED"
        assert record["exc_token_id"] == "tok-1"
        assert record["exc_expires_at"] == "2024-01-01T12:05:00+00:00"

    def test_plain_exception_has_no_code(self, json_log):
        try:
            raise RuntimeError("engine not initialized")
        except RuntimeError:
            get_logger("db.engine").error("startup_failed", exc_info=True)

        record = only(json_log(), "startup_failed")
        assert record["exc_type"] == "RuntimeError"
        assert record["exc_message"] == "engine not initialized"
        assert "exc_code" not in record


class TestRequestContext:
    def test_bound_fields_stamped_on_records(self, json_log):
        tank_id = uuid4()
        with LogContext.bind(correlation_id="req-42", operator_id="op-7", tank_id=tank_id):
            get_logger("services.fuel_operations").info("fueling_recorded")
        get_logger("services.fuel_operations").info("after_request")

        inside, outside = json_log()
        assert inside["correlation_id"] == "req-42"
        assert inside["operator_id"] == "op-7"
        assert inside["tank_id"] == str(tank_id)
        assert not {"correlation_id", "operator_id", "tank_id"} & outside.keys()

    def test_context_wins_over_extra(self, json_log):
        with LogContext.bind(tank_id="tank-ctx"):
            get_logger("test").info("lot_added", extra={"tank_id": "tank-extra"})

        assert only(json_log(), "lot_added")["tank_id"] == "tank-ctx"

    def test_nested_bind_restores_outer_request(self):
        with LogContext.bind(correlation_id="outer", operator_id="op-1"):
            with LogContext.bind(correlation_id="inner", movement_id=None):
                assert LogContext.get_all() == {"correlation_id": "inner", "operator_id": "op-1"}
            assert LogContext.get("correlation_id") == "outer"
        assert LogContext.get_all() == {}

    def test_unknown_field_rejected_by_set(self):
        with pytest.raises(TypeError):
            LogContext.set(customer_id="c-1")

    def test_set_ignores_none(self):
        LogContext.set(trace_id="tr-1")
        LogContext.set(trace_id=None)
        assert LogContext.get("trace_id") == "tr-1"

    def test_operator_set_in_worker_thread_stays_there(self):
        seen = {}

        def worker():
            LogContext.set(operator_id="op-worker")
            seen["operator_id"] = LogContext.get("operator_id")

        LogContext.set(operator_id="supervisor-1")
        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert seen["operator_id"] == "op-worker"
        assert LogContext.get("operator_id") == "supervisor-1"


class TestConfiguration:
    def test_second_configure_is_ignored(self):
        configure_logging(handler=logging.StreamHandler(StringIO()))
        configure_logging(handler=logging.StreamHandler(StringIO()))

        root = logging.getLogger("fuel_kernel")
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
        assert root.propagate is False

    def test_reset_detaches_and_quietens(self):
        configure_logging(level=logging.DEBUG, handler=logging.StreamHandler(StringIO()))
        reset_logging()

        root = logging.getLogger("fuel_kernel")
        assert root.handlers == []
        assert root.level == logging.WARNING

    def test_default_level_hides_debug(self):
        reset_logging()
        stream = StringIO()
        configure_logging(handler=logging.StreamHandler(stream))
        get_logger("services.allocation").debug("allocation_planned")
        get_logger("services.allocation").info("allocation_completed")

        messages = [json.loads(line)["message"] for line in stream.getvalue().splitlines()]
        assert messages == ["allocation_completed"]
