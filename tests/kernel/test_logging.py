"""Tests for the structured logging system (erp_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from erp_kernel.exceptions import OverpaymentError
from erp_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


class TestStructuredFormatter:
    """JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_all_logs(stream)[0]
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "erp.test"
        assert "ts" in record

    def test_extra_fields_serialize_domain_types(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        invoice_id = uuid4()
        get_logger("test").info("payment_applied", extra={
            "invoice_id": invoice_id,
            "amount": Decimal("400.00"),
            "payment_date": date(2024, 1, 10),
        })

        record = _parse_all_logs(stream)[0]
        assert record["invoice_id"] == str(invoice_id)
        assert record["amount"] == "400.00"
        assert record["payment_date"] == "2024-01-10"

    def test_exception_attributes_are_flattened(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise OverpaymentError("inv-1", Decimal("700.00"), Decimal("600.00"))
        except OverpaymentError:
            get_logger("test").error("payment_failed", exc_info=True)

        record = _parse_all_logs(stream)[0]
        assert record["exc_type"] == "OverpaymentError"
        assert record["exc_code"] == "OVERPAYMENT"
        assert record["exc_invoice_id"] == "inv-1"
        assert "traceback" in record


class TestLogContext:

    def test_bound_fields_appear_and_are_restored(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")

        with LogContext.bind(invoice_id="inv-9", actor_id="user-1"):
            logger.info("inside")
        logger.info("outside")

        inside, outside = _parse_all_logs(stream)
        assert inside["invoice_id"] == "inv-9"
        assert inside["actor_id"] == "user-1"
        assert "invoice_id" not in outside

    def test_unknown_fields_are_ignored(self):
        with LogContext.bind(not_a_field="x"):
            assert LogContext.get_all() == {}


class TestConfigureLogging:

    def test_configure_is_idempotent(self):
        first, _ = _make_handler()
        second, _ = _make_handler()
        configure_logging(handler=first)
        configure_logging(handler=second)

        # pytest may attach its own capture handlers; count only ours.
        installed = [
            h for h in logging.getLogger("erp").handlers
            if isinstance(h.formatter, StructuredFormatter)
        ]
        assert installed == [first]

    def test_erp_logger_does_not_propagate(self):
        configure_logging(handler=logging.NullHandler())
        assert logging.getLogger("erp").propagate is False
