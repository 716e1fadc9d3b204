"""Unit tests for structured JSON logging"""

import json
import logging
from universe_bank.infrastructure.observability.logging import CustomJsonFormatter, request_id_var


def _format(message: str, **extra) -> dict:
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    record = logging.LogRecord("universe_bank", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return json.loads(formatter.format(record))


def test_formatter_adds_service_metadata():
    """Test every line carries level, service and timestamp"""
    data = _format("Loan decision completed", borrower="0xA11CE")

    assert data["message"] == "Loan decision completed"
    assert data["level"] == "INFO"
    assert data["service"] == "universe-bank"
    assert data["borrower"] == "0xA11CE"
    assert "timestamp" in data
    assert "request_id" not in data


def test_formatter_picks_up_current_request_id():
    """Test lines logged while serving a request carry its id"""
    token = request_id_var.set("req-42")
    try:
        data = _format("Repayment processed")
    finally:
        request_id_var.reset(token)

    assert data["request_id"] == "req-42"
    assert "request_id" not in _format("Repayment processed")


def test_explicit_request_id_wins():
    token = request_id_var.set("req-42")
    try:
        data = _format("Corrupted state", request_id="other")
    finally:
        request_id_var.reset(token)

    assert data["request_id"] == "other"
