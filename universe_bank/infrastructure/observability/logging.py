"""Structured JSON logging for production observability"""

import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from universe_bank.config import settings

# Set by RequestIDMiddleware for the lifetime of one HTTP request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name

        request_id = request_id_var.get()
        if request_id and "request_id" not in log_record:
            log_record["request_id"] = request_id


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_decision(
    borrower: str,
    approved: bool,
    score: int,
    max_amount: int,
    duration_ms: float,
) -> None:
    """Log structured decision outcome for analysis"""
    logging.info(
        "Loan decision completed",
        extra={
            "borrower": borrower,
            "step": "decision_complete",
            "approval_outcome": "approved" if approved else "declined",
            "credit_score": score,
            "max_amount": max_amount,
            "duration_ms": duration_ms,
        },
    )


def log_repayment(
    borrower: str,
    loan_id: str,
    amount_applied: float,
    fully_repaid: bool,
    model_version: int,
) -> None:
    """Log a processed repayment and the model version it left behind"""
    logging.info(
        "Repayment processed",
        extra={
            "borrower": borrower,
            "step": "repayment_complete",
            "loan_id": loan_id,
            "amount_applied": amount_applied,
            "fully_repaid": fully_repaid,
            "model_version": model_version,
        },
    )
