"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger
from invoice_gateway.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_charge(
    request_id: str,
    user_id: str,
    card_id: str,
    installments: int,
    total_charged_cents: int,
    duration_ms: float,
) -> None:
    """Log structured outcome of a committed card charge"""
    logging.info(
        "Charge committed",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "card_id": card_id,
            "step": "charge_complete",
            "installments": installments,
            "total_charged_cents": total_charged_cents,
            "duration_ms": duration_ms,
        },
    )


def log_payment(
    request_id: str,
    user_id: str,
    invoice_id: str,
    amount_cents: int,
    status: str,
    limit_stale: bool,
    duration_ms: Optional[float] = None,
) -> None:
    """Log structured outcome of an invoice payment"""
    logging.info(
        "Invoice payment recorded",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "invoice_id": invoice_id,
            "step": "payment_complete",
            "amount_cents": amount_cents,
            "invoice_status": status,
            "limit_stale": limit_stale,
            "duration_ms": duration_ms,
        },
    )
