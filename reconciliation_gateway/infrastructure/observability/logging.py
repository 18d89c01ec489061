"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger

from reconciliation_gateway.config import settings


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

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_reconciliation_event(
    step: str,
    tenant_id: str,
    user_id: str,
    bank_feed_transaction_id: Optional[str] = None,
    transaction_id: Optional[str] = None,
    match_id: Optional[str] = None,
    **fields: Any,
) -> None:
    """Log structured reconciliation outcome for analysis"""
    logging.info(
        "Reconciliation %s",
        step,
        extra={
            "step": step,
            "tenant_id": tenant_id,
            "user_id": user_id,
            "bank_feed_transaction_id": bank_feed_transaction_id,
            "transaction_id": transaction_id,
            "match_id": match_id,
            **fields,
        },
    )
