"""
Logging utility functions and helpers.
"""

import logging
from typing import Any, Dict, Optional


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Usage:
        from utils.logger import get_logger
        logger = get_logger(__name__)
    """
    return logging.getLogger(name)


def sanitize_log_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove sensitive information from log data.

    Bearer tokens keep their first 8 characters so a request can still be
    correlated; every other sensitive value is fully redacted. Nested
    dictionaries are sanitized recursively.
    """
    sensitive_fields = {
        'password', 'token', 'secret', 'api_key', 'authorization'
    }

    sanitized = data.copy()

    for key, value in sanitized.items():
        if any(sensitive in key.lower() for sensitive in sensitive_fields):
            if isinstance(value, str):
                if 'token' in key.lower() and len(value) > 8:
                    sanitized[key] = f"{value[:8]}..."
                else:
                    sanitized[key] = "***REDACTED***"

        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)

    return sanitized


def log_database_query(
    logger: logging.Logger,
    query_type: str,
    table: str,
    duration_ms: float,
    rows_affected: Optional[int] = None,
    extra: Optional[Dict[str, Any]] = None
):
    """
    Log a database operation in a structured format.

    Args:
        logger: Logger instance
        query_type: Type of query (SELECT, INSERT, UPDATE)
        table: Table name
        duration_ms: Query duration in milliseconds
        rows_affected: Number of rows matched by an UPDATE
        extra: Additional context (order id, expected status, ...)

    Usage:
        log_database_query(logger, "UPDATE", "orders", 3.1, rows_affected=0)
    """
    log_data = {
        "query_type": query_type,
        "table": table,
        "duration_ms": round(duration_ms, 2)
    }

    if rows_affected is not None:
        log_data["rows_affected"] = rows_affected

    if extra:
        log_data.update(sanitize_log_data(extra))

    # Anything over a second is worth a look
    if duration_ms > 1000:
        logger.warning(
            f"Slow {query_type} query on {table}",
            extra=log_data
        )
    else:
        logger.debug(
            f"{query_type} query on {table}",
            extra=log_data
        )
