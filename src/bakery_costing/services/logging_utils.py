"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across costing, purchase and inventory
operations.

Usage:
    from bakery_costing.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    # Log successful operation
    log_operation(
        logger,
        operation="register_purchase",
        outcome="success",
        purchase_id=123,
        ingredient_id=45,
    )

    # Log a partial failure
    log_operation(
        logger,
        operation="register_purchase",
        outcome="stock_update_failed",
        level=logging.WARNING,
        ingredient_id=45,
        error="...",
    )
"""

import logging
from typing import Any, Optional

LOGGER_PREFIX = "bakery_costing.services"

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Configured logger instance with the 'bakery_costing.services' prefix.

    Example:
        >>> logger = get_service_logger(__name__)
        >>> logger.name
        'bakery_costing.services.purchase_service'
    """
    # Extract just the module name if full path is provided
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"{LOGGER_PREFIX}.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The context is passed via the 'extra' parameter so handlers and tests can
    read it back as record attributes.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "register_purchase", "refresh_product_cost")
        outcome: Outcome description (e.g., "success", "validation_failed", "error")
        level: Log level (default: INFO). Use DEBUG for verbose/frequent logs.
        **context: Additional context fields (entity IDs, error details, etc.)
            Common fields:
            - ingredient_id / recipe_id / product_id: entity being processed
            - old_cost / new_cost: values before and after a cost change
            - error: Error message if outcome is a failure
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)


def configure_logging(level: int = logging.INFO, fmt: Optional[str] = None) -> None:
    """
    Attach a console handler to the application's root logger.

    Used by the command-line entry point; library callers configure logging
    themselves. Calling it again only updates the level.

    Args:
        level: Minimum level to emit
        fmt: Optional format string (defaults to DEFAULT_LOG_FORMAT)
    """
    app_logger = logging.getLogger("bakery_costing")
    app_logger.setLevel(level)

    if not any(getattr(h, "_bakery_costing_console", False) for h in app_logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt or DEFAULT_LOG_FORMAT))
        handler._bakery_costing_console = True
        app_logger.addHandler(handler)
