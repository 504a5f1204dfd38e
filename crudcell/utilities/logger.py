"""
Logger module for crudcell.

Every layer (schema, coercion, store adapter, services) logs through this single logger, so host
applications can redirect or silence the framework without touching its modules.

Modules import `logger` once, so it is an adapter whose target set_logger swaps in place.
"""

import logging

# Module-level logger
logger: logging.LoggerAdapter = logging.LoggerAdapter(logging.getLogger('crudcell'))
logger.setLevel(logging.WARNING)  # Database usage lines are DEBUG, so they stay quiet unless asked for

def set_logger(custom_logger: logging.Logger) -> None:
    """Allow users to provide their own logger."""
    logger.logger = custom_logger

def set_log_level(level: int) -> None:
    """Set the logging level for the framework.

    Args:
        level: logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, or logging.CRITICAL
    """
    logger.setLevel(level)
