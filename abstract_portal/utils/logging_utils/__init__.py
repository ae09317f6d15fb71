"""
Convenience accessors for the structured logging facility.

Usage:
    from abstract_portal.utils.logging_utils import get_logger, log_context
    log = get_logger("review")
    with log_context(abstract_id=abstract.id):
        log.info("abstract approved")
"""

from .manager import (
    CATEGORY_FILES,
    ContextAwareFormatter,
    LoggerManager,
    get_logger,
    init_logger,
    log_context,
    shutdown_logger,
)

__all__ = [
    "CATEGORY_FILES",
    "ContextAwareFormatter",
    "LoggerManager",
    "get_logger",
    "init_logger",
    "log_context",
    "shutdown_logger",
]
