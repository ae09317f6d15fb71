"""
Store helpers for the review portal.

``base`` holds the generic create/get/list/update/delete wrappers with
context-aware logging; ``abstract_utils`` and ``audit_log_utils`` build on it.
"""

from . import base  # noqa: F401
