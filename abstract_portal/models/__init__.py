from .enumerations import AbstractCategory, AbstractStatus, Role, REVIEW_STATUSES
from .User import User, UserRole
from .Abstract import Abstract
from .AuditLog import AuditLog

__all__ = [
    "AbstractCategory",
    "AbstractStatus",
    "Role",
    "REVIEW_STATUSES",
    "User",
    "UserRole",
    "Abstract",
    "AuditLog",
]
