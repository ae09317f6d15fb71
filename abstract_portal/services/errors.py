"""Exceptions raised by the review services.

    ReviewError
    +-- ValidationError        malformed input, nothing touched in the store
    |   +-- InvalidStatusError target status outside the allowed set
    +-- NotFoundError          identifier does not exist
    +-- ConflictStateError     abstract cannot make the requested move
    +-- TransactionError       database failure, batch rolled back
    +-- DispatchError          notification could not be sent
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError


class ReviewError(Exception):
    """Base class; carries a message and optional field-level detail."""

    default_message = "Review operation failed"

    def __init__(self, message: Optional[str] = None, fields: Optional[Dict[str, List[str]]] = None) -> None:
        self.message = message or self.default_message
        self.fields = fields or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.message}
        if self.fields:
            payload["fields"] = self.fields
        return payload


class ValidationError(ReviewError):
    default_message = "Invalid request"


class InvalidStatusError(ValidationError):
    default_message = "Invalid status. Must be: pending, approved, or rejected"


class NotFoundError(ReviewError):
    default_message = "Abstract not found"


class ConflictStateError(ReviewError):
    default_message = "Abstract cannot be changed in its current state"


class TransactionError(ReviewError):
    """Raised after a rollback. ``kind`` is ``connection`` or ``transaction``."""

    default_message = "Database transaction failed"

    CONNECTION = "connection"
    TRANSACTION = "transaction"

    def __init__(self, message: Optional[str] = None, kind: str = TRANSACTION) -> None:
        super().__init__(message)
        self.kind = kind

    @classmethod
    def kind_of(cls, exc: SQLAlchemyError) -> str:
        if isinstance(exc, (OperationalError, DisconnectionError)) or getattr(exc, "connection_invalidated", False):
            return cls.CONNECTION
        return cls.TRANSACTION

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["errorType"] = self.kind
        return payload


class DispatchError(ReviewError):
    default_message = "Notification could not be sent"
