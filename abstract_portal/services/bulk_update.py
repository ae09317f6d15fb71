"""Bulk status changes.

A batch is validated up front, de-duplicated, and applied with one UPDATE in
one transaction. The caller always gets a per-identifier breakdown; store
failures come back as an unsuccessful ``BulkResult`` rather than an
exception. Only malformed input raises.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from marshmallow import ValidationError as SchemaValidationError

from abstract_portal.models import AbstractStatus
from abstract_portal.schemas.bulk_update_schema import (
    INVALID_IDS_MESSAGE,
    INVALID_STATUS_MESSAGE,
    BulkUpdateSchema,
)
from abstract_portal.services.errors import InvalidStatusError, TransactionError, ValidationError
from abstract_portal.services.statistics import percent
from abstract_portal.utils.logging_utils import get_logger, log_context

logger = get_logger("bulk")

Identifier = Union[int, str]

ITEM_NOT_UPDATED = "Abstract not found or update failed"
ITEM_REPEATED = "Abstract already listed in this batch under another identifier"
NOTHING_UPDATED = "No abstracts were successfully updated"


@dataclass
class ItemResult:
    id: Identifier
    success: bool
    new_status: Optional[str] = None
    error: Optional[str] = None
    title: Optional[str] = None
    updated_at: Optional[datetime] = None
    abstract_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "success": self.success,
            "newStatus": self.new_status,
            "error": self.error,
            "title": self.title,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class BulkResult:
    success: bool
    status: str
    message: str
    results: List[ItemResult] = field(default_factory=list)
    rows_affected: int = 0
    error: Optional[str] = None
    error_type: Optional[str] = None
    processing_time_ms: int = 0
    # Comments as stored; None after a move back to pending.
    comments: Optional[str] = None
    notify: bool = False

    @property
    def successful(self) -> int:
        return sum(1 for item in self.results if item.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def success_rate(self) -> float:
        return percent(self.successful, self.total)

    @property
    def updated_ids(self) -> List[int]:
        seen: List[int] = []
        for item in self.results:
            if item.success and item.abstract_id not in seen:
                seen.append(item.abstract_id)
        return seen

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "success": self.success,
            "message": self.message,
            "updatedCount": self.rows_affected,
            "successful": self.successful,
            "failed": self.failed,
            "total": self.total,
            "successRate": self.success_rate,
            "results": [item.to_dict() for item in self.results],
            "processingTime": f"{self.processing_time_ms}ms",
        }
        if self.error:
            payload["error"] = self.error
        if self.error_type:
            payload["errorType"] = self.error_type
        return payload


def dedupe(identifiers: Iterable[Identifier]) -> List[Identifier]:
    """Drop repeats, keeping first-seen order."""

    seen = set()
    ordered = []
    for identifier in identifiers:
        if identifier in seen:
            continue
        seen.add(identifier)
        ordered.append(identifier)
    return ordered


def validate_request(ids, target_status, comments=None, notify=None) -> Dict[str, Any]:
    """Run the request through ``BulkUpdateSchema``; raise ``ValidationError`` on bad input."""

    data = {"abstractIds": ids, "status": target_status, "comments": comments}
    if notify is not None:
        data["notify"] = notify
    try:
        return BulkUpdateSchema().load(data)
    except SchemaValidationError as err:
        messages = err.normalized_messages()
        if "abstractIds" in messages:
            raise ValidationError(INVALID_IDS_MESSAGE, fields=messages) from err
        if "status" in messages:
            raise InvalidStatusError(INVALID_STATUS_MESSAGE, fields=messages) from err
        raise ValidationError(fields=messages) from err


def _default_updater(*args, **kwargs):
    from abstract_portal.utils.model_utils.abstract_utils import bulk_update_status

    return bulk_update_status(*args, **kwargs)


class BulkUpdateOrchestrator:
    """
    ``updater`` takes ``(int_ids, references, status, comments, actor_id=...)``
    and returns the updated rows; ``clock`` measures processing time.
    """

    def __init__(
        self,
        updater: Callable[..., List[Dict[str, Any]]] = _default_updater,
        *,
        clock: Callable[[], float] = time.perf_counter,
    ):
        self.updater = updater
        self.clock = clock

    def run(
        self,
        ids,
        target_status,
        comments: Optional[str] = None,
        *,
        actor_id=None,
        notify=None,
    ) -> BulkResult:
        started = self.clock()
        payload = validate_request(ids, target_status, comments, notify)
        identifiers = dedupe(payload["abstractIds"])
        status = AbstractStatus(payload["status"])
        comments = payload.get("comments")
        persisted_comments = None if status == AbstractStatus.PENDING else comments
        notify = payload["notify"]

        int_ids = [i for i in identifiers if isinstance(i, int)]
        references = [i for i in identifiers if isinstance(i, str)]

        with log_context(action="bulk_transition", status=status.value, actor_id=actor_id):
            logger.info("Bulk update requested count=%s status=%s", len(identifiers), status.value)
            try:
                rows = self.updater(int_ids, references, status, comments, actor_id=actor_id)
            except TransactionError as exc:
                logger.error("Bulk update failed kind=%s error=%s", exc.kind, exc.message)
                return BulkResult(
                    success=False,
                    status=status.value,
                    message=exc.message,
                    results=[ItemResult(id=i, success=False, error=exc.message) for i in identifiers],
                    error=exc.message,
                    error_type=exc.kind,
                    processing_time_ms=self._elapsed(started),
                    notify=notify,
                )

            by_id = {row["id"]: row for row in rows}
            by_reference = {row["abstract_number"]: row for row in rows}
            results = []
            reported = set()
            for identifier in identifiers:
                row = by_id.get(identifier) if isinstance(identifier, int) else by_reference.get(identifier)
                if row is None:
                    results.append(ItemResult(id=identifier, success=False, error=ITEM_NOT_UPDATED))
                    continue
                # An id and an abstract number can name the same row; count it once.
                if row["id"] in reported:
                    results.append(ItemResult(id=identifier, success=False, error=ITEM_REPEATED))
                    continue
                reported.add(row["id"])
                row_status = row["status"]
                results.append(
                    ItemResult(
                        id=identifier,
                        success=True,
                        new_status=getattr(row_status, "value", row_status),
                        title=row["title"],
                        updated_at=row["updated_at"],
                        abstract_id=row["id"],
                    )
                )

            result = BulkResult(
                success=bool(rows),
                status=status.value,
                message="",
                results=results,
                rows_affected=len(rows),
                processing_time_ms=self._elapsed(started),
                comments=persisted_comments,
                notify=notify,
            )
            if result.success:
                result.message = (
                    f"Successfully updated {result.successful} out of {result.total} "
                    f"abstract(s) to {status.value}"
                )
            else:
                result.message = NOTHING_UPDATED
                result.error = NOTHING_UPDATED

            logger.info(
                "Bulk update finished successful=%s failed=%s rows=%s rate=%s",
                result.successful,
                result.failed,
                result.rows_affected,
                result.success_rate,
            )
            return result

    def _elapsed(self, started: float) -> int:
        return int(round((self.clock() - started) * 1000))


def bulk_transition(ids, target_status, comments: Optional[str] = None, *, actor_id=None, notify=None) -> BulkResult:
    return BulkUpdateOrchestrator().run(ids, target_status, comments, actor_id=actor_id, notify=notify)
