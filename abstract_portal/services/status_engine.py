from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from abstract_portal.extensions import db
from abstract_portal.models import Abstract, AbstractStatus, REVIEW_STATUSES
from abstract_portal.services.errors import (
    ConflictStateError,
    InvalidStatusError,
    NotFoundError,
    TransactionError,
)
from abstract_portal.utils.logging_utils import get_logger, log_context
from abstract_portal.utils.model_utils import abstract_utils

logger = get_logger("review")


def coerce_review_status(value) -> AbstractStatus:
    """Return the ``AbstractStatus`` for a review target or raise ``InvalidStatusError``."""

    if isinstance(value, AbstractStatus):
        status = value
    else:
        try:
            status = AbstractStatus(str(value).strip().lower()) if value is not None else None
        except ValueError:
            status = None
    if status not in REVIEW_STATUSES:
        raise InvalidStatusError(fields={"status": [InvalidStatusError.default_message]})
    return status


def _commit(abstract_id, action: str) -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        kind = TransactionError.kind_of(exc)
        logger.exception("%s rolled back abstract_id=%s kind=%s", action, abstract_id, kind)
        raise TransactionError(kind=kind) from exc


def _load(abstract_id) -> Abstract:
    abstract = db.session.get(Abstract, abstract_id) if abstract_id is not None else None
    if abstract is None:
        raise NotFoundError(f"Abstract {abstract_id} not found")
    return abstract


def transition(
    abstract_id,
    target_status,
    comments: Optional[str] = None,
    *,
    actor_id=None,
    owner_id=None,
) -> Abstract:
    """
    Move one abstract to ``target_status``.

    ``owner_id`` is passed for delegate-initiated changes and must match the
    abstract's owner. Abstracts that reached ``final_submitted`` are frozen.
    Comments are cleared when an abstract goes back to ``pending``.
    """

    status = coerce_review_status(target_status)
    with log_context(abstract_id=abstract_id, action="transition", actor_id=actor_id):
        abstract = _load(abstract_id)

        if owner_id is not None and abstract.user_id != owner_id:
            raise ConflictStateError("Abstract belongs to another user")
        if abstract.status == AbstractStatus.FINAL_SUBMITTED:
            raise ConflictStateError("Final submission received; status can no longer change")

        previous = abstract.status
        changes = {
            "status": status,
            "reviewer_comments": None if status == AbstractStatus.PENDING else comments,
            "updated_at": datetime.now(timezone.utc),
        }
        if actor_id is not None:
            changes["updated_by_id"] = actor_id
        abstract_utils.update_abstract(abstract, commit=False, actor_id=actor_id, **changes)
        _commit(abstract_id, "transition")

        logger.info(
            "Abstract %s moved %s -> %s",
            abstract.id,
            previous.value if previous else None,
            status.value,
        )
        return abstract


def finalize_submission(abstract_id, *, owner_id, final_file_name: str, final_file_path: Optional[str] = None) -> Abstract:
    """Record the final presentation upload of an approved abstract."""

    with log_context(abstract_id=abstract_id, action="finalize_submission", actor_id=owner_id):
        abstract = _load(abstract_id)
        if abstract.user_id != owner_id:
            raise ConflictStateError("Abstract belongs to another user")
        if abstract.status != AbstractStatus.APPROVED:
            raise ConflictStateError("Only approved abstracts accept a final submission")

        now = datetime.now(timezone.utc)
        abstract_utils.update_abstract(
            abstract,
            commit=False,
            actor_id=owner_id,
            final_file_name=final_file_name,
            final_file_path=final_file_path,
            final_submitted_at=now,
            status=AbstractStatus.FINAL_SUBMITTED,
            updated_at=now,
        )
        _commit(abstract_id, "finalize_submission")

        logger.info("Abstract %s final submission recorded file=%s", abstract.id, final_file_name)
        return abstract
