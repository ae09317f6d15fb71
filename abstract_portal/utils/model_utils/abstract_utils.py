from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import or_, select, text, update
from sqlalchemy.exc import SQLAlchemyError

from abstract_portal.extensions import db
from abstract_portal.models import Abstract, AbstractCategory, AbstractStatus, User
from abstract_portal.services.errors import TransactionError
from abstract_portal.services.notification_dispatcher import NotificationTarget
from abstract_portal.utils.logging_utils import get_logger, log_context

from .base import (
    _loggable,
    _serialize_value,
    create_instance,
    delete_instance,
    get_instance,
    list_instances,
    update_instance,
)

logger = get_logger("submission")
bulk_logger = get_logger("bulk")

_RETURNED_COLUMNS = (
    Abstract.id,
    Abstract.abstract_number,
    Abstract.title,
    Abstract.status,
    Abstract.updated_at,
)


def create_abstract(
    commit: bool = True,
    *,
    actor_id: Optional[Any] = None,
    context: Optional[Dict[str, object]] = None,
    **attributes,
) -> Abstract:
    ctx = {"function": "create_abstract", **(context or {})}
    # New submissions always enter review as pending.
    attributes["status"] = AbstractStatus.PENDING
    attributes.pop("reviewer_comments", None)
    with log_context(module="abstract_utils", action="create_abstract", actor_id=actor_id):
        logger.info("create_abstract commit=%s attributes=%s", commit, _loggable(attributes))
    abstract = create_instance(Abstract, commit=commit, actor_id=actor_id, context=ctx, **attributes)
    logger.info(
        "create_abstract complete id=%s number=%s",
        _serialize_value(abstract.id),
        abstract.abstract_number,
    )
    return abstract


def get_abstract_by_id(abstract_id, *, actor_id: Optional[Any] = None) -> Optional[Abstract]:
    return get_instance(Abstract, abstract_id, actor_id=actor_id, context={"function": "get_abstract_by_id"})


def get_abstract_by_reference(reference) -> Optional[Abstract]:
    """Look up by integer id or by ``abstract_number``."""

    if isinstance(reference, int) and not isinstance(reference, bool):
        return get_abstract_by_id(reference)
    if isinstance(reference, str):
        value = reference.strip()
        if value.isascii() and value.isdigit():
            return get_abstract_by_id(int(value))
        if value:
            return db.session.execute(
                select(Abstract).where(Abstract.abstract_number == value)
            ).scalar_one_or_none()
    return None


def list_abstracts(
    *,
    status: Optional[AbstractStatus] = None,
    category: Optional[AbstractCategory] = None,
    actor_id: Optional[Any] = None,
) -> Sequence[Abstract]:
    filters = []
    if status is not None:
        filters.append(Abstract.status == status)
    if category is not None:
        filters.append(Abstract.category == category)
    return list_instances(
        Abstract,
        filters=filters,
        order_by=(Abstract.submission_date.desc(), Abstract.id.desc()),
        actor_id=actor_id,
        context={"function": "list_abstracts"},
    )


def list_abstracts_for_owner(user_id) -> Sequence[Abstract]:
    return list_instances(
        Abstract,
        filters=[Abstract.user_id == user_id],
        order_by=(Abstract.submission_date.desc(), Abstract.id.desc()),
        actor_id=user_id,
        context={"function": "list_abstracts_for_owner"},
    )


def update_abstract(abstract: Abstract, commit: bool = True, *, actor_id: Optional[Any] = None, **attributes) -> Abstract:
    return update_instance(
        abstract,
        commit=commit,
        actor_id=actor_id,
        context={"function": "update_abstract", "abstract_id": abstract.id},
        **attributes,
    )


def delete_abstract(abstract: Abstract, commit: bool = True, *, actor_id: Optional[Any] = None) -> None:
    delete_instance(abstract, commit=commit, actor_id=actor_id, context={"function": "delete_abstract"})


def bulk_update_status(
    int_ids: Sequence[int],
    references: Sequence[str],
    status: AbstractStatus,
    comments: Optional[str] = None,
    *,
    actor_id: Optional[Any] = None,
) -> List[Dict[str, Any]]:
    """
    Move every matching abstract to ``status`` with a single UPDATE in one
    transaction. Rows already ``final_submitted`` are left untouched.

    Returns one mapping per updated row (``id``, ``abstract_number``,
    ``title``, ``status``, ``updated_at``). Raises ``TransactionError`` after
    rolling back if anything in the transaction fails.
    """

    match = []
    if int_ids:
        match.append(Abstract.id.in_(list(int_ids)))
    if references:
        match.append(Abstract.abstract_number.in_(list(references)))
    if not match:
        return []

    now = datetime.now(timezone.utc)
    values = {
        "status": status,
        "reviewer_comments": None if status == AbstractStatus.PENDING else comments,
        "updated_at": now,
        "updated_by_id": actor_id,
    }
    condition = (or_(*match), Abstract.status != AbstractStatus.FINAL_SUBMITTED)

    with log_context(module="abstract_utils", action="bulk_update_status", actor_id=actor_id):
        bulk_logger.info(
            "bulk_update_status ids=%s references=%s status=%s",
            list(int_ids),
            list(references),
            status.value,
        )
        try:
            if db.engine.dialect.update_returning:
                result = db.session.execute(
                    update(Abstract)
                    .where(*condition)
                    .values(**values)
                    .returning(*_RETURNED_COLUMNS)
                    .execution_options(synchronize_session=False)
                )
                rows = [dict(row._mapping) for row in result]
            else:
                locked = db.session.execute(
                    select(Abstract.id, Abstract.abstract_number, Abstract.title)
                    .where(*condition)
                    .with_for_update()
                ).all()
                rows = [
                    {**dict(row._mapping), "status": status, "updated_at": now}
                    for row in locked
                ]
                if rows:
                    db.session.execute(
                        update(Abstract)
                        .where(Abstract.id.in_([row["id"] for row in rows]))
                        .values(**values)
                        .execution_options(synchronize_session=False)
                    )
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            kind = TransactionError.kind_of(exc)
            bulk_logger.exception("bulk_update_status rolled back kind=%s", kind)
            raise TransactionError(
                "Database connection failed" if kind == TransactionError.CONNECTION else "Bulk update transaction failed",
                kind=kind,
            ) from exc

        bulk_logger.info("bulk_update_status committed rows=%s", len(rows))
    return rows


def resolve_recipients(abstract_ids: Sequence[int]) -> List[NotificationTarget]:
    """Join each abstract to its owner to get the real recipient address."""

    if not abstract_ids:
        return []
    rows = db.session.execute(
        select(Abstract, User.email)
        .outerjoin(User, Abstract.user_id == User.id)
        .where(Abstract.id.in_(list(abstract_ids)))
    ).all()
    by_id = {abstract.id: (abstract, email) for abstract, email in rows}

    targets = []
    for abstract_id in abstract_ids:
        if abstract_id not in by_id:
            continue
        abstract, email = by_id[abstract_id]
        targets.append(
            NotificationTarget(
                abstract_id=abstract.id,
                email=email,
                presenter_name=abstract.presenter_name,
                title=abstract.title,
                category=abstract.category.value if abstract.category else None,
                institution=abstract.institution,
                abstract_number=abstract.abstract_number,
            )
        )
    logger.info("resolve_recipients requested=%s resolved=%s", len(abstract_ids), len(targets))
    return targets


def ping_database() -> bool:
    try:
        db.session.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Database connectivity check failed")
        return False
