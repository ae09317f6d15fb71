from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Type, TypeVar

from abstract_portal.extensions import db
from abstract_portal.utils.logging_utils import get_logger, log_context

ModelType = TypeVar("ModelType", bound=db.Model)

_REDACT = ("password", "secret", "token", "key", "credential")

logger = get_logger("app")


def _serialize_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    # Enum members log as their value.
    return value.value if isinstance(getattr(value, "value", None), str) else str(value)


def _loggable(attributes: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: "***REDACTED***" if any(part in key.lower() for part in _REDACT) else _serialize_value(value)
        for key, value in attributes.items()
    }


def _scope(model_name: str, action: str, actor_id: Optional[Any], context: Optional[Dict[str, Any]]):
    fields = {f"ctx_{key}": value for key, value in (context or {}).items()}
    return log_context(model=model_name, action=action, actor_id=actor_id, **fields)


def create_instance(
    model_cls: Type[ModelType],
    commit: bool = True,
    *,
    actor_id: Optional[Any] = None,
    context: Optional[Dict[str, Any]] = None,
    **attributes: Any,
) -> ModelType:
    """Add a new row; flushed so the id is known even when ``commit`` is False."""

    with _scope(model_cls.__name__, "create", actor_id, context):
        try:
            instance = model_cls(**attributes)
            db.session.add(instance)
            db.session.flush()
            if commit:
                db.session.commit()
        except Exception:
            logger.exception("Failed to create %s attributes=%s", model_cls.__name__, _loggable(attributes))
            raise
        logger.info("Created %s id=%s commit=%s", model_cls.__name__, instance.id, commit)
        return instance


def get_instance(
    model_cls: Type[ModelType],
    instance_id: Any,
    *,
    actor_id: Optional[Any] = None,
    context: Optional[Dict[str, Any]] = None,
) -> Optional[ModelType]:
    with _scope(model_cls.__name__, "get", actor_id, context):
        instance = db.session.get(model_cls, instance_id) if instance_id is not None else None
        logger.debug("Fetched %s id=%s found=%s", model_cls.__name__, instance_id, instance is not None)
        return instance


def list_instances(
    model_cls: Type[ModelType],
    *,
    filters: Optional[Sequence[Any]] = None,
    order_by: Sequence[Any] = (),
    limit: Optional[int] = None,
    actor_id: Optional[Any] = None,
    context: Optional[Dict[str, Any]] = None,
) -> List[ModelType]:
    with _scope(model_cls.__name__, "list", actor_id, context):
        query = db.session.query(model_cls).filter(*(filters or ())).order_by(*order_by)
        if limit is not None:
            query = query.limit(limit)
        rows = query.all()
        logger.debug("Listed %s count=%s", model_cls.__name__, len(rows))
        return rows


def update_instance(
    instance: ModelType,
    commit: bool = True,
    *,
    actor_id: Optional[Any] = None,
    context: Optional[Dict[str, Any]] = None,
    **attributes: Any,
) -> ModelType:
    """Assign ``attributes`` as given, ``None`` included."""

    model_name = type(instance).__name__
    with _scope(model_name, "update", actor_id, context):
        try:
            for key, value in attributes.items():
                setattr(instance, key, value)
            if commit:
                db.session.commit()
        except Exception:
            logger.exception("Failed to update %s id=%s", model_name, instance.id)
            raise
        logger.info("Updated %s id=%s attributes=%s commit=%s", model_name, instance.id, _loggable(attributes), commit)
        return instance


def delete_instance(
    instance: ModelType,
    commit: bool = True,
    *,
    actor_id: Optional[Any] = None,
    context: Optional[Dict[str, Any]] = None,
) -> None:
    model_name, identity = type(instance).__name__, instance.id
    with _scope(model_name, "delete", actor_id, context):
        try:
            db.session.delete(instance)
            if commit:
                db.session.commit()
        except Exception:
            logger.exception("Failed to delete %s id=%s", model_name, identity)
            raise
        logger.info("Deleted %s id=%s commit=%s", model_name, identity, commit)
