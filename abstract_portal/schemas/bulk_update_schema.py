from marshmallow import EXCLUDE, fields, validate

from abstract_portal.extensions import ma
from abstract_portal.models.enumerations import REVIEW_STATUSES

INVALID_IDS_MESSAGE = "Invalid or empty abstract IDs array"
INVALID_STATUS_MESSAGE = "Invalid status. Must be: pending, approved, or rejected"


class AbstractIdentifier(fields.Field):
    """An integer id or an abstract number; digit-only strings become ints."""

    default_error_messages = {
        "invalid": "Abstract identifiers must be integers or non-empty strings.",
    }

    def _deserialize(self, value, attr, data, **kwargs):
        if isinstance(value, bool) or not isinstance(value, (int, str)):
            raise self.make_error("invalid")
        if isinstance(value, str):
            value = value.strip()
            if not value:
                raise self.make_error("invalid")
            if value.isascii() and value.isdigit():
                return int(value)
        return value


class StatusChangeSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    status = fields.String(
        required=True,
        validate=validate.OneOf([s.value for s in REVIEW_STATUSES], error=INVALID_STATUS_MESSAGE),
        error_messages={"required": INVALID_STATUS_MESSAGE, "null": INVALID_STATUS_MESSAGE},
    )
    comments = fields.String(allow_none=True, load_default=None)
    notify = fields.Boolean(load_default=True)


class BulkUpdateSchema(StatusChangeSchema):
    abstractIds = fields.List(
        AbstractIdentifier(),
        required=True,
        validate=validate.Length(min=1, error=INVALID_IDS_MESSAGE),
        error_messages={
            "required": INVALID_IDS_MESSAGE,
            "null": INVALID_IDS_MESSAGE,
            "invalid": INVALID_IDS_MESSAGE,
        },
    )
    notify = fields.Boolean(load_default=False)
