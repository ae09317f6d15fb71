from marshmallow import EXCLUDE, fields, validate

from abstract_portal.extensions import ma
from abstract_portal.models import Abstract, AbstractCategory, AbstractStatus


class AbstractSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = Abstract
        load_instance = False
        include_fk = True
        unknown = EXCLUDE

    id = fields.Integer(dump_only=True)
    abstract_number = fields.String(dump_only=True)
    title = fields.String(required=True, validate=validate.Length(min=1, max=500))
    presenter_name = fields.String(required=True, validate=validate.Length(min=1, max=200))
    institution = fields.String(allow_none=True, validate=validate.Length(max=500))
    co_authors = fields.String(allow_none=True)
    content = fields.String(required=True, validate=validate.Length(min=1))
    category = fields.Enum(AbstractCategory, by_value=True, load_default=AbstractCategory.FREE_PAPER)
    status = fields.Enum(AbstractStatus, by_value=True, dump_only=True)
    reviewer_comments = fields.String(dump_only=True)

    file_name = fields.String(allow_none=True, validate=validate.Length(max=255))
    file_path = fields.String(allow_none=True, validate=validate.Length(max=500))
    file_size = fields.Integer(allow_none=True, validate=validate.Range(min=0))

    final_file_name = fields.String(dump_only=True)
    final_file_path = fields.String(dump_only=True)
    final_submitted_at = fields.DateTime(dump_only=True)
    submission_date = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)

    user_id = fields.Integer(dump_only=True)
    updated_by_id = fields.Integer(dump_only=True)
    presenter_email = fields.String(dump_only=True)


class FinalUploadSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    final_file_name = fields.String(required=True, validate=validate.Length(min=1, max=255))
    final_file_path = fields.String(allow_none=True, validate=validate.Length(max=500))
