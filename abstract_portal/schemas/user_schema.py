from marshmallow import EXCLUDE, fields, validate

from abstract_portal.extensions import ma
from abstract_portal.models import User


class UserSchema(ma.SQLAlchemyAutoSchema):
    class Meta:
        model = User
        load_instance = False
        unknown = EXCLUDE
        exclude = ("password_hash",)

    id = fields.Integer(dump_only=True)
    email = fields.Email(required=True)
    full_name = fields.String(required=True, validate=validate.Length(min=1, max=200))
    phone = fields.String(allow_none=True, validate=validate.Length(max=20))
    institution = fields.String(allow_none=True, validate=validate.Length(max=500))
    password = fields.String(load_only=True, required=True)

    roles = fields.Method("get_roles", dump_only=True)
    is_active = fields.Boolean(dump_only=True)
    last_login = fields.DateTime(dump_only=True)
    created_at = fields.DateTime(dump_only=True)
    updated_at = fields.DateTime(dump_only=True)

    def get_roles(self, obj):
        return [role.value for role in obj.roles]


class LoginSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
