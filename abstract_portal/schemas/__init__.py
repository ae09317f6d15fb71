# schemas/__init__.py

from .user_schema import UserSchema, LoginSchema
from .abstract_schema import AbstractSchema, FinalUploadSchema
from .bulk_update_schema import BulkUpdateSchema, StatusChangeSchema

__all__ = [
    'UserSchema',
    'LoginSchema',
    'AbstractSchema',
    'FinalUploadSchema',
    'BulkUpdateSchema',
    'StatusChangeSchema',
]
