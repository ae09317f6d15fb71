import secrets
import string
from datetime import datetime, timezone

from sqlalchemy import Enum as SqlEnum, Index

from ..extensions import db
from abstract_portal.models.enumerations import AbstractCategory, AbstractStatus


def generate_abstract_number() -> str:
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(5))
    return f"ABST-{datetime.now(timezone.utc):%Y%m%d}-{suffix}"


class Abstract(db.Model):
    __tablename__ = "abstracts"
    __table_args__ = (
        Index("ix_abstracts_status", "status"),
        Index("ix_abstracts_user_id", "user_id"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    abstract_number = db.Column(
        db.String(32),
        nullable=False,
        unique=True,
        default=generate_abstract_number,
    )

    title = db.Column(db.String(500), nullable=False)
    presenter_name = db.Column(db.String(200), nullable=False)
    institution = db.Column(db.String(500), nullable=True)
    co_authors = db.Column(db.Text, nullable=True)
    content = db.Column(db.Text, nullable=False)

    category = db.Column(
        SqlEnum(AbstractCategory, name="abstract_category"),
        nullable=False,
        default=AbstractCategory.FREE_PAPER,
    )
    status = db.Column(
        SqlEnum(AbstractStatus, name="abstract_status"),
        nullable=False,
        default=AbstractStatus.PENDING,
    )
    reviewer_comments = db.Column(db.Text, nullable=True)

    # Initial upload metadata; the file itself lives in external storage.
    file_name = db.Column(db.String(255), nullable=True)
    file_path = db.Column(db.String(500), nullable=True)
    file_size = db.Column(db.Integer, nullable=True)

    final_file_name = db.Column(db.String(255), nullable=True)
    final_file_path = db.Column(db.String(500), nullable=True)
    final_submitted_at = db.Column(db.DateTime, nullable=True)

    submission_date = db.Column(
        db.DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime,
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=False,
    )
    owner = db.relationship(
        "User",
        foreign_keys=[user_id],
        back_populates="abstracts_submitted",
    )

    updated_by_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id"),
        nullable=True,
    )
    updated_by = db.relationship(
        "User",
        foreign_keys=[updated_by_id],
        back_populates="abstracts_reviewed",
    )

    @property
    def presenter_email(self):
        return self.owner.email if self.owner is not None else None

    def to_dict(self, include_content=True):
        def iso_or_none(dt):
            return dt.isoformat() if dt else None

        data = {
            'id': self.id,
            'abstract_number': self.abstract_number,
            'title': self.title,
            'presenter_name': self.presenter_name,
            'presenter_email': self.presenter_email,
            'institution': self.institution,
            'co_authors': self.co_authors,
            'category': self.category.value if self.category else None,
            'status': self.status.value if self.status else None,
            'reviewer_comments': self.reviewer_comments,
            'file_name': self.file_name,
            'file_size': self.file_size,
            'has_file': bool(self.file_path or self.file_name),
            'final_file_name': self.final_file_name,
            'final_submitted_at': iso_or_none(self.final_submitted_at),
            'submission_date': iso_or_none(self.submission_date),
            'updated_at': iso_or_none(self.updated_at),
            'user_id': self.user_id,
        }
        if include_content:
            data['content'] = self.content
        return data

    def __str__(self):
        return f"<Abstract(id={self.id}, number='{self.abstract_number}', status='{self.status}')>"
