# models/user.py

import re
import bcrypt
import logging
from datetime import datetime, timezone
from sqlalchemy.ext.associationproxy import association_proxy
from sqlalchemy import (
    Column, String, Boolean, DateTime, Integer, Enum as SqlEnum
)
from sqlalchemy.orm import relationship

from abstract_portal.models.enumerations import Role

from ..extensions import db

logger = logging.getLogger("auth")

# --- Constants ---
MIN_PASSWORD_LENGTH = 8
_PASSWORD_PATTERN = re.compile(r"^(?=.*[A-Za-z])(?=.*\d).+$")


def password_strong(raw_password: str) -> bool:
    return bool(
        raw_password
        and len(raw_password) >= MIN_PASSWORD_LENGTH
        and _PASSWORD_PATTERN.match(raw_password)
    )


# --- Association Table for User Roles ---

class UserRole(db.Model):
    __tablename__ = "user_roles"
    user_id = db.Column(db.Integer, db.ForeignKey(
        "users.id"), primary_key=True)
    role = db.Column(SqlEnum(Role, name="user_role"), nullable=False, primary_key=True)

    user = db.relationship("User", back_populates="role_associations")


# --- User Model ---

class User(db.Model):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(120), unique=True, nullable=False)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(20), nullable=True)
    institution = Column(String(500), nullable=True)

    password_hash = Column(String(255))

    is_active = Column(Boolean, default=True)

    last_login = Column(DateTime)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime, default=lambda: datetime.now(
        timezone.utc), onupdate=lambda: datetime.now(timezone.utc))

    # --- Relationships ---
    role_associations = db.relationship(
        "UserRole", back_populates="user", cascade="all, delete-orphan")
    roles = association_proxy(
        "role_associations", "role", creator=lambda role: UserRole(role=role))

    abstracts_submitted = relationship(
        "Abstract",
        foreign_keys="Abstract.user_id",
        back_populates="owner",
        lazy=True,
    )
    abstracts_reviewed = relationship(
        "Abstract",
        foreign_keys="Abstract.updated_by_id",
        back_populates="updated_by",
        lazy=True,
    )

    # --- Security Methods ---

    def set_password(self, raw_password: str):
        if not password_strong(raw_password):
            raise ValueError("Password does not meet complexity requirements")
        salt = bcrypt.gensalt()
        self.password_hash = bcrypt.hashpw(raw_password.encode(), salt).decode()

    def check_password(self, raw_password: str) -> bool:
        try:
            return bcrypt.checkpw(raw_password.encode(), self.password_hash.encode())
        except Exception:
            return False

    # --- Roles ---

    def has_role(self, role: str) -> bool:
        return role in [r.value for r in self.roles]

    def is_admin_check(self) -> bool:
        return Role.ADMIN in [r for r in self.roles]

    # --- Authentication (Static) ---

    @staticmethod
    def authenticate(email: str, password: str):
        user = User.query.filter(
            User.is_active == True,  # noqa: E712
            User.email == (email or "").strip().lower(),
        ).first()

        if not user or not user.check_password(password):
            logger.info("Authentication failed for email=%s", email)
            return None

        user.last_login = datetime.now(timezone.utc)
        db.session.commit()
        return user

    # --- Serialization ---

    def to_dict(self):
        def iso_or_none(dt):
            return dt.isoformat() if dt else None

        return {
            'id': self.id,
            'email': self.email,
            'full_name': self.full_name,
            'phone': self.phone,
            'institution': self.institution,
            'is_active': self.is_active,
            'roles': [r.value for r in self.roles],
            'created_at': iso_or_none(self.created_at),
            'last_login': iso_or_none(self.last_login),
        }

    def __str__(self):
        return f"<User(email='{self.email}')>"
