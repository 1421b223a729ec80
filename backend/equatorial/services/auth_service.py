# Overview: Service-layer operations for back-office users; password hashing and login.

"""
Authentication Service

Back-office users (admin, manager, staff) authenticate with email and
password. Passwords are hashed with bcrypt (cost factor 12) and must meet
the strength rules below. Session tokens are handled in session_service.py.
"""

from __future__ import annotations

import logging
import re

import bcrypt

from ..extensions import db
from ..errors import ConflictError
from ..models import ROLES, User
from ..validation import ValidationError
from equatorial.time_utils import utcnow


logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter, one lowercase letter and one digit
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe check; malformed hashes simply fail."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(*, email: str, name: str, password: str, role: str = "staff") -> User:
    email = (email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    if not (name or "").strip():
        raise ValidationError("Name is required")
    if role not in ROLES:
        raise ValidationError(f"Invalid role: {role}", {"allowed": list(ROLES)})

    if db.session.query(User.id).filter(User.email == email).first():
        raise ConflictError("A user with this email already exists", {"email": email})

    user = User(email=email, name=name.strip(), role=role, password_hash=hash_password(password))
    db.session.add(user)
    db.session.commit()
    logger.info("Created %s user %s", role, email)
    return user


def authenticate(email: str, password: str) -> User | None:
    """
    Returns the active User for valid credentials, None otherwise.
    Updates last_login_at on success.
    """
    email = (email or "").strip().lower()
    user = db.session.query(User).filter(User.email == email, User.is_active.is_(True)).first()
    if not user or not verify_password(password, user.password_hash):
        logger.info("Failed login for %s", email)
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.id.asc()).all()
