# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Sign-up creates a User (credentials) and its UserProfile (name, department,
role) in one transaction. Sign-in verifies the bcrypt hash and records
last_login_at. Session tokens are managed separately (see session_service.py).

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor BCRYPT_ROUNDS, default 12)
- Minimum length comes from PASSWORD_MIN_LENGTH (default 6)
- Sign-up requires a matching confirmation
- Emails are compared lower-cased
"""

import logging

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import User, UserProfile
from ..models.auth import DEFAULT_DEPARTMENT, DEFAULT_ROLE, DEPARTMENTS, ROLES
from ..validation import ConflictError, NotFoundError, ValidationError
from importdocs.time_utils import utcnow


logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when a password doesn't meet the sign-up rules."""


def normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


def validate_password(password: str | None, confirm_password: str | None = None) -> None:
    """
    Validate the sign-up password rules.

    - At least PASSWORD_MIN_LENGTH characters
    - Equal to confirm_password (a missing confirmation does not match)

    Raises PasswordValidationError if requirements not met.
    """
    min_length = current_app.config.get("PASSWORD_MIN_LENGTH", 6)
    if not password or len(password) < min_length:
        raise PasswordValidationError(f"Password must be at least {min_length} characters")
    if confirm_password != password:
        raise PasswordValidationError("Passwords do not match")


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    bcrypt.checkpw() compares in constant time. A malformed stored hash
    counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def sign_up(
    email: str,
    password: str,
    full_name: str,
    department: str | None = None,
    role: str | None = None,
    confirm_password: str | None = None,
) -> UserProfile:
    """
    Register a new identity and its profile.

    Args:
        email: Login email (unique, case-insensitive)
        password: Plaintext password (hashed before storage)
        full_name: Display name shown on documents and history
        department: One of DEPARTMENTS (default General)
        role: One of ROLES (default Requester)
        confirm_password: Must equal password

    Returns:
        The created UserProfile

    Raises:
        ValidationError / PasswordValidationError: Bad input
        ConflictError: Email already registered
    """
    email = normalize_email(email)
    full_name = (full_name or "").strip()
    department = (department or DEFAULT_DEPARTMENT).strip()
    role = (role or DEFAULT_ROLE).strip()

    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not full_name:
        raise ValidationError("full_name is required")
    if department not in DEPARTMENTS:
        raise ValidationError(f"department must be one of: {', '.join(DEPARTMENTS)}")
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    validate_password(password, confirm_password)

    if db.session.query(User).filter_by(email=email).first():
        raise ConflictError("Email already registered")

    user = User(email=email, password_hash=hash_password(password), is_active=True)
    user.profile = UserProfile(
        full_name=full_name,
        email=email,
        department=department,
        role=role,
    )
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Email already registered")

    logger.info("Registered user %s with role %s", user.id, role)
    return user.profile


def authenticate(email: str, password: str) -> User | None:
    """
    Returns the active User for valid credentials, None otherwise.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.email == normalize_email(email),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password or "", user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def set_role(user_id: int, role: str) -> UserProfile:
    """Administrative role change (CLI only)."""
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    profile = db.session.query(UserProfile).filter_by(id=user_id).first()
    if not profile:
        raise NotFoundError("User not found")
    profile.role = role
    db.session.commit()
    return profile
