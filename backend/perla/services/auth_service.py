# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every cash entry, stock movement and closure must be attributable.
Uses bcrypt for password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters, upper, lower, digit and special char required
- Session tokens managed separately (see session_service.py)
"""

import bcrypt
import re
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLES, ROLE_USER
from ..validation import ConflictError, NotFoundError, ValidationError, to_money
from perla.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if not password or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>_\-]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash (timing-safe).

    Malformed hashes verify as False rather than raising.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _normalize_email(email: str) -> str:
    email = (email or "").strip().lower()
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    return email


def create_user(
    email: str,
    password: str,
    *,
    name: str | None = None,
    role: str = ROLE_USER,
    daily_salary=None,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ConflictError: email already registered
        ValidationError / PasswordValidationError: bad input
    """
    email = _normalize_email(email)
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")

    existing = db.session.query(User).filter_by(email=email).first()
    if existing:
        raise ConflictError("Email already registered")

    salary = None
    if daily_salary is not None:
        salary = to_money(daily_salary, field="daily_salary")
        if salary < Decimal("0"):
            raise ValidationError("daily_salary must be >= 0")

    user = User(
        email=email,
        name=(name or "").strip() or None,
        role=role,
        password_hash=hash_password(password),
        daily_salary=salary,
        is_active=True,
    )

    db.session.add(user)
    db.session.commit()
    return user


def update_user(user_id: int, patch: dict) -> User:
    """Apply an admin edit (name, role, daily_salary, is_active)."""
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")

    if "role" in patch and patch["role"] not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    if patch.get("daily_salary") is not None and patch["daily_salary"] < 0:
        raise ValidationError("daily_salary must be >= 0")

    for key in ("name", "role", "daily_salary", "is_active"):
        if key in patch:
            setattr(user, key, patch[key])

    db.session.commit()
    return user


def list_users(*, include_inactive: bool = True) -> list[User]:
    q = db.session.query(User)
    if not include_inactive:
        q = q.filter(User.is_active.is_(True))
    return q.order_by(User.email).all()


def authenticate(email: str, password: str) -> User | None:
    """
    Authenticate user with email and password.

    Returns User if credentials valid and the account is active, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        User.email == (email or "").strip().lower(),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password or "", user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None
