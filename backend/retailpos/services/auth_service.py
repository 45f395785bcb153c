# Overview: Service-layer operations for staff accounts; password hashing and user management.

"""
Authentication & User Service

WHY: Every sale, payment, and shift is attributable to a user. Uses bcrypt
for secure password hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
- Password change revokes every other session of the user
"""

import re

import bcrypt

from ..extensions import db
from ..models import User
from ..models.auth import ROLE_CASHIER, VALID_ROLES
from ..updates import UserUpdate
from ..validation import ConflictError, NotFoundError, ValidationError
from retailpos.time_utils import utcnow


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character (!@#$%^&*(),.'":{}|<>)

    Raises PasswordValidationError if requirements not met.
    """
    if not isinstance(password, str) or len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    role: str = ROLE_CASHIER,
    display_name: str | None = None,
) -> User:
    """
    Create a new staff account.

    Raises:
        ValidationError: bad role, blank username/email
        PasswordValidationError: weak password
        ConflictError: username or email already taken
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationError("username and email are required")
    if role not in VALID_ROLES:
        raise ValidationError(f"role must be one of: {', '.join(VALID_ROLES)}")

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ConflictError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        display_name=display_name,
        password_hash=hash_password(password),
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns the User if credentials are valid and the account is active,
    None otherwise. Updates last_login_at on success.
    """
    if not username or not password:
        return None

    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username.lower()),
        User.is_active.is_(True),
    ).first()

    if not user or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(include_inactive: bool = False) -> list[User]:
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.username).all()


def update_user(user_id: int, update: UserUpdate, *, acting_user_id: int) -> User:
    """
    Apply a partial update to a user.

    An admin cannot deactivate or demote themselves (prevents locking the
    last administrator out). Deactivation revokes every session.
    """
    from . import session_service

    user = get_user(user_id)
    changes = update.provided()

    if user.id == acting_user_id:
        if changes.get("is_active") is False:
            raise ValidationError("You cannot deactivate your own account")
        if "role" in changes and changes["role"] != user.role:
            raise ValidationError("You cannot change your own role")

    if "email" in changes:
        email = changes["email"].lower()
        clash = db.session.query(User).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ConflictError("Email already exists")
        changes["email"] = email

    for name, value in changes.items():
        setattr(user, name, value)
    db.session.commit()

    if changes.get("is_active") is False:
        session_service.revoke_all_user_sessions(user.id, reason="User account deactivated")
    return user


def change_password(user: User, current_password: str, new_password: str, *, keep_token: str | None = None) -> None:
    """
    Change a user's own password.

    Every other session of the user is revoked; the session identified by
    keep_token (the caller's) stays valid.
    """
    from . import session_service

    if not verify_password(current_password, user.password_hash):
        raise ValidationError("Current password is incorrect")
    if current_password == new_password:
        raise ValidationError("New password must differ from the current password")

    user.password_hash = hash_password(new_password)
    db.session.commit()

    session_service.revoke_all_user_sessions(
        user.id, reason="Password changed", except_token=keep_token
    )
