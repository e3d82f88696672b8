# Overview: Staff accounts: bcrypt password hashing, user creation and credential checks.

"""
Authentication Service

Every settlement records the acting user, so every request that settles
anything must resolve to an active account.

- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters, with upper, lower, digit and special character
- Session tokens are handled by session_service.py
"""

import re

import bcrypt

from ..errors import InvalidRequestError
from ..extensions import db
from ..models import Branch, User
from ..models.auth import ROLE_CASHIER, ROLES
from ..time_utils import utcnow


class PasswordValidationError(InvalidRequestError):
    """Raised when a password doesn't meet strength requirements."""


def validate_password_strength(password: str) -> None:
    """
    Raises PasswordValidationError unless the password has at least 8
    characters and one each of uppercase, lowercase, digit and special.
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
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    return bcrypt.hashpw(password.encode('utf-8'), salt).decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. A malformed stored hash never matches."""
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(
    username: str,
    password: str,
    *,
    full_name: str | None = None,
    role: str = ROLE_CASHIER,
    branch_id: int | None = None,
) -> User:
    """
    Create a staff account.

    Raises InvalidRequestError for a taken username, an unknown role or
    branch, and PasswordValidationError for a weak password.
    """
    username = (username or "").strip()
    if not username:
        raise InvalidRequestError("username required", details={"missing": ["username"]})
    if role not in ROLES:
        raise InvalidRequestError(f"Unknown role: {role}", details={"roles": sorted(ROLES)})
    if db.session.query(User).filter_by(username=username).first():
        raise InvalidRequestError("Username already exists")
    if branch_id is not None and db.session.get(Branch, branch_id) is None:
        raise InvalidRequestError(f"Branch {branch_id} not found")

    user = User(
        username=username,
        full_name=full_name,
        password_hash=hash_password(password),
        role=role,
        branch_id=branch_id,
    )
    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str) -> User | None:
    """
    Returns the active User for valid credentials, else None.
    Updates last_login_at on success.
    """
    user = db.session.query(User).filter(
        User.username == (username or "").strip(),
        User.is_active.is_(True),
    ).first()
    if user is None or not verify_password(password, user.password_hash):
        return None

    user.last_login_at = utcnow()
    db.session.commit()
    return user
