# Overview: Service-layer operations for operator credentials; bcrypt hashing and login checks.

"""
Operator Authentication Service

WHY: Every register, order, and payment is attributed to an operator.
Passwords are hashed with bcrypt and checked in constant time.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with at least one letter and one digit
- Session tokens managed separately (see session_service.py)
"""

import logging
import re

import bcrypt

from ..errors import ConflictError, ValidationError
from ..extensions import db
from ..models import Operator
from ..time_utils import utcnow


logger = logging.getLogger(__name__)


class PasswordValidationError(ValidationError):
    """Raised when password doesn't meet strength requirements."""
    code = "weak_password"


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Za-z]', password):
        raise PasswordValidationError("Password must contain at least one letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison; malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_operator(username: str, password: str, display_name: str | None = None) -> Operator:
    username = (username or "").strip()
    if not username:
        raise ValidationError("username is required")

    existing = db.session.query(Operator).filter_by(username=username).first()
    if existing:
        raise ConflictError(f"Operator '{username}' already exists")

    operator = Operator(
        username=username,
        display_name=display_name,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.session.add(operator)
    db.session.commit()

    logger.info("Operator %s created (id=%s)", operator.username, operator.id)
    return operator


def authenticate(username: str, password: str) -> Operator | None:
    """
    Check credentials for an active operator.

    Returns the Operator on success, None otherwise.
    Updates last_login_at on success.
    """
    operator = db.session.query(Operator).filter(
        Operator.username == username,
        Operator.is_active.is_(True),
    ).first()

    if not operator or not verify_password(password, operator.password_hash):
        logger.warning("Failed login for username=%s", username)
        return None

    operator.last_login_at = utcnow()
    db.session.commit()
    return operator
