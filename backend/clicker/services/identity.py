"""Email/password identity provider.

Users are stored in the ``user`` table with Flask-Bcrypt hashes and the
signed-in user rides on the Flask-Login session cookie. Every failure is
raised as AuthError with a message fit to show on the login screen.
"""

from typing import Optional

from email_validator import EmailNotValidError, validate_email
from flask import current_app
from flask_login import current_user, login_user, logout_user

from clicker import db
from clicker.errors import AuthError
from clicker.models import User


def _normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise AuthError('An email address is required.')
    try:
        validated = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as exc:
        raise AuthError('The email address is badly formatted.') from exc
    # accounts are matched case-insensitively
    return validated.normalized.lower()


def sign_up(email, password) -> int:
    email = _normalize_email(email)
    min_length = int(current_app.config.get('MIN_PASSWORD_LENGTH', 6))
    if not isinstance(password, str) or len(password) < min_length:
        raise AuthError(f'Password should be at least {min_length} characters.')
    if User.query.filter_by(email=email).first():
        raise AuthError('The email address is already in use by another account.')

    user = User(email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user, remember=True)
    current_app.logger.info(f"[sign-up] user={user.id}")
    return user.id


def sign_in(email, password) -> int:
    email = _normalize_email(email)
    user = User.query.filter_by(email=email).first()
    if not user or not isinstance(password, str) or not user.check_password(password):
        raise AuthError('Invalid email or password.')
    login_user(user, remember=True)
    current_app.logger.info(f"[sign-in] user={user.id}")
    return user.id


def sign_out() -> None:
    user_id = current_user_id()
    logout_user()
    if user_id is not None:
        current_app.logger.info(f"[sign-out] user={user_id}")


def current_user_id() -> Optional[int]:
    if current_user and current_user.is_authenticated:
        return current_user.id
    return None
