"""Account directory: registration, verification, login and password reset.

Token-bearing lookups fail closed: an unknown token never says whether an
account exists. Forgot-password and resend-verification answer the same way
for registered and unregistered addresses; the routes own that message.
"""

import secrets
from datetime import timedelta
from decimal import Decimal
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from casino import db
from casino.errors import (
    AccountNotFound,
    AuthorizationDenied,
    Conflict,
    EmailNotVerified,
    ExternalServiceFailure,
    InvalidCredentials,
    NotFound,
    ValidationError,
)
from casino.models import STATUS_ACTIVE, STATUS_BANNED, User, utcnow
from casino.services import mailer


def new_token() -> str:
    return secrets.token_hex(32)


def find_by_email(email: str) -> Optional[User]:
    return User.query.filter(func.lower(User.email) == email.strip().lower()).first()


def get_account(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise AccountNotFound()
    return user


def register(username: str, email: str, password: str) -> Tuple[User, bool]:
    """Create an unverified account and mail its verification link.

    Returns the account and whether the mail went out. A mail failure keeps
    the account.
    """
    if User.query.filter_by(username=username).first():
        raise Conflict('Username already taken')
    if find_by_email(email):
        raise Conflict('Email already registered')

    user = User(
        username=username,
        email=email,
        balance=Decimal(str(current_app.config.get('STARTING_BALANCE', '1000.00'))),
        email_verified=False,
        verification_token=new_token(),
    )
    user.set_password(password)
    db.session.add(user)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise Conflict('Username or email already taken')
    current_app.logger.info(f"[register] user={user.id} username={user.username}")

    try:
        mailer.send_verification(user.email, user.verification_token)
    except ExternalServiceFailure:
        current_app.logger.warning(f"[register] verification mail failed for user={user.id}")
        return user, False
    return user, True


def verify_email(token: str) -> User:
    user = User.query.filter_by(verification_token=token).first() if token else None
    if user is None:
        raise NotFound('Invalid or expired verification token')
    user.email_verified = True
    user.verification_token = None
    db.session.commit()
    current_app.logger.info(f"[verify] user={user.id}")
    return user


def login(login_or_email: str, password: str) -> User:
    """Username first, then email. Unknown accounts look like bad passwords."""
    user = User.query.filter_by(username=login_or_email).first() or find_by_email(login_or_email)
    if user is None or not user.check_password(password):
        current_app.logger.info("[login] rejected: invalid credentials")
        raise InvalidCredentials()
    if not user.email_verified:
        raise EmailNotVerified()
    if user.is_banned:
        raise AuthorizationDenied('Account is banned')
    user.last_login_at = utcnow()
    db.session.commit()
    current_app.logger.info(f"[login] user={user.id}")
    return user


def forgot_password(email: str) -> None:
    user = find_by_email(email)
    if user is None:
        return
    ttl = int(current_app.config.get('RESET_TOKEN_TTL_SEC', 3600))
    user.reset_token = new_token()
    user.reset_token_expiry = utcnow() + timedelta(seconds=ttl)
    db.session.commit()
    try:
        mailer.send_password_reset(user.email, user.reset_token)
    except ExternalServiceFailure:
        # The caller answers identically either way
        current_app.logger.warning(f"[forgot-password] reset mail failed for user={user.id}")


def resend_verification(email: str) -> None:
    user = find_by_email(email)
    if user is None:
        return
    if user.email_verified:
        raise ValidationError('Email is already verified')
    user.verification_token = new_token()
    db.session.commit()
    try:
        mailer.send_verification(user.email, user.verification_token)
    except ExternalServiceFailure:
        # Same answer as for an unknown address
        current_app.logger.warning(f"[resend-verification] verification mail failed for user={user.id}")


def reset_password(token: str, new_password: str) -> User:
    user = User.query.filter_by(reset_token=token).first() if token else None
    if user is None:
        raise ValidationError('Invalid or expired reset token')
    if user.reset_token_expiry is None or user.reset_token_expiry <= utcnow():
        user.reset_token = None
        user.reset_token_expiry = None
        db.session.commit()
        raise ValidationError('Reset token has expired')
    user.set_password(new_password)
    user.reset_token = None
    user.reset_token_expiry = None
    db.session.commit()
    current_app.logger.info(f"[reset-password] user={user.id}")
    return user


def set_status(user_id: int, status: str, ban_reason: Optional[str] = None) -> User:
    if status not in (STATUS_ACTIVE, STATUS_BANNED):
        raise ValidationError(f'Unknown status: {status}')
    user = get_account(user_id)
    user.status = status
    user.ban_reason = ban_reason if status == STATUS_BANNED else None
    db.session.commit()
    current_app.logger.info(f"[status] user={user.id} status={status}")
    return user


def list_users(page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
    query = User.query.order_by(User.id)
    total = query.count()
    users = query.offset((page - 1) * limit).limit(limit).all()
    return users, total
