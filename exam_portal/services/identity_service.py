"""Login, token verification and profile updates."""

import logging
import re
from datetime import datetime, timedelta
from typing import Optional, Tuple

import jwt
from sqlmodel import Session, select

from exam_portal.auth_utils import create_access_token, decode_access_token, verify_password
from exam_portal.config import Settings
from exam_portal.errors import (
    CredentialRequired,
    IdentityNotFound,
    InvalidCredential,
    TokenExpired,
    TokenInvalid,
    ValidationError,
)
from exam_portal.models import ROLE_ADMIN, ROLE_STUDENT, User

logger = logging.getLogger(__name__)

STUDENT_CODE_PATTERN = re.compile(r"^[0-9]{8}[A-Z]$")
NAME_MIN_LENGTH = 3
AVATAR_MAX_LENGTH = 500_000


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def get_user_by_code(session: Session, code: str) -> Optional[User]:
    return session.exec(select(User).where(User.code == normalize_code(code))).first()


def public_user(user: User) -> dict:
    return {
        "id": user.id,
        "code": user.code,
        "name": user.name,
        "role": user.role,
        "avatar": user.avatar,
    }


def issue_token(settings: Settings, user: User) -> str:
    return create_access_token(
        {"sub": str(user.id), "role": user.role},
        settings.jwt_secret,
        settings.jwt_algorithm,
        timedelta(hours=settings.token_expire_hours),
    )


def login(
    session: Session,
    settings: Settings,
    code: Optional[str],
    name: Optional[str] = None,
    password: Optional[str] = None,
) -> Tuple[str, User]:
    """Authenticate by identity code, registering unknown students on the fly.

    Admins must present a password; students are trusted by code alone.
    """
    code_clean = normalize_code(code)
    if not code_clean:
        raise ValidationError("Identity code is required")

    user = get_user_by_code(session, code_clean)
    if user:
        if user.role == ROLE_ADMIN:
            if not password:
                raise CredentialRequired()
            if not verify_password(password, user.password_hash):
                logger.warning("Failed admin login for code %s", code_clean)
                raise InvalidCredential()
    else:
        name_clean = (name or "").strip()
        if len(name_clean) < NAME_MIN_LENGTH:
            raise ValidationError(f"Name must be at least {NAME_MIN_LENGTH} characters")
        if not STUDENT_CODE_PATTERN.match(code_clean):
            raise ValidationError("Invalid identity code format (8 digits + 1 letter)")

        user = User(code=code_clean, name=name_clean, role=ROLE_STUDENT)
        session.add(user)
        session.commit()
        session.refresh(user)
        logger.info("Registered new student %s (id=%s)", user.code, user.id)

    return issue_token(settings, user), user


def verify_token(session: Session, settings: Settings, token: str) -> User:
    """Resolve a bearer token to its (still existing) user."""
    try:
        payload = decode_access_token(token, settings.jwt_secret, settings.jwt_algorithm)
    except jwt.ExpiredSignatureError:
        raise TokenExpired()
    except jwt.InvalidTokenError:
        raise TokenInvalid()

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise TokenInvalid()

    user = session.get(User, user_id)
    if not user:
        raise IdentityNotFound()
    return user


def update_avatar(session: Session, user: User, avatar: Optional[str]) -> User:
    if not avatar:
        raise ValidationError("Avatar is required")
    if len(avatar) > AVATAR_MAX_LENGTH:
        raise ValidationError("Image too large (max 500KB)")
    user.avatar = avatar
    user.updated_at = datetime.utcnow()
    session.add(user)
    session.commit()
    session.refresh(user)
    return user
