"""Shared FastAPI dependencies for settings, database access and authentication."""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from exam_portal.config import Settings
from exam_portal.database import get_session
from exam_portal.errors import AuthError, Forbidden
from exam_portal.models import User
from exam_portal.services.identity_service import verify_token

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
) -> User:
    """Return the user bound to the bearer token; every API route except login needs one."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Token not provided")
    return verify_token(session, settings, credentials.credentials)


def require_role(required_roles: list[str]):
    """Dependency factory that enforces one of the given roles."""

    def wrapper(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in required_roles:
            raise Forbidden()
        return current_user

    return wrapper
