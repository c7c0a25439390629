"""Authentication and profile routes."""

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from exam_portal.config import Settings
from exam_portal.database import get_session
from exam_portal.deps import get_current_user, get_settings
from exam_portal.models import User
from exam_portal.schemas import AvatarIn, LoginIn
from exam_portal.services import identity_service

router = APIRouter()


@router.post("/login")
def login(
    payload: LoginIn = Body(...),
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
):
    """Log in by identity code; unknown student codes are registered on first login."""
    token, user = identity_service.login(
        session, settings, payload.code, name=payload.name, password=payload.password
    )
    return {"token": token, "user": identity_service.public_user(user)}


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return {"user": identity_service.public_user(current_user)}


@router.put("/avatar")
def update_avatar(
    payload: AvatarIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    identity_service.update_avatar(session, current_user, payload.avatar)
    return {"message": "Avatar updated"}


@router.post("/logout")
def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; the client discards its copy
    return {"message": "Logged out"}
