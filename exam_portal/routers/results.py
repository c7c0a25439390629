"""Student result routes: history, certificates and personal statistics."""

from fastapi import APIRouter, Depends
from sqlmodel import Session

from exam_portal.database import get_session
from exam_portal.deps import get_current_user
from exam_portal.models import User
from exam_portal.services import results_service

router = APIRouter()


@router.get("/history")
def history(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return {"results": results_service.history(session, current_user)}


@router.get("/certificate/{attempt_id}")
def certificate(
    attempt_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return {"certificate": results_service.certificate(session, current_user, attempt_id)}


@router.get("/stats")
def stats(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return results_service.personal_stats(session, current_user)
