"""Student exam routes: catalog, attempt lifecycle and attempt results."""

from fastapi import APIRouter, Body, Depends
from sqlmodel import Session

from exam_portal.database import get_session
from exam_portal.deps import get_current_user
from exam_portal.models import User
from exam_portal.schemas import AnswerIn, FinishIn
from exam_portal.services import attempt_service, catalog_service, results_service

router = APIRouter()


@router.get("")
def list_exams(
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return {"exams": catalog_service.list_available(session, current_user)}


@router.get("/attempt/{attempt_id}")
def attempt_result(
    attempt_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    """Result of a finished attempt; answers are included only once the visibility gate opens."""
    return results_service.review_detail(session, current_user, attempt_id)


@router.post("/{exam_id}/start")
def start_exam(
    exam_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return attempt_service.start_attempt(session, current_user, exam_id)


@router.post("/{exam_id}/answer")
def save_answer(
    exam_id: int,
    payload: AnswerIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    attempt_service.record_answer(
        session,
        current_user,
        payload.attempt_id,
        payload.question_id,
        payload.selected_option,
        exam_id=exam_id,
    )
    return {"success": True}


@router.post("/{exam_id}/finish")
def finish_exam(
    exam_id: int,
    payload: FinishIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return attempt_service.finish_attempt(
        session, current_user, payload.attempt_id, payload.student_note, exam_id=exam_id
    )
