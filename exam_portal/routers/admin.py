"""Administrator routes. Every endpoint requires role=admin."""

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response
from sqlmodel import Session

from exam_portal.database import get_session
from exam_portal.deps import require_role
from exam_portal.models import ROLE_ADMIN, User
from exam_portal.schemas import ExamCreateIn, ExamUpdateIn
from exam_portal.services import admin_service

router = APIRouter(dependencies=[Depends(require_role([ROLE_ADMIN]))])


@router.get("/stats")
def stats(session: Session = Depends(get_session)):
    return admin_service.global_stats(session)


@router.get("/results")
def results(session: Session = Depends(get_session)):
    return {"results": admin_service.list_results(session)}


@router.get("/results/{attempt_id}")
def result_detail(attempt_id: int, session: Session = Depends(get_session)):
    return admin_service.result_detail(session, attempt_id)


@router.get("/ranking")
def ranking(session: Session = Depends(get_session)):
    return {"ranking": admin_service.ranking(session)}


@router.get("/users")
def users(session: Session = Depends(get_session)):
    return {"users": admin_service.list_users(session)}


@router.get("/exams")
def list_exams(session: Session = Depends(get_session)):
    return {"exams": admin_service.list_exams(session)}


@router.post("/exams")
def create_exam(
    payload: ExamCreateIn = Body(...),
    session: Session = Depends(get_session),
    current_user: User = Depends(require_role([ROLE_ADMIN])),
):
    exam = admin_service.create_exam(session, current_user, payload)
    return {"message": "Exam created", "examId": exam.id}


@router.put("/exams/{exam_id}")
def update_exam(
    exam_id: int,
    payload: ExamUpdateIn = Body(...),
    session: Session = Depends(get_session),
):
    admin_service.update_exam(session, exam_id, payload)
    return {"message": "Exam updated"}


@router.delete("/exams/{exam_id}")
def delete_exam(exam_id: int, session: Session = Depends(get_session)):
    action = admin_service.delete_exam(session, exam_id)
    if action == "deactivated":
        return {"message": "Exam deactivated (it has associated results)", "action": action}
    return {"message": "Exam deleted", "action": action}


@router.get("/exams/{exam_id}/questions")
def list_questions(exam_id: int, session: Session = Depends(get_session)):
    return {"questions": admin_service.list_questions(session, exam_id)}


@router.get("/export/results")
def export_results(session: Session = Depends(get_session)):
    return Response(
        content=admin_service.export_results_csv(session),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=results.csv"},
    )
