"""Student-facing exam listing with per-student eligibility."""

from typing import List

from sqlalchemy import func
from sqlmodel import Session, select

from exam_portal.models import STATUS_COMPLETED, Exam, ExamAttempt, Question, User
from exam_portal.utils import is_passing, isoformat, round_score


def _question_counts(session: Session) -> dict:
    rows = session.exec(select(Question.exam_id, func.count(Question.id)).group_by(Question.exam_id)).all()
    return {exam_id: count for exam_id, count in rows}


def list_available(session: Session, user: User) -> List[dict]:
    """All active exams, newest first, annotated with the student's progress.

    The deadline is informational here; start_attempt enforces it.
    """
    exams = session.exec(
        select(Exam).where(Exam.is_active == True).order_by(Exam.created_at.desc(), Exam.id.desc())  # noqa: E712
    ).all()
    question_counts = _question_counts(session)

    scores_by_exam: dict = {}
    for attempt in session.exec(
        select(ExamAttempt).where(
            (ExamAttempt.user_id == user.id) & (ExamAttempt.status == STATUS_COMPLETED)
        )
    ).all():
        scores_by_exam.setdefault(attempt.exam_id, []).append(attempt.score)

    results = []
    for exam in exams:
        scores = scores_by_exam.get(exam.id, [])
        passed = any(is_passing(s) for s in scores)
        can_retake = not passed and len(scores) < exam.max_attempts
        results.append(
            {
                "id": exam.id,
                "title": exam.title,
                "icon": exam.icon,
                "description": exam.description,
                "timeLimit": exam.time_limit,
                "maxAttempts": exam.max_attempts,
                "deadline": isoformat(exam.deadline),
                "pointsCorrect": exam.points_correct,
                "pointsIncorrect": exam.points_incorrect,
                "questionCount": question_counts.get(exam.id, 0),
                "attempts": len(scores),
                "bestScore": round_score(max(scores)) if scores else None,
                "passed": passed,
                "canRetake": can_retake,
                "canStart": len(scores) == 0 or can_retake,
            }
        )
    return results
