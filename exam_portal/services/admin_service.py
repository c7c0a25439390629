"""Administrator statistics, rankings, exports and exam/question management."""

import csv
import io
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, func
from sqlmodel import Session, select

from exam_portal.errors import NotFound, ValidationError
from exam_portal.models import (
    ROLE_STUDENT,
    STATUS_COMPLETED,
    Exam,
    ExamAttempt,
    Question,
    User,
)
from exam_portal.schemas import ExamCreateIn, ExamUpdateIn, QuestionIn
from exam_portal.services.results_service import build_review
from exam_portal.utils import GRADE_BUCKETS, grade_bucket, is_passing, isoformat, round_score, sanitize_text

logger = logging.getLogger(__name__)

RESULTS_LIMIT = 500
RANKING_LIMIT = 50

CSV_HEADERS = ["Name", "Code", "Exam", "Score", "Correct", "Incorrect", "Unanswered", "Time (s)", "Date"]


def _get_exam(session: Session, exam_id: int) -> Exam:
    exam = session.get(Exam, exam_id)
    if not exam:
        raise NotFound("Exam not found")
    return exam


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a deadline to naive UTC, the form stored in the database."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _average(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def _completed_rows(session: Session, limit: Optional[int] = None):
    stmt = (
        select(ExamAttempt, User, Exam)
        .join(User, ExamAttempt.user_id == User.id)
        .join(Exam, ExamAttempt.exam_id == Exam.id)
        .where(ExamAttempt.status == STATUS_COMPLETED)
        .order_by(ExamAttempt.finished_at.desc(), ExamAttempt.id.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    return session.exec(stmt).all()


# ===================== STATISTICS =====================


def global_stats(session: Session) -> dict:
    completed = session.exec(select(ExamAttempt).where(ExamAttempt.status == STATUS_COMPLETED)).all()
    scores = [a.score or 0 for a in completed]
    passed_count = sum(1 for s in scores if is_passing(s))

    distribution = {label: 0 for label, _, _ in GRADE_BUCKETS}
    for score in scores:
        distribution[grade_bucket(score)] += 1

    scores_by_exam: dict = {}
    for attempt in completed:
        scores_by_exam.setdefault(attempt.exam_id, []).append(attempt.score or 0)

    exam_performance = []
    for exam in session.exec(select(Exam).where(Exam.is_active == True).order_by(Exam.title)).all():  # noqa: E712
        exam_scores = scores_by_exam.get(exam.id, [])
        exam_performance.append(
            {
                "id": exam.id,
                "title": exam.title,
                "icon": exam.icon,
                "attempts": len(exam_scores),
                "avgScore": round_score(_average(exam_scores)),
            }
        )

    return {
        "totalStudents": len({a.user_id for a in completed}),
        "totalExams": len(completed),
        "avgScore": round_score(_average(scores)) or 0,
        "passRate": round(passed_count / len(scores) * 100) if scores else 0,
        "gradeDistribution": distribution,
        "examPerformance": exam_performance,
    }


def list_results(session: Session, limit: int = RESULTS_LIMIT) -> List[dict]:
    results = []
    for attempt, user, exam in _completed_rows(session, limit):
        results.append(
            {
                "id": attempt.id,
                "name": user.name,
                "code": user.code,
                "examTitle": exam.title,
                "icon": exam.icon,
                "score": round_score(attempt.score),
                "correct": attempt.correct_count,
                "incorrect": attempt.incorrect_count,
                "unanswered": attempt.unanswered_count,
                "total": attempt.correct_count + attempt.incorrect_count + attempt.unanswered_count,
                "timeSpent": attempt.time_spent,
                "finishedAt": isoformat(attempt.finished_at),
                "studentNote": attempt.student_note,
            }
        )
    return results


def result_detail(session: Session, attempt_id: int) -> dict:
    """Full review of any attempt; admins bypass the answer-visibility gate."""
    attempt = session.get(ExamAttempt, attempt_id)
    if not attempt:
        raise NotFound("Result not found")
    user = session.get(User, attempt.user_id)
    exam = session.get(Exam, attempt.exam_id)
    return {
        "attempt": {
            "id": attempt.id,
            "userName": user.name if user else None,
            "userCode": user.code if user else None,
            "examTitle": exam.title,
            "icon": exam.icon,
            "status": attempt.status,
            "score": round_score(attempt.score),
            "correct": attempt.correct_count,
            "incorrect": attempt.incorrect_count,
            "unanswered": attempt.unanswered_count,
            "timeSpent": attempt.time_spent,
            "finishedAt": isoformat(attempt.finished_at),
            "studentNote": attempt.student_note,
        },
        "review": build_review(session, attempt, use_stored_correctness=True),
    }


def ranking(session: Session, limit: int = RANKING_LIMIT) -> List[dict]:
    """Students ordered by average score, then by number of passed attempts."""
    rows = session.exec(
        select(ExamAttempt, User)
        .join(User, ExamAttempt.user_id == User.id)
        .where((ExamAttempt.status == STATUS_COMPLETED) & (User.role == ROLE_STUDENT))
    ).all()

    per_user: dict = {}
    for attempt, user in rows:
        entry = per_user.setdefault(user.id, {"user": user, "scores": []})
        entry["scores"].append(attempt.score or 0)

    table = []
    for entry in per_user.values():
        scores = entry["scores"]
        table.append(
            {
                "name": entry["user"].name,
                "code": entry["user"].code,
                "examCount": len(scores),
                "avgScore": _average(scores),
                "passedCount": sum(1 for s in scores if is_passing(s)),
            }
        )
    table.sort(key=lambda r: (r["avgScore"], r["passedCount"]), reverse=True)

    ranked = []
    for position, row in enumerate(table[:limit], start=1):
        row["position"] = position
        row["avgScore"] = round_score(row["avgScore"])
        ranked.append(row)
    return ranked


def list_users(session: Session) -> List[dict]:
    attempts = session.exec(select(ExamAttempt)).all()
    by_user: dict = {}
    for attempt in attempts:
        by_user.setdefault(attempt.user_id, []).append(attempt)

    users = []
    for user in session.exec(select(User).order_by(User.created_at.desc(), User.id.desc())).all():
        user_attempts = by_user.get(user.id, [])
        completed_scores = [a.score or 0 for a in user_attempts if a.status == STATUS_COMPLETED]
        users.append(
            {
                "id": user.id,
                "code": user.code,
                "name": user.name,
                "role": user.role,
                "createdAt": isoformat(user.created_at),
                "examCount": len(user_attempts),
                "avgScore": round_score(_average(completed_scores)),
            }
        )
    return users


def export_results_csv(session: Session) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL)
    writer.writerow(CSV_HEADERS)
    for attempt, user, exam in _completed_rows(session):
        writer.writerow(
            [
                user.name,
                user.code,
                exam.title,
                round_score(attempt.score),
                attempt.correct_count,
                attempt.incorrect_count,
                attempt.unanswered_count,
                attempt.time_spent,
                isoformat(attempt.finished_at),
            ]
        )
    return buffer.getvalue()


# ===================== EXAM MANAGEMENT =====================


def _exam_dict(exam: Exam, question_count: int = 0, attempt_count: int = 0) -> dict:
    return {
        "id": exam.id,
        "title": exam.title,
        "icon": exam.icon,
        "description": exam.description,
        "timeLimit": exam.time_limit,
        "pointsCorrect": exam.points_correct,
        "pointsIncorrect": exam.points_incorrect,
        "maxAttempts": exam.max_attempts,
        "deadline": isoformat(exam.deadline),
        "isActive": exam.is_active,
        "shuffleQuestions": exam.shuffle_questions,
        "createdAt": isoformat(exam.created_at),
        "questionCount": question_count,
        "attemptCount": attempt_count,
    }


def list_exams(session: Session) -> List[dict]:
    question_counts = dict(
        session.exec(select(Question.exam_id, func.count(Question.id)).group_by(Question.exam_id)).all()
    )
    attempt_counts = dict(
        session.exec(
            select(ExamAttempt.exam_id, func.count(ExamAttempt.id))
            .where(ExamAttempt.status == STATUS_COMPLETED)
            .group_by(ExamAttempt.exam_id)
        ).all()
    )
    exams = session.exec(select(Exam).order_by(Exam.created_at.desc(), Exam.id.desc())).all()
    return [
        _exam_dict(exam, question_counts.get(exam.id, 0), attempt_counts.get(exam.id, 0)) for exam in exams
    ]


def list_questions(session: Session, exam_id: int) -> List[dict]:
    _get_exam(session, exam_id)
    questions = session.exec(
        select(Question).where(Question.exam_id == exam_id).order_by(Question.order_num, Question.id)
    ).all()
    return [
        {
            "id": q.id,
            "text": q.question_text,
            "options": q.options,
            "correctOption": q.correct_option,
            "explanation": q.explanation,
            "order": q.order_num,
        }
        for q in questions
    ]


def _add_questions(session: Session, exam_id: int, questions: List[QuestionIn]) -> None:
    for index, q in enumerate(questions):
        option_a, option_b, option_c, option_d = q.options
        session.add(
            Question(
                exam_id=exam_id,
                question_text=q.text,
                option_a=option_a,
                option_b=option_b,
                option_c=option_c,
                option_d=option_d,
                correct_option=q.correct_option,
                explanation=sanitize_text(q.explanation) or None,
                order_num=index,
            )
        )


def create_exam(session: Session, admin: User, payload: ExamCreateIn) -> Exam:
    title = payload.title.strip()
    if not title or not payload.questions:
        raise ValidationError("Title and questions are required")

    exam = Exam(
        title=title,
        icon=payload.icon or "📝",
        description=(payload.description or "").strip(),
        time_limit=payload.time_limit or 1800,
        points_correct=payload.points_correct if payload.points_correct is not None else 1.0,
        points_incorrect=payload.points_incorrect or 0.0,
        max_attempts=payload.max_attempts or 2,
        deadline=_to_naive_utc(payload.deadline),
        shuffle_questions=payload.shuffle_questions if payload.shuffle_questions is not None else True,
        created_by=admin.id,
    )
    session.add(exam)
    session.flush()
    _add_questions(session, exam.id, payload.questions)
    session.commit()
    session.refresh(exam)
    logger.info("Exam %s created by %s with %s questions", exam.id, admin.code, len(payload.questions))
    return exam


_UPDATABLE_FIELDS = (
    "title",
    "icon",
    "description",
    "time_limit",
    "points_correct",
    "points_incorrect",
    "max_attempts",
    "deadline",
    "shuffle_questions",
    "is_active",
)
# Only these may be cleared with an explicit null
_NULLABLE_FIELDS = {"description", "deadline"}


def update_exam(session: Session, exam_id: int, payload: ExamUpdateIn) -> Exam:
    """Apply the fields present in ``payload``; a non-empty question list replaces all questions."""
    exam = _get_exam(session, exam_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"questions"})

    for field in _UPDATABLE_FIELDS:
        if field not in changes:
            continue
        value = changes[field]
        if value is None and field not in _NULLABLE_FIELDS:
            continue
        if field == "title":
            value = value.strip()
            if not value:
                raise ValidationError("Title cannot be empty")
        if field == "deadline":
            value = _to_naive_utc(value)
        setattr(exam, field, value)

    exam.updated_at = datetime.utcnow()
    session.add(exam)

    if payload.questions:
        session.exec(delete(Question).where(Question.exam_id == exam_id))
        _add_questions(session, exam_id, payload.questions)

    session.commit()
    session.refresh(exam)
    logger.info("Exam %s updated (questions replaced: %s)", exam_id, bool(payload.questions))
    return exam


def delete_exam(session: Session, exam_id: int) -> str:
    """Deactivate an exam that has attempts, otherwise delete it with its questions.

    Returns "deactivated" or "deleted".
    """
    exam = _get_exam(session, exam_id)
    attempt_count = session.exec(
        select(func.count(ExamAttempt.id)).where(ExamAttempt.exam_id == exam_id)
    ).one()

    if attempt_count > 0:
        exam.is_active = False
        exam.updated_at = datetime.utcnow()
        session.add(exam)
        session.commit()
        logger.info("Exam %s deactivated (%s attempts exist)", exam_id, attempt_count)
        return "deactivated"

    session.exec(delete(Question).where(Question.exam_id == exam_id))
    session.delete(exam)
    session.commit()
    logger.info("Exam %s deleted", exam_id)
    return "deleted"
