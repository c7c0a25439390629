"""Read-only views over completed attempts: history, review, certificates and stats."""

import hashlib
from typing import List

from sqlmodel import Session, select

from exam_portal.errors import NotFound, NotPassed
from exam_portal.models import STATUS_COMPLETED, Answer, Exam, ExamAttempt, Question, User
from exam_portal.services.attempt_service import answer_visibility
from exam_portal.utils import is_passing, isoformat, round_score

CERTIFICATE_ID_LENGTH = 12


def _attempt_summary(attempt: ExamAttempt, exam: Exam) -> dict:
    return {
        "id": attempt.id,
        "examId": exam.id,
        "examTitle": exam.title,
        "icon": exam.icon,
        "score": round_score(attempt.score),
        "correct": attempt.correct_count,
        "incorrect": attempt.incorrect_count,
        "unanswered": attempt.unanswered_count,
        "total": attempt.correct_count + attempt.incorrect_count + attempt.unanswered_count,
        "timeSpent": attempt.time_spent,
        "finishedAt": isoformat(attempt.finished_at),
        "passed": is_passing(attempt.score),
    }


def build_review(session: Session, attempt: ExamAttempt, use_stored_correctness: bool = False) -> List[dict]:
    """Per-question review in natural exam order, against current question content."""
    questions = session.exec(
        select(Question)
        .where(Question.exam_id == attempt.exam_id)
        .order_by(Question.order_num, Question.id)
    ).all()
    answers = {
        a.question_id: a for a in session.exec(select(Answer).where(Answer.attempt_id == attempt.id)).all()
    }

    review = []
    for number, question in enumerate(questions, start=1):
        answer = answers.get(question.id)
        selected = answer.selected_option if answer else None
        if use_stored_correctness:
            is_correct = bool(answer and answer.is_correct)
        else:
            is_correct = selected is not None and selected == question.correct_option
        review.append(
            {
                "number": number,
                "questionId": question.id,
                "text": question.question_text,
                "options": question.options,
                "correctOption": question.correct_option,
                "selectedOption": selected,
                "isCorrect": is_correct,
                "explanation": question.explanation,
            }
        )
    return review


def history(session: Session, user: User) -> List[dict]:
    rows = session.exec(
        select(ExamAttempt, Exam)
        .join(Exam, ExamAttempt.exam_id == Exam.id)
        .where((ExamAttempt.user_id == user.id) & (ExamAttempt.status == STATUS_COMPLETED))
        .order_by(ExamAttempt.finished_at.desc(), ExamAttempt.id.desc())
    ).all()

    gates: dict = {}
    results = []
    for attempt, exam in rows:
        if exam.id not in gates:
            gates[exam.id] = answer_visibility(session, user.id, exam)
        item = _attempt_summary(attempt, exam)
        item["maxAttempts"] = exam.max_attempts
        item["canViewAnswers"] = gates[exam.id]["canViewAnswers"]
        results.append(item)
    return results


def review_detail(session: Session, user: User, attempt_id: int) -> dict:
    """Result of one of the student's attempts, with answers when the gate allows."""
    attempt = session.get(ExamAttempt, attempt_id)
    if not attempt or attempt.user_id != user.id or attempt.status != STATUS_COMPLETED:
        raise NotFound("Attempt not found")

    exam = session.get(Exam, attempt.exam_id)
    gate = answer_visibility(session, user.id, exam)
    return {
        "attempt": _attempt_summary(attempt, exam),
        "canViewAnswers": gate["canViewAnswers"],
        "attemptsUsed": gate["completedCount"],
        "maxAttempts": exam.max_attempts,
        "review": build_review(session, attempt) if gate["canViewAnswers"] else None,
    }


def certificate_id(code: str, attempt: ExamAttempt) -> str:
    """Deterministic short id derived from the student code, finish time and attempt id."""
    source = f"{code}-{isoformat(attempt.finished_at)}-{attempt.id}"
    return hashlib.sha256(source.encode("utf-8")).hexdigest()[:CERTIFICATE_ID_LENGTH].upper()


def certificate(session: Session, user: User, attempt_id: int) -> dict:
    attempt = session.get(ExamAttempt, attempt_id)
    if not attempt or attempt.user_id != user.id or attempt.status != STATUS_COMPLETED:
        raise NotFound("Result not found")
    if not is_passing(attempt.score):
        raise NotPassed()

    exam = session.get(Exam, attempt.exam_id)
    return {
        "id": certificate_id(user.code, attempt),
        "userName": user.name,
        "code": user.code,
        "examTitle": exam.title,
        "score": round_score(attempt.score),
        "date": isoformat(attempt.finished_at),
    }


def personal_stats(session: Session, user: User) -> dict:
    attempts = session.exec(
        select(ExamAttempt).where(
            (ExamAttempt.user_id == user.id) & (ExamAttempt.status == STATUS_COMPLETED)
        )
    ).all()
    total = len(attempts)
    passed = sum(1 for a in attempts if is_passing(a.score))
    avg = sum(a.score or 0 for a in attempts) / total if total else 0
    return {
        "totalExams": total,
        "avgScore": round_score(avg),
        "passedExams": passed,
        "passRate": round(passed / total * 100) if total else 0,
        "totalCorrect": sum(a.correct_count for a in attempts),
        "totalIncorrect": sum(a.incorrect_count for a in attempts),
        "totalTime": sum(a.time_spent or 0 for a in attempts),
    }
