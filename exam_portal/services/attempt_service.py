"""Exam attempt lifecycle: start/resume, answer saving, time budget and finalization.

An attempt moves NONE -> in_progress -> completed and never back. This module is
the only writer of attempt and answer rows once an attempt exists.
"""

import logging
import math
import random
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from exam_portal.errors import (
    AlreadyPassed,
    AttemptsExhausted,
    DeadlinePassed,
    InvalidAttempt,
    NoQuestions,
    NotFound,
    TimeExpired,
    ValidationError,
)
from exam_portal.models import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    Answer,
    Exam,
    ExamAttempt,
    Question,
    User,
)
from exam_portal.utils import compute_score, is_passing, round_score, sanitize_text

logger = logging.getLogger(__name__)

STUDENT_NOTE_MAX_LENGTH = 2000


# ===================== QUERIES =====================


def _natural_questions(session: Session, exam_id: int) -> List[Question]:
    return session.exec(
        select(Question).where(Question.exam_id == exam_id).order_by(Question.order_num, Question.id)
    ).all()


def _completed_attempts(session: Session, user_id: int, exam_id: int) -> List[ExamAttempt]:
    return session.exec(
        select(ExamAttempt).where(
            (ExamAttempt.user_id == user_id)
            & (ExamAttempt.exam_id == exam_id)
            & (ExamAttempt.status == STATUS_COMPLETED)
        )
    ).all()


def _find_in_progress_attempt(session: Session, user_id: int, exam_id: int) -> Optional[ExamAttempt]:
    return session.exec(
        select(ExamAttempt).where(
            (ExamAttempt.user_id == user_id)
            & (ExamAttempt.exam_id == exam_id)
            & (ExamAttempt.status == STATUS_IN_PROGRESS)
        )
    ).first()


def _answers_map(session: Session, attempt_id: int) -> Dict[int, Optional[int]]:
    answers = session.exec(select(Answer).where(Answer.attempt_id == attempt_id)).all()
    return {a.question_id: a.selected_option for a in answers}


def elapsed_seconds(attempt: ExamAttempt, now: Optional[datetime] = None) -> int:
    now = now or datetime.utcnow()
    return math.floor((now - attempt.started_at).total_seconds())


def answer_visibility(session: Session, user_id: int, exam: Exam) -> dict:
    """Whether a student may see correct answers for ``exam``.

    Open once the student has passed, or has used every allowed attempt.
    """
    completed = _completed_attempts(session, user_id, exam.id)
    passed = any(is_passing(a.score) for a in completed)
    return {
        "completedCount": len(completed),
        "passed": passed,
        "canViewAnswers": passed or len(completed) >= exam.max_attempts,
    }


# ===================== PRESENTATION =====================


def _exam_header(exam: Exam) -> dict:
    return {
        "id": exam.id,
        "title": exam.title,
        "icon": exam.icon,
        "timeLimit": exam.time_limit,
        "pointsCorrect": exam.points_correct,
        "pointsIncorrect": exam.points_incorrect,
    }


def _student_question(question: Question) -> dict:
    # Never expose the correct option or explanation while an attempt is running
    return {"id": question.id, "text": question.question_text, "options": question.options}


def shuffle_questions(questions: List[Question], rng: Optional[random.Random] = None) -> List[Question]:
    """Fisher-Yates shuffle returning a new list."""
    rng = rng or random.Random()
    items = list(questions)
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


def ordered_questions(session: Session, attempt: ExamAttempt) -> List[Question]:
    """Questions in the order the attempt presents them."""
    questions = _natural_questions(session, attempt.exam_id)
    if not attempt.question_order:
        return questions
    by_id = {q.id: q for q in questions}
    # Ids of questions removed by a later exam edit are skipped; questions added
    # since the order was frozen follow in natural order
    frozen = [by_id[qid] for qid in attempt.question_order if qid in by_id]
    frozen_ids = {q.id for q in frozen}
    return frozen + [q for q in questions if q.id not in frozen_ids]


# ===================== LIFECYCLE =====================


def start_attempt(
    session: Session,
    user: User,
    exam_id: int,
    rng: Optional[random.Random] = None,
) -> dict:
    """Start a new attempt or resume the one in progress."""
    exam = session.get(Exam, exam_id)
    if not exam or not exam.is_active:
        raise NotFound("Exam not found")

    now = datetime.utcnow()
    if exam.deadline and exam.deadline < now:
        raise DeadlinePassed()

    completed = _completed_attempts(session, user.id, exam.id)
    if any(is_passing(a.score) for a in completed):
        raise AlreadyPassed()
    if len(completed) >= exam.max_attempts:
        raise AttemptsExhausted()

    attempt = _find_in_progress_attempt(session, user.id, exam.id)
    if attempt:
        time_left = max(0, exam.time_limit - elapsed_seconds(attempt, now))
        if time_left <= 0:
            logger.info("Attempt %s expired before resume; finalizing", attempt.id)
            finalize_attempt(session, attempt, now=now)
            raise TimeExpired()

        logger.info("Resuming attempt %s for user %s (%ss left)", attempt.id, user.id, time_left)
        return {
            "attemptId": attempt.id,
            "exam": _exam_header(exam),
            "questions": [_student_question(q) for q in ordered_questions(session, attempt)],
            "answers": _answers_map(session, attempt.id),
            "timeLeft": time_left,
            "resumed": True,
        }

    questions = _natural_questions(session, exam.id)
    if not questions:
        raise NoQuestions()

    question_order = None
    if exam.shuffle_questions:
        questions = shuffle_questions(questions, rng)
        question_order = [q.id for q in questions]

    attempt = ExamAttempt(
        user_id=user.id,
        exam_id=exam.id,
        started_at=now,
        status=STATUS_IN_PROGRESS,
        question_order=question_order,
    )
    session.add(attempt)
    session.commit()
    session.refresh(attempt)
    logger.info("Started attempt %s for user %s on exam %s", attempt.id, user.id, exam.id)

    return {
        "attemptId": attempt.id,
        "exam": _exam_header(exam),
        "questions": [_student_question(q) for q in questions],
        "answers": {},
        "timeLeft": exam.time_limit,
        "resumed": False,
    }


def _get_active_attempt(
    session: Session, user: User, attempt_id: int, exam_id: Optional[int] = None
) -> ExamAttempt:
    attempt = session.get(ExamAttempt, attempt_id)
    if (
        not attempt
        or attempt.user_id != user.id
        or attempt.status != STATUS_IN_PROGRESS
        or (exam_id is not None and attempt.exam_id != exam_id)
    ):
        raise InvalidAttempt()
    return attempt


def _expire_if_overdue(session: Session, attempt: ExamAttempt, exam: Exam) -> None:
    now = datetime.utcnow()
    if elapsed_seconds(attempt, now) > exam.time_limit:
        logger.info("Attempt %s exceeded its time budget; finalizing", attempt.id)
        finalize_attempt(session, attempt, now=now)
        raise TimeExpired()


def record_answer(
    session: Session,
    user: User,
    attempt_id: int,
    question_id: int,
    selected_option: Optional[int],
    exam_id: Optional[int] = None,
) -> None:
    """Save (or overwrite) the selection for one question of a running attempt."""
    attempt = _get_active_attempt(session, user, attempt_id, exam_id)
    exam = session.get(Exam, attempt.exam_id)
    _expire_if_overdue(session, attempt, exam)

    if selected_option is not None and not 0 <= selected_option <= 3:
        raise ValidationError("Selected option must be between 0 and 3")

    question = session.get(Question, question_id)
    if not question or question.exam_id != attempt.exam_id:
        raise ValidationError("Question does not belong to this exam")

    existing = session.exec(
        select(Answer).where((Answer.attempt_id == attempt.id) & (Answer.question_id == question_id))
    ).first()
    if existing:
        existing.selected_option = selected_option
        existing.answered_at = datetime.utcnow()
        session.add(existing)
        session.commit()
        return

    session.add(Answer(attempt_id=attempt.id, question_id=question_id, selected_option=selected_option))
    try:
        session.commit()
    except IntegrityError:
        # A concurrent request inserted the row first; last write still wins
        session.rollback()
        session.exec(
            update(Answer)
            .where((Answer.attempt_id == attempt_id) & (Answer.question_id == question_id))
            .values(selected_option=selected_option, answered_at=datetime.utcnow())
        )
        session.commit()


def finish_attempt(
    session: Session,
    user: User,
    attempt_id: int,
    student_note: Optional[str] = None,
    exam_id: Optional[int] = None,
) -> dict:
    """Explicitly finish a running attempt and return its result."""
    attempt = _get_active_attempt(session, user, attempt_id, exam_id)
    return finalize_attempt(session, attempt, student_note=student_note)


def _clean_note(student_note: Optional[str]) -> Optional[str]:
    note = sanitize_text(student_note)
    if len(note) > STUDENT_NOTE_MAX_LENGTH:
        raise ValidationError(f"Note must be at most {STUDENT_NOTE_MAX_LENGTH} characters")
    return note or None


def finalize_attempt(
    session: Session,
    attempt: ExamAttempt,
    student_note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """Score an in-progress attempt and mark it completed, exactly once.

    Everything is written in a single transaction. The attempt row is only
    updated while it is still in progress, so when an explicit finish and an
    expiry race, the loser gets InvalidAttempt and its writes are rolled back.
    """
    if attempt.status != STATUS_IN_PROGRESS:
        raise InvalidAttempt("Attempt already finalized")

    note = _clean_note(student_note)
    now = now or datetime.utcnow()

    exam = session.get(Exam, attempt.exam_id)
    questions = _natural_questions(session, attempt.exam_id)
    answers = {
        a.question_id: a
        for a in session.exec(select(Answer).where(Answer.attempt_id == attempt.id)).all()
    }

    correct = incorrect = unanswered = 0
    for question in questions:
        answer = answers.get(question.id)
        if answer is None or answer.selected_option is None:
            unanswered += 1
            continue
        is_correct = answer.selected_option == question.correct_option
        if is_correct:
            correct += 1
        else:
            incorrect += 1
        answer.is_correct = is_correct
        session.add(answer)

    total = len(questions)
    score = compute_score(correct, incorrect, total, exam.points_correct, exam.points_incorrect)
    time_spent = max(0, elapsed_seconds(attempt, now))

    result = session.exec(
        update(ExamAttempt)
        .where((ExamAttempt.id == attempt.id) & (ExamAttempt.status == STATUS_IN_PROGRESS))
        .values(
            status=STATUS_COMPLETED,
            finished_at=now,
            score=score,
            correct_count=correct,
            incorrect_count=incorrect,
            unanswered_count=unanswered,
            time_spent=time_spent,
            student_note=note,
        )
    )
    if result.rowcount != 1:
        session.rollback()
        raise InvalidAttempt("Attempt already finalized")
    session.commit()
    session.refresh(attempt)

    logger.info(
        "Finalized attempt %s: score=%.2f correct=%s incorrect=%s unanswered=%s",
        attempt.id,
        score,
        correct,
        incorrect,
        unanswered,
    )
    return {
        "score": round_score(score),
        "correct": correct,
        "incorrect": incorrect,
        "unanswered": unanswered,
        "total": total,
        "passed": is_passing(score),
        "timeSpent": time_spent,
    }


def expire_overdue_attempts(session: Session, now: Optional[datetime] = None) -> int:
    """Finalize every in-progress attempt whose time budget has run out.

    Returns the number of attempts finalized.
    """
    now = now or datetime.utcnow()
    rows = session.exec(
        select(ExamAttempt, Exam)
        .join(Exam, ExamAttempt.exam_id == Exam.id)
        .where(ExamAttempt.status == STATUS_IN_PROGRESS)
    ).all()

    expired = 0
    for attempt, exam in rows:
        if elapsed_seconds(attempt, now) <= exam.time_limit:
            continue
        try:
            finalize_attempt(session, attempt, now=now)
        except InvalidAttempt:
            # Finished by the student in the meantime
            continue
        expired += 1
    if expired:
        logger.info("Expiry sweep finalized %s attempt(s)", expired)
    return expired
