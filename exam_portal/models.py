"""SQLModel models for the Exam Portal."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

ROLE_STUDENT = "student"
ROLE_ADMIN = "admin"

STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"


class User(SQLModel, table=True):
    """An identity that can log in: a student (code only) or an admin (code + password)."""

    __table_args__ = (UniqueConstraint("code", name="uq_user_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    code: str = Field(index=True)  # trimmed + uppercased, immutable
    name: str
    password_hash: Optional[str] = None
    avatar: Optional[str] = None
    role: str = Field(default=ROLE_STUDENT)  # "student", "admin"
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Exam(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    icon: str = Field(default="📝")
    description: Optional[str] = None
    time_limit: int = Field(default=1800)  # seconds
    points_correct: float = Field(default=1.0)
    points_incorrect: float = Field(default=0.0)  # penalty, >= 0
    max_attempts: int = Field(default=2)
    deadline: Optional[datetime] = None  # naive UTC
    is_active: bool = Field(default=True)
    shuffle_questions: bool = Field(default=True)
    created_by: Optional[int] = Field(default=None, foreign_key="user.id")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class Question(SQLModel, table=True):
    """A four-option multiple choice question; correct_option is an index 0..3."""

    id: Optional[int] = Field(default=None, primary_key=True)
    exam_id: int = Field(foreign_key="exam.id", index=True)
    question_text: str
    option_a: str
    option_b: str
    option_c: str
    option_d: str
    correct_option: int
    explanation: Optional[str] = None
    order_num: int = Field(default=0)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def options(self) -> List[str]:
        return [self.option_a, self.option_b, self.option_c, self.option_d]


class ExamAttempt(SQLModel, table=True):
    """One student's run through an exam."""

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    exam_id: int = Field(foreign_key="exam.id", index=True)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    status: str = Field(default=STATUS_IN_PROGRESS)  # in_progress | completed
    score: Optional[float] = None
    correct_count: int = Field(default=0)
    incorrect_count: int = Field(default=0)
    unanswered_count: int = Field(default=0)
    time_spent: Optional[int] = None  # seconds
    # Frozen presentation order, only set when the exam shuffles questions
    question_order: Optional[List[int]] = Field(default=None, sa_column=Column(JSON))
    student_note: Optional[str] = None


class Answer(SQLModel, table=True):
    """The selected option for one question within an attempt."""

    __table_args__ = (
        UniqueConstraint("attempt_id", "question_id", name="uq_answer_attempt_question"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    attempt_id: int = Field(foreign_key="examattempt.id", index=True)
    # No foreign key: a full exam edit recreates questions while past answers stay
    question_id: int
    selected_option: Optional[int] = None
    is_correct: Optional[bool] = None
    answered_at: datetime = Field(default_factory=datetime.utcnow)
