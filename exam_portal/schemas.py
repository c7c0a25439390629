"""Request bodies accepted by the HTTP API.

Every body is normalised here into one canonical shape; unknown keys are
rejected so alternative spellings never reach the services.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

QUESTION_TEXT_MAX_LENGTH = 2000
OPTION_MAX_LENGTH = 500
EXAM_TITLE_MAX_LENGTH = 200


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class LoginIn(_Body):
    code: Optional[str] = Field(default=None, validation_alias=AliasChoices("code", "dni"))
    name: Optional[str] = None
    password: Optional[str] = None


class AvatarIn(_Body):
    avatar: Optional[str] = None


class AnswerIn(_Body):
    attempt_id: int = Field(alias="attemptId")
    question_id: int = Field(alias="questionId")
    selected_option: Optional[int] = Field(default=None, alias="selectedOption")


class FinishIn(_Body):
    attempt_id: int = Field(alias="attemptId")
    student_note: Optional[str] = Field(default=None, alias="studentNote")


class QuestionIn(_Body):
    """Canonical question input: text, exactly four options, correct index 0..3."""

    text: str = Field(min_length=1, max_length=QUESTION_TEXT_MAX_LENGTH)
    options: List[str]
    correct_option: int = Field(default=0, ge=0, le=3, alias="correctOption")
    explanation: Optional[str] = None

    @field_validator("text")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Question text must be non-empty")
        return value

    @field_validator("options")
    @classmethod
    def _four_options(cls, value: List[str]) -> List[str]:
        if len(value) != 4:
            raise ValueError("Each question needs exactly 4 options")
        cleaned = [(option or "").strip() for option in value]
        if any(not option for option in cleaned):
            raise ValueError("All 4 options must be non-empty")
        if any(len(option) > OPTION_MAX_LENGTH for option in cleaned):
            raise ValueError(f"Options must be at most {OPTION_MAX_LENGTH} characters")
        return cleaned


class ExamCreateIn(_Body):
    title: str = Field(max_length=EXAM_TITLE_MAX_LENGTH)
    icon: Optional[str] = None
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, gt=0, alias="timeLimit")
    points_correct: Optional[float] = Field(default=None, ge=0, alias="pointsCorrect")
    points_incorrect: Optional[float] = Field(default=None, ge=0, alias="pointsIncorrect")
    max_attempts: Optional[int] = Field(default=None, ge=1, alias="maxAttempts")
    deadline: Optional[datetime] = None
    shuffle_questions: Optional[bool] = Field(default=None, alias="shuffleQuestions")
    questions: List[QuestionIn] = Field(default_factory=list)


class ExamUpdateIn(_Body):
    """Partial update: only the keys present in the request are applied."""

    title: Optional[str] = Field(default=None, max_length=EXAM_TITLE_MAX_LENGTH)
    icon: Optional[str] = None
    description: Optional[str] = None
    time_limit: Optional[int] = Field(default=None, gt=0, alias="timeLimit")
    points_correct: Optional[float] = Field(default=None, ge=0, alias="pointsCorrect")
    points_incorrect: Optional[float] = Field(default=None, ge=0, alias="pointsIncorrect")
    max_attempts: Optional[int] = Field(default=None, ge=1, alias="maxAttempts")
    deadline: Optional[datetime] = None
    shuffle_questions: Optional[bool] = Field(default=None, alias="shuffleQuestions")
    is_active: Optional[bool] = Field(default=None, alias="isActive")
    questions: Optional[List[QuestionIn]] = None
