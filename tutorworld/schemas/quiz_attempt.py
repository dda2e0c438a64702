# tutorworld/schemas/quiz_attempt.py
from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from tutorworld.schemas.question import QuestionForAttempt, QuestionWithAnswer
from tutorworld.schemas.quiz import QuizResponse


class AnswerSubmission(BaseModel):
    question_id: str
    selected_answer: Union[str, List[str]]


class SubmitQuizRequest(BaseModel):
    answers: List[AnswerSubmission] = Field(default_factory=list)


class GradedAnswer(BaseModel):
    question_id: str
    selected_answer: Any = None
    is_correct: bool
    points_earned: float
    question: Optional[QuestionWithAnswer] = None


class AttemptResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    attempt_id: str
    quiz_id: Optional[str] = Field(None, validation_alias="quiz_public_id")
    student_id: Optional[str] = Field(None, validation_alias="student_user_id")
    score: float
    percentage: float
    total_points: int
    status: str
    is_passed: bool
    is_late_submission: bool
    started_at: datetime
    completed_at: Optional[datetime] = None
    time_spent: Optional[int] = None


class StartQuizResponse(BaseModel):
    attempt: AttemptResponse
    quiz: QuizResponse
    questions: List[QuestionForAttempt]


class AttemptResultResponse(BaseModel):
    """Graded attempt with the answer key revealed"""

    attempt: AttemptResponse
    quiz: QuizResponse
    answers: List[GradedAnswer]


class AttemptSummary(BaseModel):
    attempt_id: str
    score: float
    percentage: float
    is_passed: bool
    completed_at: Optional[datetime] = None


class StudentQuizResponse(BaseModel):
    quiz: QuizResponse
    attempt_count: int
    last_attempt: Optional[AttemptSummary] = None


class StudentAttemptItem(BaseModel):
    attempt: AttemptResponse
    quiz_title: Optional[str] = None
    subject: Optional[str] = None


class QuizResultItem(BaseModel):
    attempt: AttemptResponse
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    quiz_title: Optional[str] = None


class QuizResultListResponse(BaseModel):
    results: List[QuizResultItem]
    total: int
    page: int
    size: int
    total_pages: int
