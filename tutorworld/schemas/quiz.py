# tutorworld/schemas/quiz.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tutorworld.core.clock import to_naive_utc
from tutorworld.models.quiz import QuizStatus


class QuizBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    instructions: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = None
    subject: str = Field(..., min_length=2, max_length=100)
    grade: str = Field(..., min_length=1, max_length=20)
    time_limit: Optional[int] = Field(None, ge=0, le=600, description="Minutes, 0 or empty for no limit")
    passing_score: float = Field(default=60, ge=0, le=100)
    is_randomized: bool = False
    number_of_questions: Optional[int] = Field(None, ge=1)
    status: QuizStatus = QuizStatus.DRAFT
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)


class QuizCreate(QuizBase):
    questions: List[str] = Field(default_factory=list, description="Question ids in display order")

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class QuizUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    instructions: Optional[str] = Field(None, max_length=2000)
    image_url: Optional[str] = None
    subject: Optional[str] = Field(None, min_length=2, max_length=100)
    grade: Optional[str] = Field(None, min_length=1, max_length=20)
    time_limit: Optional[int] = Field(None, ge=0, le=600)
    passing_score: Optional[float] = Field(None, ge=0, le=100)
    is_randomized: Optional[bool] = None
    number_of_questions: Optional[int] = Field(None, ge=1)
    status: Optional[QuizStatus] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    questions: Optional[List[str]] = None

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_dates(cls, v):
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class QuizResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    quiz_id: str
    title: str
    description: Optional[str] = None
    instructions: Optional[str] = None
    image_url: Optional[str] = None
    subject: str
    grade: str
    time_limit: Optional[int] = None
    total_points: int
    passing_score: float
    is_randomized: bool
    number_of_questions: Optional[int] = None
    status: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    is_deleted: bool
    questions: List[str] = Field(default_factory=list, validation_alias="question_ids")
    assigned_students: List[str] = Field(default_factory=list, validation_alias="assigned_student_ids")
    created_by: Optional[str] = Field(None, validation_alias="author_user_id")
    created_at: datetime
    updated_at: datetime


class QuizListResponse(BaseModel):
    quizzes: List[QuizResponse]
    total: int
    page: int
    size: int
    total_pages: int


class AssignQuizRequest(BaseModel):
    student_ids: List[str] = Field(..., min_length=1)


class AssignQuizResponse(BaseModel):
    message: str
    assigned_count: int
