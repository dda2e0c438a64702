# tutorworld/schemas/question.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tutorworld.models.question import QuestionDifficulty, QuestionType


class OptionSchema(BaseModel):
    text: str = Field(..., min_length=1)
    is_correct: bool


class QuestionBase(BaseModel):
    title: str = Field(..., min_length=5, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)
    question_type: QuestionType
    difficulty: QuestionDifficulty
    subject: str = Field(..., min_length=2, max_length=100)
    grade: str = Field(..., min_length=1, max_length=20)
    options: List[OptionSchema] = Field(default_factory=list)
    correct_answer: Optional[str] = None
    explanation: Optional[str] = Field(None, max_length=1000)
    points: int = Field(default=1, ge=0, le=100)
    tags: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None


class QuestionCreate(QuestionBase):
    """Exactly one correctness representation, chosen by question type"""

    @model_validator(mode="after")
    def check_answer_key(self):
        if self.question_type == QuestionType.SHORT_ANSWER:
            if not self.correct_answer or not self.correct_answer.strip():
                raise ValueError("Short answer questions require a correct_answer")
            if self.options:
                raise ValueError("Short answer questions cannot have options")
        else:
            if len(self.options) < 2:
                raise ValueError("Choice questions require at least 2 options")
            if sum(1 for option in self.options if option.is_correct) != 1:
                raise ValueError("Choice questions require exactly one correct option")
            if self.correct_answer is not None:
                raise ValueError("Choice questions cannot have a correct_answer")
        return self


class QuestionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=5, max_length=500)
    description: Optional[str] = Field(None, max_length=1000)
    difficulty: Optional[QuestionDifficulty] = None
    subject: Optional[str] = Field(None, min_length=2, max_length=100)
    grade: Optional[str] = Field(None, min_length=1, max_length=20)
    options: Optional[List[OptionSchema]] = None
    correct_answer: Optional[str] = None
    explanation: Optional[str] = Field(None, max_length=1000)
    points: Optional[int] = Field(None, ge=0, le=100)
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    is_active: Optional[bool] = None


class QuestionResponse(BaseModel):
    """Full question for its authors - includes the answer key"""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    question_id: str
    title: str
    description: Optional[str] = None
    question_type: str
    difficulty: str
    subject: str
    grade: str
    options: List[OptionSchema]
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
    points: int
    is_active: bool
    tags: List[str] = []
    image_url: Optional[str] = None
    created_by: Optional[str] = Field(None, validation_alias="author_user_id")
    created_at: datetime
    updated_at: datetime


class QuestionListResponse(BaseModel):
    questions: List[QuestionResponse]
    total: int
    page: int
    size: int
    total_pages: int


class OptionForAttempt(BaseModel):
    """Display text only"""

    text: str


class QuestionForAttempt(BaseModel):
    """Question during an attempt - WITHOUT correctness data"""

    question_id: str
    title: str
    description: Optional[str] = None
    question_type: str
    difficulty: str
    subject: str
    grade: str
    options: List[OptionForAttempt]
    points: int
    image_url: Optional[str] = None


class QuestionWithAnswer(QuestionForAttempt):
    """Question revealed after grading"""

    options: List[OptionSchema]
    correct_answer: Optional[str] = None
    explanation: Optional[str] = None
