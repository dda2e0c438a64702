import uuid
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text

from tutorworld.core.clock import utcnow
from tutorworld.core.database import Base, JSONType


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


class QuestionDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class Question(Base):
    __tablename__ = "questions"

    id = Column(Integer, primary_key=True, index=True)
    question_id = Column(
        String(36), unique=True, index=True, nullable=False, default=lambda: str(uuid.uuid4())
    )

    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    question_type = Column(String(20), nullable=False)
    difficulty = Column(String(10), nullable=False)
    subject = Column(String(100), nullable=False, index=True)
    grade = Column(String(20), nullable=False, index=True)

    # Choice questions: [{"text": "...", "is_correct": bool}, ...]
    options = Column(JSONType, nullable=False, default=list)
    # Short-answer questions only
    correct_answer = Column(Text, nullable=True)
    explanation = Column(Text, nullable=True)

    points = Column(Integer, nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    tags = Column(JSONType, nullable=False, default=list)
    image_url = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def correct_option_text(self):
        for option in self.options or []:
            if option.get("is_correct"):
                return option.get("text")
        return None

    @property
    def author_user_id(self):
        return self.author.user_id if self.author else None

    def __repr__(self):
        return f"<Question(id={self.id}, type='{self.question_type}', points={self.points})>"
