import uuid
from enum import Enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)

from tutorworld.core.clock import utcnow
from tutorworld.core.database import Base


class QuizStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"


class Quiz(Base):
    __tablename__ = "quizzes"

    id = Column(Integer, primary_key=True, index=True)
    quiz_id = Column(
        String(36), unique=True, index=True, nullable=False, default=lambda: str(uuid.uuid4())
    )

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    instructions = Column(Text, nullable=True)
    image_url = Column(Text, nullable=True)
    subject = Column(String(100), nullable=False, index=True)
    grade = Column(String(20), nullable=False, index=True)

    # Settings
    time_limit = Column(Integer, nullable=True)  # minutes
    total_points = Column(Integer, nullable=False, default=0)  # snapshot, see QuizService
    passing_score = Column(Float, nullable=False, default=60)  # percentage
    is_randomized = Column(Boolean, nullable=False, default=False)
    number_of_questions = Column(Integer, nullable=True)  # sample size when randomized

    # Lifecycle
    status = Column(String(20), nullable=False, default=QuizStatus.DRAFT.value, index=True)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def questions(self):
        """Referenced questions in quiz order."""
        return [link.question for link in self.question_links]

    @property
    def question_ids(self):
        return [question.question_id for question in self.questions]

    @property
    def assigned_student_ids(self):
        return [assignment.student.user_id for assignment in self.assignments]

    @property
    def author_user_id(self):
        return self.author.user_id if self.author else None

    def __repr__(self):
        return f"<Quiz(id={self.id}, title='{self.title}', status='{self.status}')>"


class QuizQuestion(Base):
    __tablename__ = "quiz_questions"
    __table_args__ = (UniqueConstraint("quiz_id", "question_id", name="uq_quiz_question"),)

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Integer, ForeignKey("questions.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)


class QuizAssignment(Base):
    __tablename__ = "quiz_assignments"
    __table_args__ = (UniqueConstraint("quiz_id", "student_id", name="uq_quiz_assignment"),)

    id = Column(Integer, primary_key=True)
    quiz_id = Column(Integer, ForeignKey("quizzes.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_at = Column(DateTime, default=utcnow, nullable=False)
