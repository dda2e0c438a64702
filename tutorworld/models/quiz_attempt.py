import uuid
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, text

from tutorworld.core.clock import utcnow
from tutorworld.core.database import Base, JSONType


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class QuizAttempt(Base):
    __tablename__ = "quiz_attempts"
    __table_args__ = (
        # At most one open attempt per (student, quiz)
        Index(
            "uq_quiz_attempts_open",
            "student_id",
            "quiz_id",
            unique=True,
            postgresql_where=text("status = 'in_progress'"),
            sqlite_where=text("status = 'in_progress'"),
        ),
        Index("ix_quiz_attempts_student_quiz", "student_id", "quiz_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    attempt_id = Column(
        String(36), unique=True, index=True, nullable=False, default=lambda: str(uuid.uuid4())
    )

    # Relationships
    quiz_id = Column(Integer, ForeignKey("quizzes.id"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # External ids of the questions shown to the student, in display order
    question_ids = Column(JSONType, nullable=False, default=list)

    # Graded answers: [{"question_id", "selected_answer", "is_correct", "points_earned"}, ...]
    answers = Column(JSONType, nullable=False, default=list)
    score = Column(Float, nullable=False, default=0)
    percentage = Column(Float, nullable=False, default=0)
    total_points = Column(Integer, nullable=False, default=0)

    status = Column(
        String(20), nullable=False, default=AttemptStatus.IN_PROGRESS.value, index=True
    )
    is_passed = Column(Boolean, nullable=False, default=False)
    is_late_submission = Column(Boolean, nullable=False, default=False)

    # Time tracking
    started_at = Column(DateTime, nullable=False, default=utcnow)
    completed_at = Column(DateTime, nullable=True, index=True)
    time_spent = Column(Integer, nullable=True)  # seconds

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def quiz_public_id(self):
        return self.quiz.quiz_id if self.quiz else None

    @property
    def student_user_id(self):
        return self.student.user_id if self.student else None

    def __repr__(self):
        return (
            f"<QuizAttempt(id={self.id}, student_id={self.student_id}, "
            f"status='{self.status}', score={self.score})>"
        )
