# tutorworld/models/relations.py

from sqlalchemy.orm import relationship

from .audit_log import AuditLog
from .question import Question
from .quiz import Quiz, QuizAssignment, QuizQuestion
from .quiz_attempt import QuizAttempt
from .user import User


def setup_relationships():
    """
    Configure all SQLAlchemy relationships between models.
    """

    # --- Authoring ---

    # 1. Ownership of content (Many-to-One)
    Question.author = relationship("User", foreign_keys=[Question.created_by])
    Quiz.author = relationship("User", foreign_keys=[Quiz.created_by])

    # 2. Quiz to ordered question references (One-to-Many via association)
    Quiz.question_links = relationship(
        "QuizQuestion",
        order_by=QuizQuestion.position,
        cascade="all, delete-orphan",
        back_populates="quiz",
    )
    QuizQuestion.quiz = relationship("Quiz", back_populates="question_links")
    QuizQuestion.question = relationship("Question", lazy="joined")

    # --- Assignment ---

    # 3. Quiz to assigned students (Many-to-Many via association)
    Quiz.assignments = relationship(
        "QuizAssignment",
        cascade="all, delete-orphan",
        back_populates="quiz",
    )
    QuizAssignment.quiz = relationship("Quiz", back_populates="assignments")
    QuizAssignment.student = relationship("User", lazy="joined")

    # --- Attempts ---

    # 4. Attempt to its quiz and student (Many-to-One)
    QuizAttempt.quiz = relationship("Quiz")
    QuizAttempt.student = relationship("User", foreign_keys=[QuizAttempt.student_id])

    # --- Audit ---
    AuditLog.actor = relationship("User", foreign_keys=[AuditLog.changed_by])
