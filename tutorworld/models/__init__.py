"""
Models package initialization
Import all models and setup relationships
"""

from .audit_log import AuditAction, AuditLog
from .question import Question, QuestionDifficulty, QuestionType
from .quiz import Quiz, QuizAssignment, QuizQuestion, QuizStatus
from .quiz_attempt import AttemptStatus, QuizAttempt

# Import and setup relationships
from .relations import setup_relationships
from .user import Role, User

# Setup all relationships after models are imported
setup_relationships()

# Make models available at package level
__all__ = [
    "AttemptStatus",
    "AuditAction",
    "AuditLog",
    "Question",
    "QuestionDifficulty",
    "QuestionType",
    "Quiz",
    "QuizAssignment",
    "QuizAttempt",
    "QuizQuestion",
    "QuizStatus",
    "Role",
    "User",
]
