# tutorworld/services/teacher.py
import logging
import math
from typing import Any, Dict, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from tutorworld.models.question import Question
from tutorworld.models.quiz import Quiz, QuizAssignment
from tutorworld.models.quiz_attempt import AttemptStatus, QuizAttempt
from tutorworld.models.user import User

logger = logging.getLogger(__name__)


class TeacherService:
    """Read side of the teacher workspace, scoped to the teacher's own content"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _own_quiz_ids(teacher: User):
        return select(Quiz.id).where(Quiz.created_by == teacher.id, Quiz.is_deleted.is_(False))

    def _assigned_student_ids(self, teacher: User):
        return select(QuizAssignment.student_id).where(
            QuizAssignment.quiz_id.in_(self._own_quiz_ids(teacher))
        )

    def get_dashboard_stats(self, teacher: User) -> Dict[str, Any]:
        questions_created = (
            self.db.query(func.count(Question.id))
            .filter(Question.created_by == teacher.id, Question.is_active.is_(True))
            .scalar()
        )
        quizzes_created = (
            self.db.query(func.count(Quiz.id))
            .filter(Quiz.created_by == teacher.id, Quiz.is_deleted.is_(False))
            .scalar()
        )
        active_students = (
            self.db.query(func.count(User.id))
            .filter(
                User.id.in_(self._assigned_student_ids(teacher)),
                User.is_active.is_(True),
                User.is_deleted.is_(False),
            )
            .scalar()
        )

        completed = self.db.query(QuizAttempt).filter(
            QuizAttempt.quiz_id.in_(self._own_quiz_ids(teacher)),
            QuizAttempt.status == AttemptStatus.COMPLETED.value,
        )
        total_submissions = completed.count()
        average = completed.with_entities(func.avg(QuizAttempt.percentage)).scalar()

        return {
            "questions_created": questions_created or 0,
            "quizzes_created": quizzes_created or 0,
            "active_students": active_students or 0,
            "total_submissions": total_submissions,
            "average_score": round(average or 0),
        }

    def list_students(
        self, teacher: User, page: int = 1, size: int = 20, is_active: Optional[bool] = None
    ):
        """Students assigned to any of the teacher's quizzes"""
        query = self.db.query(User).filter(
            User.id.in_(self._assigned_student_ids(teacher)), User.is_deleted.is_(False)
        )
        if is_active is not None:
            query = query.filter(User.is_active == is_active)

        total = query.count()
        students = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        total_pages = math.ceil(total / size) if total > 0 else 0
        return students, total, total_pages

    def list_results(self, teacher: User, page: int = 1, size: int = 20):
        """Completed attempts on the teacher's quizzes, newest first"""
        query = self.db.query(QuizAttempt).filter(
            QuizAttempt.quiz_id.in_(self._own_quiz_ids(teacher)),
            QuizAttempt.status == AttemptStatus.COMPLETED.value,
        )

        total = query.count()
        results = (
            query.order_by(QuizAttempt.completed_at.desc(), QuizAttempt.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        total_pages = math.ceil(total / size) if total > 0 else 0
        return results, total, total_pages
