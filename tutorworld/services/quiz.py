# tutorworld/services/quiz.py
import logging
import math
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from tutorworld.core.errors import NotFound, db_exception
from tutorworld.core.permissions import ensure_owner
from tutorworld.models.audit_log import AuditAction
from tutorworld.models.question import Question
from tutorworld.models.quiz import Quiz, QuizAssignment, QuizQuestion, QuizStatus
from tutorworld.models.quiz_attempt import AttemptStatus, QuizAttempt
from tutorworld.models.user import Role, User
from tutorworld.schemas.quiz import QuizCreate, QuizUpdate
from tutorworld.services.audit_log import AuditLogService
from tutorworld.utils.email import NotificationKind

logger = logging.getLogger(__name__)

NULLABLE_FIELDS = {
    "description",
    "instructions",
    "image_url",
    "time_limit",
    "number_of_questions",
    "start_date",
    "end_date",
}


class QuizService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogService(db)

    def get_quiz(self, quiz_id: str) -> Quiz:
        """Resolve a quiz by external id; soft-deleted quizzes are not found"""
        quiz = (
            self.db.query(Quiz)
            .filter(Quiz.quiz_id == quiz_id, Quiz.is_deleted.is_(False))
            .first()
        )
        if not quiz:
            raise NotFound("Quiz not found")
        return quiz

    def list_quizzes(
        self,
        page: int = 1,
        size: int = 20,
        subject: Optional[str] = None,
        grade: Optional[str] = None,
        status: Optional[QuizStatus] = None,
        author: Optional[User] = None,
    ):
        query = self.db.query(Quiz).filter(Quiz.is_deleted.is_(False))

        if author is not None:
            query = query.filter(Quiz.created_by == author.id)
        if subject:
            query = query.filter(Quiz.subject == subject)
        if grade:
            query = query.filter(Quiz.grade == grade)
        if status:
            query = query.filter(Quiz.status == status.value)

        total = query.count()
        quizzes = (
            query.order_by(Quiz.created_at.desc(), Quiz.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        total_pages = math.ceil(total / size) if total > 0 else 0
        return quizzes, total, total_pages

    def _resolve_questions(self, question_ids: Iterable[str]) -> List[Question]:
        """
        Resolve external ids in the given order.
        Unknown ids and repeats are dropped.
        """
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            return []
        found = {
            question.question_id: question
            for question in self.db.query(Question).filter(Question.question_id.in_(ids)).all()
        }
        return [found[question_id] for question_id in ids if question_id in found]

    def _set_questions(self, quiz: Quiz, question_ids: Iterable[str]) -> None:
        questions = self._resolve_questions(question_ids)

        if quiz.question_links:
            quiz.question_links.clear()
            self.db.flush()

        for position, question in enumerate(questions):
            quiz.question_links.append(QuizQuestion(question=question, position=position))

        # Snapshot of current point values, not recomputed when questions change later
        quiz.total_points = sum(question.points for question in questions)

    @db_exception
    def create_quiz(self, data: QuizCreate, author: User) -> Quiz:
        quiz = Quiz(
            title=data.title,
            description=data.description,
            instructions=data.instructions,
            image_url=data.image_url,
            subject=data.subject,
            grade=data.grade,
            time_limit=data.time_limit,
            passing_score=data.passing_score,
            is_randomized=data.is_randomized,
            number_of_questions=data.number_of_questions,
            status=data.status.value,
            start_date=data.start_date,
            end_date=data.end_date,
            created_by=author.id,
        )
        self.db.add(quiz)
        self._set_questions(quiz, data.questions)
        self.db.commit()
        self.db.refresh(quiz)

        logger.info(
            f"Quiz {quiz.quiz_id} created by {author.user_id} "
            f"with {len(quiz.question_links)} questions ({quiz.total_points} points)"
        )
        self.audit.log(AuditAction.CREATED, "quiz", quiz.quiz_id, author, target_label=quiz.title)
        return quiz

    @db_exception
    def update_quiz(self, quiz_id: str, patch: QuizUpdate, caller: User) -> Quiz:
        quiz = self.get_quiz(quiz_id)
        ensure_owner(caller, quiz.created_by)

        update_data = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True).items()
            if value is not None or field in NULLABLE_FIELDS
        }
        question_ids = update_data.pop("questions", None)
        if "status" in update_data:
            update_data["status"] = QuizStatus(update_data["status"]).value

        for field, value in update_data.items():
            setattr(quiz, field, value)

        if question_ids is not None:
            self._set_questions(quiz, question_ids)

        self.db.commit()
        self.db.refresh(quiz)

        changed = sorted(update_data.keys()) + (["questions"] if question_ids is not None else [])
        logger.info(f"Quiz {quiz.quiz_id} updated by {caller.user_id}: {changed}")
        self.audit.log(
            AuditAction.UPDATED, "quiz", quiz.quiz_id, caller, target_label=quiz.title, changes=changed
        )
        return quiz

    def has_attempts(self, quiz: Quiz) -> bool:
        return (
            self.db.query(QuizAttempt.id).filter(QuizAttempt.quiz_id == quiz.id).first()
            is not None
        )

    @db_exception
    def delete_quiz(self, quiz_id: str, caller: User) -> bool:
        """
        Delete a quiz the caller owns.

        Quizzes with attempt history are archived and flagged deleted instead.
        Returns True for a soft delete, False for a hard delete.
        """
        quiz = self.get_quiz(quiz_id)
        ensure_owner(caller, quiz.created_by)

        label = quiz.title
        if self.has_attempts(quiz):
            quiz.is_deleted = True
            quiz.status = QuizStatus.ARCHIVED.value
            self.db.commit()
            soft_deleted = True
            logger.info(f"Quiz {quiz_id} has attempts, archived instead of deleted")
        else:
            self.db.delete(quiz)
            self.db.commit()
            soft_deleted = False
            logger.info(f"Quiz {quiz_id} deleted")

        self.audit.log(
            AuditAction.DELETED,
            "quiz",
            quiz_id,
            caller,
            target_label=label,
            metadata={"soft_deleted": soft_deleted},
        )
        return soft_deleted

    @db_exception
    def assign_quiz(self, quiz_id: str, student_ids: List[str], caller: User, notifier=None) -> int:
        """
        Assign a quiz to students. Idempotent: already assigned students are skipped.

        Unknown, inactive or non-student ids are ignored. Each newly assigned
        student is notified on a best-effort basis. Returns the number of new
        assignments.
        """
        quiz = self.get_quiz(quiz_id)
        ensure_owner(caller, quiz.created_by)

        ids = list(dict.fromkeys(student_ids))
        students = []
        if ids:
            students = (
                self.db.query(User)
                .filter(
                    User.user_id.in_(ids),
                    User.role == Role.STUDENT.value,
                    User.is_active.is_(True),
                    User.is_deleted.is_(False),
                )
                .all()
            )

        already_assigned = {assignment.student_id for assignment in quiz.assignments}
        new_students = [student for student in students if student.id not in already_assigned]

        for student in new_students:
            quiz.assignments.append(QuizAssignment(student_id=student.id))

        if not new_students:
            return 0

        self.db.commit()
        logger.info(f"Quiz {quiz.quiz_id} assigned to {len(new_students)} new students")

        self.audit.log(
            AuditAction.ASSIGNED,
            "quiz",
            quiz.quiz_id,
            caller,
            target_label=quiz.title,
            changes=[student.user_id for student in new_students],
        )

        if notifier is not None:
            for student in new_students:
                self._notify_assignment(notifier, student, quiz)

        return len(new_students)

    @staticmethod
    def _notify_assignment(notifier, student: User, quiz: Quiz) -> None:
        try:
            sent = notifier.notify(
                student.email,
                NotificationKind.QUIZ_ASSIGNMENT,
                {"first_name": student.first_name, "quiz_title": quiz.title},
            )
            if not sent:
                logger.warning(f"Assignment email to {student.email} was not delivered")
        except Exception as e:
            logger.error(f"Failed to notify {student.email} about quiz {quiz.quiz_id}: {e}")

    def get_quiz_results(self, quiz_id: str, caller: User) -> List[QuizAttempt]:
        """Completed attempts for a quiz, newest first"""
        quiz = self.get_quiz(quiz_id)
        ensure_owner(caller, quiz.created_by)

        return (
            self.db.query(QuizAttempt)
            .filter(
                QuizAttempt.quiz_id == quiz.id,
                QuizAttempt.status == AttemptStatus.COMPLETED.value,
            )
            .order_by(QuizAttempt.completed_at.desc())
            .all()
        )
