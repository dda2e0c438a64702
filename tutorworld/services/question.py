# tutorworld/services/question.py
import logging
import math
from typing import Optional

from sqlalchemy.orm import Session

from tutorworld.core.errors import NotFound, ValidationFailed, db_exception
from tutorworld.core.permissions import ensure_owner
from tutorworld.models.audit_log import AuditAction
from tutorworld.models.question import Question, QuestionDifficulty, QuestionType
from tutorworld.models.quiz import QuizQuestion
from tutorworld.models.user import User
from tutorworld.schemas.question import QuestionCreate, QuestionUpdate
from tutorworld.services.audit_log import AuditLogService

logger = logging.getLogger(__name__)

NULLABLE_FIELDS = {"description", "correct_answer", "explanation", "image_url"}


def check_answer_key(question_type: str, options: list, correct_answer: Optional[str]) -> None:
    """Exactly one correctness representation, chosen by question type."""
    if QuestionType(question_type) is QuestionType.SHORT_ANSWER:
        if not correct_answer or not correct_answer.strip():
            raise ValidationFailed("Short answer questions require a correct_answer")
        if options:
            raise ValidationFailed("Short answer questions cannot have options")
        return

    if len(options) < 2:
        raise ValidationFailed("Choice questions require at least 2 options")
    if sum(1 for option in options if option.get("is_correct")) != 1:
        raise ValidationFailed("Choice questions require exactly one correct option")
    if correct_answer is not None:
        raise ValidationFailed("Choice questions cannot have a correct_answer")


class QuestionService:
    def __init__(self, db: Session):
        self.db = db
        self.audit = AuditLogService(db)

    def get_question(self, question_id: str) -> Question:
        question = self.db.query(Question).filter(Question.question_id == question_id).first()
        if not question:
            raise NotFound("Question not found")
        return question

    def list_questions(
        self,
        page: int = 1,
        size: int = 20,
        subject: Optional[str] = None,
        grade: Optional[str] = None,
        difficulty: Optional[QuestionDifficulty] = None,
        question_type: Optional[QuestionType] = None,
        is_active: Optional[bool] = None,
        author: Optional[User] = None,
    ):
        """Paginated question bank, optionally scoped to one author"""
        query = self.db.query(Question)

        if author is not None:
            query = query.filter(Question.created_by == author.id)
        if subject:
            query = query.filter(Question.subject == subject)
        if grade:
            query = query.filter(Question.grade == grade)
        if difficulty:
            query = query.filter(Question.difficulty == difficulty.value)
        if question_type:
            query = query.filter(Question.question_type == question_type.value)
        if is_active is not None:
            query = query.filter(Question.is_active == is_active)

        total = query.count()
        questions = (
            query.order_by(Question.created_at.desc(), Question.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        total_pages = math.ceil(total / size) if total > 0 else 0
        return questions, total, total_pages

    @db_exception
    def create_question(self, data: QuestionCreate, author: User) -> Question:
        question = Question(
            title=data.title,
            description=data.description,
            question_type=data.question_type.value,
            difficulty=data.difficulty.value,
            subject=data.subject,
            grade=data.grade,
            options=[option.model_dump() for option in data.options],
            correct_answer=data.correct_answer,
            explanation=data.explanation,
            points=data.points,
            tags=data.tags,
            image_url=data.image_url,
            is_active=True,
            created_by=author.id,
        )
        self.db.add(question)
        self.db.commit()
        self.db.refresh(question)

        logger.info(f"Question {question.question_id} created by {author.user_id}")
        self.audit.log(
            AuditAction.CREATED, "question", question.question_id, author, target_label=question.title
        )
        return question

    @db_exception
    def update_question(self, question_id: str, patch: QuestionUpdate, caller: User) -> Question:
        question = self.get_question(question_id)
        ensure_owner(caller, question.created_by)

        update_data = {
            field: value
            for field, value in patch.model_dump(exclude_unset=True, mode="json").items()
            if value is not None or field in NULLABLE_FIELDS
        }

        options = update_data.get("options", question.options) or []
        correct_answer = update_data.get("correct_answer", question.correct_answer)
        if "options" in update_data or "correct_answer" in update_data:
            check_answer_key(question.question_type, options, correct_answer)

        for field, value in update_data.items():
            setattr(question, field, value)

        self.db.commit()
        self.db.refresh(question)

        logger.info(f"Question {question.question_id} updated by {caller.user_id}")
        self.audit.log(
            AuditAction.UPDATED,
            "question",
            question.question_id,
            caller,
            target_label=question.title,
            changes=sorted(update_data.keys()),
        )
        return question

    def is_referenced(self, question: Question) -> bool:
        return (
            self.db.query(QuizQuestion.id).filter(QuizQuestion.question_id == question.id).first()
            is not None
        )

    @db_exception
    def delete_question(self, question_id: str, caller: User) -> bool:
        """
        Delete a question the caller owns.

        Questions referenced by any quiz are deactivated instead of removed.
        Returns True for a soft delete, False for a hard delete.
        """
        question = self.get_question(question_id)
        ensure_owner(caller, question.created_by)

        label = question.title
        if self.is_referenced(question):
            question.is_active = False
            self.db.commit()
            soft_deleted = True
            logger.info(f"Question {question_id} is used in quizzes, deactivated instead of deleted")
        else:
            self.db.delete(question)
            self.db.commit()
            soft_deleted = False
            logger.info(f"Question {question_id} deleted")

        self.audit.log(
            AuditAction.DELETED,
            "question",
            question_id,
            caller,
            target_label=label,
            metadata={"soft_deleted": soft_deleted},
        )
        return soft_deleted
