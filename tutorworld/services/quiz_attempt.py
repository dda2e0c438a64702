# tutorworld/services/quiz_attempt.py
import logging
import random
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tutorworld.core.clock import utcnow
from tutorworld.core.errors import Forbidden, InvalidState, NotFound, db_exception
from tutorworld.models.question import Question
from tutorworld.models.quiz import Quiz, QuizAssignment, QuizStatus
from tutorworld.models.quiz_attempt import AttemptStatus, QuizAttempt
from tutorworld.models.user import User
from tutorworld.schemas.question import QuestionForAttempt, QuestionWithAnswer
from tutorworld.schemas.quiz import QuizResponse
from tutorworld.schemas.quiz_attempt import (
    AttemptResponse,
    AttemptResultResponse,
    GradedAnswer,
    QuizResultItem,
    StartQuizResponse,
)
from tutorworld.services.grading import (
    compute_percentage,
    evaluate_time_limit,
    grade_answers,
    is_passing,
    reveal_answer_key,
    select_questions,
    strip_answer_key,
    total_score,
)

logger = logging.getLogger(__name__)


class AttemptService:
    """
    Quiz-attempt lifecycle: in_progress -> completed.

    The clock and random generator are injectable so that time windows and
    question sampling can be driven deterministically.
    """

    def __init__(
        self,
        db: Session,
        clock: Callable[[], Any] = utcnow,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.clock = clock
        self.rng = rng or random.Random()

    def _get_open_attempt(self, quiz: Quiz, student: User) -> Optional[QuizAttempt]:
        return (
            self.db.query(QuizAttempt)
            .filter(
                QuizAttempt.quiz_id == quiz.id,
                QuizAttempt.student_id == student.id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .first()
        )

    def _presented_questions(self, attempt: QuizAttempt) -> List[Question]:
        """Questions the attempt was started with, in display order"""
        ids = attempt.question_ids or []
        if not ids:
            return []
        found = {
            question.question_id: question
            for question in self.db.query(Question).filter(Question.question_id.in_(ids)).all()
        }
        return [found[question_id] for question_id in ids if question_id in found]

    @db_exception
    def start_attempt(self, quiz_id: str, student: User) -> Tuple[QuizAttempt, Quiz, List[Question]]:
        """
        Start (or resume) the student's attempt at a quiz.

        While an attempt is open, starting again returns it unchanged together
        with the questions it was started with.
        """
        quiz = (
            self.db.query(Quiz)
            .filter(Quiz.quiz_id == quiz_id, Quiz.is_deleted.is_(False))
            .first()
        )
        if not quiz:
            raise NotFound("Quiz not found")

        assigned = (
            self.db.query(QuizAssignment.id)
            .filter(QuizAssignment.quiz_id == quiz.id, QuizAssignment.student_id == student.id)
            .first()
        )
        if not assigned:
            raise Forbidden("You are not assigned to this quiz")

        if quiz.status != QuizStatus.ACTIVE.value:
            raise InvalidState("This quiz is not currently available")

        now = self.clock()
        if quiz.start_date and now < quiz.start_date:
            raise InvalidState("This quiz has not started yet")
        if quiz.end_date and now > quiz.end_date:
            raise InvalidState("This quiz has ended")

        existing = self._get_open_attempt(quiz, student)
        if existing:
            logger.info(f"Resuming attempt {existing.attempt_id} for student {student.user_id}")
            return existing, quiz, self._presented_questions(existing)

        questions = select_questions(
            quiz.questions, quiz.is_randomized, quiz.number_of_questions, self.rng
        )

        attempt = QuizAttempt(
            quiz_id=quiz.id,
            student_id=student.id,
            question_ids=[question.question_id for question in questions],
            answers=[],
            score=0,
            percentage=0,
            total_points=quiz.total_points,
            status=AttemptStatus.IN_PROGRESS.value,
            started_at=now,
        )
        self.db.add(attempt)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost the race against a concurrent start: the open-attempt index kept the winner
            self.db.rollback()
            existing = self._get_open_attempt(quiz, student)
            if not existing:
                raise
            logger.info(f"Concurrent start for quiz {quiz.quiz_id}, returning {existing.attempt_id}")
            return existing, quiz, self._presented_questions(existing)

        self.db.refresh(attempt)
        logger.info(
            f"Attempt {attempt.attempt_id} started by {student.user_id} "
            f"on quiz {quiz.quiz_id} with {len(questions)} questions"
        )
        return attempt, quiz, questions

    def _get_own_attempt(self, attempt_id: str, student: User) -> QuizAttempt:
        attempt = self.db.query(QuizAttempt).filter(QuizAttempt.attempt_id == attempt_id).first()
        if not attempt:
            raise NotFound("Quiz attempt not found")
        if attempt.student_id != student.id:
            raise Forbidden("You do not have access to this attempt")
        return attempt

    @db_exception
    def submit_attempt(
        self, attempt_id: str, student: User, answers: Sequence[Dict[str, Any]]
    ) -> QuizAttempt:
        """
        Grade and complete an open attempt in one conditional update.

        Submissions later than 1.5x the time limit are rejected and leave the
        attempt open; later than the limit they are accepted and flagged late.
        """
        attempt = self._get_own_attempt(attempt_id, student)

        if attempt.status == AttemptStatus.COMPLETED.value:
            raise InvalidState("Quiz already submitted")
        if attempt.status != AttemptStatus.IN_PROGRESS.value:
            raise InvalidState("This attempt is no longer open")

        quiz = attempt.quiz
        if not quiz:
            raise NotFound("Quiz not found")

        now = self.clock()
        timing = evaluate_time_limit(attempt.started_at, now, quiz.time_limit)
        if timing.is_rejected:
            logger.info(
                f"Attempt {attempt.attempt_id} rejected after {timing.elapsed_minutes:.1f} minutes "
                f"(limit {quiz.time_limit})"
            )
            raise InvalidState("Submission rejected. Time limit exceeded by too much.")

        graded = grade_answers(quiz.questions, answers)
        score = total_score(graded)
        percentage = compute_percentage(score, quiz.total_points)
        passed = is_passing(percentage, quiz.passing_score)

        updated = (
            self.db.query(QuizAttempt)
            .filter(
                QuizAttempt.id == attempt.id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .update(
                {
                    QuizAttempt.answers: graded,
                    QuizAttempt.score: score,
                    QuizAttempt.percentage: percentage,
                    QuizAttempt.is_passed: passed,
                    QuizAttempt.is_late_submission: timing.is_late,
                    QuizAttempt.status: AttemptStatus.COMPLETED.value,
                    QuizAttempt.completed_at: now,
                    QuizAttempt.time_spent: int((now - attempt.started_at).total_seconds()),
                    QuizAttempt.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if updated == 0:
            self.db.rollback()
            raise InvalidState("Quiz already submitted")

        self.db.commit()
        self.db.refresh(attempt)

        logger.info(
            f"Attempt {attempt.attempt_id} submitted: score={score}/{quiz.total_points} "
            f"passed={passed} late={timing.is_late}"
        )
        return attempt

    def get_result(self, attempt_id: str, student: User) -> QuizAttempt:
        return self._get_own_attempt(attempt_id, student)

    def get_student_attempts(self, student: User) -> List[QuizAttempt]:
        """Completed attempts of the student, newest first"""
        return (
            self.db.query(QuizAttempt)
            .filter(
                QuizAttempt.student_id == student.id,
                QuizAttempt.status == AttemptStatus.COMPLETED.value,
            )
            .order_by(QuizAttempt.completed_at.desc())
            .all()
        )

    def get_student_quizzes(self, student: User) -> List[Dict[str, Any]]:
        """Active quizzes assigned to the student with attempt count and last result"""
        quizzes = (
            self.db.query(Quiz)
            .join(QuizAssignment, QuizAssignment.quiz_id == Quiz.id)
            .filter(
                QuizAssignment.student_id == student.id,
                Quiz.status == QuizStatus.ACTIVE.value,
                Quiz.is_deleted.is_(False),
            )
            .order_by(Quiz.created_at.desc(), Quiz.id.desc())
            .all()
        )
        if not quizzes:
            return []

        quiz_ids = [quiz.id for quiz in quizzes]
        counts = dict(
            self.db.query(QuizAttempt.quiz_id, func.count(QuizAttempt.id))
            .filter(QuizAttempt.student_id == student.id, QuizAttempt.quiz_id.in_(quiz_ids))
            .group_by(QuizAttempt.quiz_id)
            .all()
        )

        last_attempts = {}
        completed = (
            self.db.query(QuizAttempt)
            .filter(
                QuizAttempt.student_id == student.id,
                QuizAttempt.quiz_id.in_(quiz_ids),
                QuizAttempt.status == AttemptStatus.COMPLETED.value,
            )
            .order_by(QuizAttempt.completed_at.desc())
            .all()
        )
        for attempt in completed:
            last_attempts.setdefault(attempt.quiz_id, attempt)

        return [
            {
                "quiz": quiz,
                "attempt_count": counts.get(quiz.id, 0),
                "last_attempt": last_attempts.get(quiz.id),
            }
            for quiz in quizzes
        ]

    def _questions_by_id(self, question_ids: Sequence[str]) -> Dict[str, Question]:
        ids = [question_id for question_id in question_ids if question_id]
        if not ids:
            return {}
        return {
            question.question_id: question
            for question in self.db.query(Question).filter(Question.question_id.in_(ids)).all()
        }

    def result_response(self, attempt: QuizAttempt) -> AttemptResultResponse:
        """Graded answers with each question's answer key revealed"""
        answers = attempt.answers or []
        questions = self._questions_by_id([answer.get("question_id") for answer in answers])

        graded = []
        for answer in answers:
            question = questions.get(answer.get("question_id"))
            graded.append(
                GradedAnswer(
                    question_id=str(answer.get("question_id")),
                    selected_answer=answer.get("selected_answer"),
                    is_correct=bool(answer.get("is_correct")),
                    points_earned=answer.get("points_earned") or 0,
                    question=QuestionWithAnswer(**reveal_answer_key(question)) if question else None,
                )
            )

        return AttemptResultResponse(
            attempt=AttemptResponse.model_validate(attempt),
            quiz=QuizResponse.model_validate(attempt.quiz),
            answers=graded,
        )


def start_response(attempt: QuizAttempt, quiz: Quiz, questions: List[Question]) -> StartQuizResponse:
    """Attempt plus its questions with every correctness marker stripped"""
    return StartQuizResponse(
        attempt=AttemptResponse.model_validate(attempt),
        quiz=QuizResponse.model_validate(quiz),
        questions=[QuestionForAttempt(**strip_answer_key(question)) for question in questions],
    )


def result_item(attempt: QuizAttempt) -> QuizResultItem:
    student = attempt.student
    return QuizResultItem(
        attempt=AttemptResponse.model_validate(attempt),
        student_name=student.full_name if student else None,
        student_email=student.email if student else None,
        quiz_title=attempt.quiz.title if attempt.quiz else None,
    )
