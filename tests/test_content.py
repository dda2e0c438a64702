import pytest

from tutorworld.core.errors import Forbidden, NotFound, ValidationFailed
from tutorworld.models.audit_log import AuditAction, AuditLog
from tutorworld.models.question import Question, QuestionType
from tutorworld.models.quiz import Quiz, QuizStatus
from tutorworld.schemas.question import OptionSchema, QuestionUpdate
from tutorworld.schemas.quiz import QuizUpdate
from tutorworld.services.question import QuestionService
from tutorworld.services.quiz import QuizService
from tutorworld.services.quiz_attempt import AttemptService


class TestQuestions:
    def test_create_records_author_and_audit(self, db, teacher, make_question):
        question = make_question(teacher)

        assert question.created_by == teacher.id
        assert question.author_user_id == teacher.user_id
        assert question.is_active is True
        assert question.correct_option_text == "4"
        entry = db.query(AuditLog).filter_by(target_id=question.question_id).one()
        assert entry.action == AuditAction.CREATED.value
        assert entry.changed_by == teacher.id

    def test_other_teacher_cannot_update(self, db, teacher, other_teacher, make_question):
        question = make_question(teacher)
        with pytest.raises(Forbidden):
            QuestionService(db).update_question(
                question.question_id, QuestionUpdate(title="Someone else's edit"), other_teacher
            )

    def test_admin_bypasses_ownership(self, db, teacher, admin, make_question):
        question = make_question(teacher)
        updated = QuestionService(db).update_question(
            question.question_id, QuestionUpdate(title="Edited by the admin", points=7), admin
        )

        assert updated.title == "Edited by the admin"
        assert updated.points == 7
        assert updated.created_by == teacher.id

    def test_update_rechecks_answer_key(self, db, teacher, make_question):
        question = make_question(teacher)
        patch = QuestionUpdate(
            options=[OptionSchema(text="3", is_correct=True), OptionSchema(text="4", is_correct=True)]
        )
        with pytest.raises(ValidationFailed, match="exactly one correct option"):
            QuestionService(db).update_question(question.question_id, patch, teacher)

    def test_update_short_answer_key(self, db, teacher, make_question):
        question = make_question(teacher, question_type=QuestionType.SHORT_ANSWER)
        updated = QuestionService(db).update_question(
            question.question_id, QuestionUpdate(correct_answer="Lyon"), teacher
        )
        assert updated.correct_answer == "Lyon"

    def test_unreferenced_question_is_removed(self, db, teacher, make_question):
        question = make_question(teacher)
        service = QuestionService(db)

        assert service.delete_question(question.question_id, teacher) is False
        with pytest.raises(NotFound):
            service.get_question(question.question_id)

    def test_referenced_question_is_deactivated(self, db, teacher, make_question, make_quiz):
        question = make_question(teacher)
        make_quiz(teacher, [question])

        assert QuestionService(db).delete_question(question.question_id, teacher) is True
        db.expire_all()
        stored = db.query(Question).filter_by(question_id=question.question_id).one()
        assert stored.is_active is False

    def test_other_teacher_cannot_delete(self, db, teacher, other_teacher, make_question):
        question = make_question(teacher)
        with pytest.raises(Forbidden):
            QuestionService(db).delete_question(question.question_id, other_teacher)

    def test_list_scoped_to_author(self, db, teacher, other_teacher, make_question):
        make_question(teacher, subject="Math")
        make_question(teacher, subject="Science")
        make_question(other_teacher, subject="Math")
        service = QuestionService(db)

        questions, total, pages = service.list_questions(author=teacher)
        assert total == 2
        assert pages == 1
        assert all(q.created_by == teacher.id for q in questions)

        _, total, _ = service.list_questions(subject="Math")
        assert total == 2


class TestQuizzes:
    def test_total_points_is_the_sum_of_referenced_questions(self, teacher, make_question, make_quiz):
        questions = [make_question(teacher, points=5), make_question(teacher, points=10)]
        quiz = make_quiz(teacher, questions)

        assert quiz.total_points == 15
        assert quiz.question_ids == [q.question_id for q in questions]
        assert quiz.author_user_id == teacher.user_id

    def test_unknown_and_repeated_question_ids_are_dropped(self, db, teacher, make_question, make_quiz):
        question = make_question(teacher, points=4)
        quiz = make_quiz(teacher, [question, question])

        assert quiz.question_ids == [question.question_id]
        assert quiz.total_points == 4

        updated = QuizService(db).update_quiz(
            quiz.quiz_id, QuizUpdate(questions=["missing", question.question_id]), teacher
        )
        assert updated.question_ids == [question.question_id]

    def test_replacing_questions_recomputes_total(self, db, teacher, make_question, make_quiz):
        first, second, third = (make_question(teacher, points=p) for p in (5, 10, 20))
        quiz = make_quiz(teacher, [first, second])

        updated = QuizService(db).update_quiz(
            quiz.quiz_id, QuizUpdate(questions=[third.question_id, first.question_id]), teacher
        )

        assert updated.question_ids == [third.question_id, first.question_id]
        assert updated.total_points == 25

    def test_total_points_is_a_snapshot(self, db, teacher, make_question, make_quiz):
        question = make_question(teacher, points=5)
        quiz = make_quiz(teacher, [question])

        QuestionService(db).update_question(question.question_id, QuestionUpdate(points=50), teacher)
        db.refresh(quiz)

        assert quiz.total_points == 5

    def test_update_without_questions_keeps_them(self, db, teacher, make_question, make_quiz):
        question = make_question(teacher)
        quiz = make_quiz(teacher, [question], time_limit=20)

        updated = QuizService(db).update_quiz(
            quiz.quiz_id, QuizUpdate(title="Renamed quiz", time_limit=None), teacher
        )

        assert updated.title == "Renamed quiz"
        assert updated.time_limit is None
        assert updated.question_ids == [question.question_id]

    def test_other_teacher_cannot_update(self, db, teacher, other_teacher, make_question, make_quiz):
        quiz = make_quiz(teacher, [make_question(teacher)])
        with pytest.raises(Forbidden):
            QuizService(db).update_quiz(quiz.quiz_id, QuizUpdate(title="Hijacked"), other_teacher)

    def test_admin_can_update(self, db, teacher, admin, make_question, make_quiz):
        quiz = make_quiz(teacher, [make_question(teacher)])
        updated = QuizService(db).update_quiz(quiz.quiz_id, QuizUpdate(status=QuizStatus.ARCHIVED), admin)
        assert updated.status == QuizStatus.ARCHIVED.value

    def test_quiz_without_attempts_is_removed(self, db, teacher, make_question, make_quiz):
        quiz = make_quiz(teacher, [make_question(teacher)])
        quiz_id = quiz.quiz_id

        assert QuizService(db).delete_quiz(quiz_id, teacher) is False
        assert db.query(Quiz).filter_by(quiz_id=quiz_id).first() is None

    def test_quiz_with_attempts_is_archived(self, db, teacher, student, make_question, make_quiz, clock):
        quiz = make_quiz(teacher, [make_question(teacher)], students=[student])
        AttemptService(db, clock=clock).start_attempt(quiz.quiz_id, student)
        service = QuizService(db)

        assert service.delete_quiz(quiz.quiz_id, teacher) is True

        db.expire_all()
        stored = db.query(Quiz).filter_by(quiz_id=quiz.quiz_id).one()
        assert stored.is_deleted is True
        assert stored.status == QuizStatus.ARCHIVED.value
        with pytest.raises(NotFound):
            service.get_quiz(quiz.quiz_id)

    def test_deleted_quizzes_are_hidden_from_lists(self, db, teacher, student, make_question, make_quiz, clock):
        kept = make_quiz(teacher, [make_question(teacher)], title="Kept quiz")
        archived = make_quiz(teacher, [make_question(teacher)], students=[student], title="Archived")
        AttemptService(db, clock=clock).start_attempt(archived.quiz_id, student)
        service = QuizService(db)
        service.delete_quiz(archived.quiz_id, teacher)

        quizzes, total, _ = service.list_quizzes(author=teacher)

        assert total == 1
        assert quizzes[0].quiz_id == kept.quiz_id
