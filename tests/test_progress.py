import pytest

from tutorworld.models.question import QuestionType
from tutorworld.services.progress import ProgressService
from tutorworld.services.quiz_attempt import AttemptService


@pytest.fixture
def take_quiz(db, student, clock):
    """Start and submit a quiz, one hour after the previous submission"""
    service = AttemptService(db, clock=clock)

    def _take_quiz(quiz, correct):
        attempt, _, questions = service.start_attempt(quiz.quiz_id, student)
        answers = [
            {"question_id": q.question_id, "selected_answer": q.correct_option_text}
            for q in questions[:correct]
        ]
        clock.advance(minutes=10)
        submitted = service.submit_attempt(attempt.attempt_id, student, answers)
        clock.advance(minutes=50)
        return submitted

    return _take_quiz


@pytest.fixture
def math_quiz(teacher, student, make_question, make_quiz):
    # four 1-point questions: 0-4 correct gives 0/25/50/75/100 percent
    return make_quiz(
        teacher, [make_question(teacher, points=1) for _ in range(4)], students=[student], title="Math"
    )


@pytest.fixture
def science_quiz(teacher, student, make_question, make_quiz):
    return make_quiz(
        teacher,
        [make_question(teacher, points=2, subject="Science") for _ in range(2)],
        students=[student],
        title="Science",
        subject="Science",
    )


def test_overview_without_attempts(db, student):
    overview = ProgressService(db).get_overview(student)

    assert overview == {
        "total_quizzes": 0,
        "passed_quizzes": 0,
        "failed_quizzes": 0,
        "average_score": 0.0,
        "average_percentage": 0.0,
        "pass_rate": 0.0,
        "subjects": [],
    }


def test_overview(db, student, math_quiz, science_quiz, take_quiz):
    take_quiz(math_quiz, 4)
    take_quiz(math_quiz, 1)
    take_quiz(science_quiz, 2)

    overview = ProgressService(db).get_overview(student)

    assert overview["total_quizzes"] == 3
    assert overview["passed_quizzes"] == 2
    assert overview["failed_quizzes"] == 1
    assert overview["average_percentage"] == 75.0
    assert overview["pass_rate"] == 66.67

    subjects = {entry["subject"]: entry for entry in overview["subjects"]}
    assert subjects["Math"]["attempts"] == 2
    assert subjects["Math"]["average_percentage"] == 62.5
    assert subjects["Math"]["pass_rate"] == 50.0
    assert subjects["Science"]["average_score"] == 4.0


def test_open_attempts_are_ignored(db, student, math_quiz):
    AttemptService(db).start_attempt(math_quiz.quiz_id, student)
    assert ProgressService(db).get_overview(student)["total_quizzes"] == 0


def test_difficulty_buckets_follow_performance(db, student, math_quiz, take_quiz):
    for correct in (4, 3, 2, 1):
        take_quiz(math_quiz, correct)

    stats = ProgressService(db).get_detailed_statistics(student)["difficulty_stats"]

    assert stats["easy"] == {"total": 1, "passed": 1, "average_percentage": 100.0, "pass_rate": 100.0}
    assert stats["medium"]["total"] == 1
    assert stats["medium"]["average_percentage"] == 75.0
    assert stats["hard"]["total"] == 2
    assert stats["hard"]["passed"] == 0
    assert stats["hard"]["pass_rate"] == 0.0


def test_recent_attempts_newest_first_and_capped(db, student, math_quiz, take_quiz):
    submitted = [take_quiz(math_quiz, 2) for _ in range(12)]

    recent = ProgressService(db).get_detailed_statistics(student)["recent_attempts"]

    assert len(recent) == 10
    assert recent[0]["attempt_id"] == submitted[-1].attempt_id
    assert recent[0]["quiz_title"] == "Math"
    assert recent[0]["percentage"] == 50.0


def test_chart_oldest_first_with_trend(db, student, math_quiz, take_quiz):
    for correct in (1, 1, 1, 1, 1, 4, 4, 4, 4, 4):
        take_quiz(math_quiz, correct)

    chart = ProgressService(db).get_chart(student)

    assert [point["percentage"] for point in chart["chart_data"]] == [25.0] * 5 + [100.0] * 5
    assert chart["trend"] == "improving"
    assert chart["summary"] == {"total_attempts": 10, "average_percentage": 62.5}


def test_chart_filters(db, student, clock, math_quiz, science_quiz, take_quiz):
    take_quiz(math_quiz, 4)
    cutoff = clock.now
    take_quiz(science_quiz, 1)
    take_quiz(math_quiz, 0)

    progress = ProgressService(db)

    by_subject = progress.get_chart(student, subject="Science")
    assert [p["subject"] for p in by_subject["chart_data"]] == ["Science"]

    since = progress.get_chart(student, start_date=cutoff)
    assert [p["quiz_title"] for p in since["chart_data"]] == ["Science", "Math"]

    until = progress.get_chart(student, end_date=cutoff)
    assert len(until["chart_data"]) == 1
    assert until["trend"] == "stable"


def test_other_students_are_not_counted(db, make_user, math_quiz, take_quiz):
    take_quiz(math_quiz, 4)
    assert ProgressService(db).get_overview(make_user())["total_quizzes"] == 0


def test_short_answer_progress(db, teacher, student, make_question, make_quiz, clock):
    quiz = make_quiz(
        teacher,
        [make_question(teacher, points=3, question_type=QuestionType.SHORT_ANSWER, correct_answer="Nile")],
        students=[student],
        subject="Geography",
    )
    service = AttemptService(db, clock=clock)
    attempt, _, questions = service.start_attempt(quiz.quiz_id, student)
    service.submit_attempt(
        attempt.attempt_id, student, [{"question_id": questions[0].question_id, "selected_answer": "nile"}]
    )

    overview = ProgressService(db).get_overview(student)
    assert overview["subjects"][0]["subject"] == "Geography"
    assert overview["average_score"] == 3.0
