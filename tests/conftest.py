import os

# Must be set before tutorworld.core.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["MAIL_ENABLED"] = "false"
os.environ["REDIS_ENABLED"] = "false"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"

import random
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from tutorworld.core.database import Database
from tutorworld.core.hasher import PasswordHelper
from tutorworld.core.security import jwt_manager, token_blacklist
from tutorworld.models.question import QuestionDifficulty, QuestionType
from tutorworld.models.quiz import QuizStatus
from tutorworld.models.user import Role, User
from tutorworld.schemas.question import OptionSchema, QuestionCreate
from tutorworld.schemas.quiz import QuizCreate
from tutorworld.services.question import QuestionService
from tutorworld.services.quiz import QuizService

PASSWORD = "Passw0rd!"


class FakeNotifier:
    """Records notifications instead of sending them"""

    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def notify(self, recipient, kind, data):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((recipient, kind, data))
        return True

    def kinds(self):
        return [kind for _, kind, _ in self.sent]


class FakeClock:
    def __init__(self, now=None):
        self.now = now or datetime(2026, 3, 2, 9, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def clear_blacklist():
    token_blacklist.clear()
    yield
    token_blacklist.clear()


@pytest.fixture
def database():
    database = Database("sqlite://").connect()
    database.create_all()
    yield database
    database.close()


@pytest.fixture
def db(database):
    session = database.session()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def failing_notifier():
    return FakeNotifier(fail=True)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(role=Role.STUDENT, email=None, is_active=True, is_email_verified=True, **kwargs):
        counter["n"] += 1
        user = User(
            email=email or f"{role.value}{counter['n']}@example.com",
            hashed_password=PasswordHelper.hash_password(kwargs.pop("password", PASSWORD)),
            first_name=kwargs.pop("first_name", role.value.capitalize()),
            last_name=kwargs.pop("last_name", f"Number{counter['n']}"),
            role=role.value,
            is_active=is_active,
            is_email_verified=is_email_verified,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user(Role.ADMIN, email="root@example.com")


@pytest.fixture
def teacher(make_user):
    return make_user(Role.TEACHER, email="teacher@example.com")


@pytest.fixture
def other_teacher(make_user):
    return make_user(Role.TEACHER, email="other.teacher@example.com")


@pytest.fixture
def student(make_user):
    return make_user(Role.STUDENT, email="student@example.com")


@pytest.fixture
def make_question(db):
    def _make_question(author, points=5, question_type=QuestionType.MULTIPLE_CHOICE, **kwargs):
        if question_type is QuestionType.SHORT_ANSWER:
            answer_key = {"options": [], "correct_answer": kwargs.pop("correct_answer", "Paris")}
        elif question_type is QuestionType.TRUE_FALSE:
            answer_key = {
                "options": [
                    OptionSchema(text="True", is_correct=True),
                    OptionSchema(text="False", is_correct=False),
                ]
            }
        else:
            answer_key = {
                "options": kwargs.pop(
                    "options",
                    [
                        OptionSchema(text="3", is_correct=False),
                        OptionSchema(text="4", is_correct=True),
                        OptionSchema(text="5", is_correct=False),
                    ],
                )
            }
        data = QuestionCreate(
            title=kwargs.pop("title", "What is two plus two?"),
            question_type=question_type,
            difficulty=kwargs.pop("difficulty", QuestionDifficulty.EASY),
            subject=kwargs.pop("subject", "Math"),
            grade=kwargs.pop("grade", "5"),
            points=points,
            explanation=kwargs.pop("explanation", "Basic arithmetic"),
            **answer_key,
            **kwargs,
        )
        return QuestionService(db).create_question(data, author)

    return _make_question


@pytest.fixture
def make_quiz(db):
    def _make_quiz(author, questions, students=(), **kwargs):
        data = QuizCreate(
            title=kwargs.pop("title", "Weekly quiz"),
            subject=kwargs.pop("subject", "Math"),
            grade=kwargs.pop("grade", "5"),
            status=kwargs.pop("status", QuizStatus.ACTIVE),
            questions=[question.question_id for question in questions],
            **kwargs,
        )
        service = QuizService(db)
        quiz = service.create_quiz(data, author)
        if students:
            service.assign_quiz(quiz.quiz_id, [s.user_id for s in students], author)
            db.refresh(quiz)
        return quiz

    return _make_quiz


def auth_headers(user):
    return {"Authorization": f"Bearer {jwt_manager.create_access_token(user)}"}


@pytest.fixture
def headers():
    return auth_headers


@pytest.fixture
def client(database, notifier, clock, rng):
    from main import create_app

    app = create_app()
    app.state.database = database
    app.state.notifier = notifier
    app.state.clock = clock
    app.state.rng = rng
    with TestClient(app) as test_client:
        yield test_client
