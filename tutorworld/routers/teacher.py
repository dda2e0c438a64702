from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from tutorworld.core.config import settings
from tutorworld.core.database import get_db
from tutorworld.core.dependencies import get_current_teacher, get_notifier
from tutorworld.core.permissions import ensure_owner
from tutorworld.models.question import QuestionDifficulty
from tutorworld.models.quiz import QuizStatus
from tutorworld.models.user import User
from tutorworld.schemas.admin import StudentListResponse, TeacherDashboardStats
from tutorworld.schemas.auth import UserResponse
from tutorworld.schemas.common import DeleteResponse
from tutorworld.schemas.question import (
    QuestionCreate,
    QuestionListResponse,
    QuestionResponse,
    QuestionUpdate,
)
from tutorworld.schemas.quiz import (
    AssignQuizRequest,
    AssignQuizResponse,
    QuizCreate,
    QuizListResponse,
    QuizResponse,
    QuizUpdate,
)
from tutorworld.schemas.quiz_attempt import QuizResultItem, QuizResultListResponse
from tutorworld.services.question import QuestionService
from tutorworld.services.quiz import QuizService
from tutorworld.services.quiz_attempt import result_item
from tutorworld.services.teacher import TeacherService

router = APIRouter(prefix="/teacher", tags=["teacher"])

TeacherUser = Annotated[User, Depends(get_current_teacher)]
PageParam = Annotated[int, Query(ge=1)]
SizeParam = Annotated[int, Query(ge=1, le=settings.max_page_size)]


@router.get("/dashboard", response_model=TeacherDashboardStats)
async def get_dashboard(teacher: TeacherUser, db: Session = Depends(get_db)):
    return TeacherService(db).get_dashboard_stats(teacher)


# ---------- Questions ----------


@router.get("/questions", response_model=QuestionListResponse)
async def list_my_questions(
    teacher: TeacherUser,
    db: Session = Depends(get_db),
    subject: Optional[str] = None,
    grade: Optional[str] = None,
    difficulty: Optional[QuestionDifficulty] = None,
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    questions, total, total_pages = QuestionService(db).list_questions(
        page=page,
        size=size,
        subject=subject,
        grade=grade,
        difficulty=difficulty,
        is_active=True,
        author=teacher,
    )
    return QuestionListResponse(
        questions=[QuestionResponse.model_validate(q) for q in questions],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )


@router.post("/questions", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(payload: QuestionCreate, teacher: TeacherUser, db: Session = Depends(get_db)):
    return QuestionService(db).create_question(payload, teacher)


@router.get("/questions/{question_id}", response_model=QuestionResponse)
async def get_question(question_id: str, teacher: TeacherUser, db: Session = Depends(get_db)):
    question = QuestionService(db).get_question(question_id)
    ensure_owner(teacher, question.created_by)
    return question


@router.put("/questions/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: str, payload: QuestionUpdate, teacher: TeacherUser, db: Session = Depends(get_db)
):
    return QuestionService(db).update_question(question_id, payload, teacher)


@router.delete("/questions/{question_id}", response_model=DeleteResponse)
async def delete_question(question_id: str, teacher: TeacherUser, db: Session = Depends(get_db)):
    soft_deleted = QuestionService(db).delete_question(question_id, teacher)
    message = (
        "Question is used in quizzes and has been deactivated"
        if soft_deleted
        else "Question deleted successfully"
    )
    return DeleteResponse(message=message, soft_deleted=soft_deleted, id=question_id)


# ---------- Quizzes ----------


@router.get("/quizzes", response_model=QuizListResponse)
async def list_my_quizzes(
    teacher: TeacherUser,
    db: Session = Depends(get_db),
    subject: Optional[str] = None,
    grade: Optional[str] = None,
    quiz_status: Annotated[Optional[QuizStatus], Query(alias="status")] = None,
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    quizzes, total, total_pages = QuizService(db).list_quizzes(
        page=page, size=size, subject=subject, grade=grade, status=quiz_status, author=teacher
    )
    return QuizListResponse(
        quizzes=[QuizResponse.model_validate(q) for q in quizzes],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )


@router.post("/quizzes", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz(payload: QuizCreate, teacher: TeacherUser, db: Session = Depends(get_db)):
    return QuizService(db).create_quiz(payload, teacher)


@router.get("/quizzes/{quiz_id}", response_model=QuizResponse)
async def get_quiz(quiz_id: str, teacher: TeacherUser, db: Session = Depends(get_db)):
    quiz = QuizService(db).get_quiz(quiz_id)
    ensure_owner(teacher, quiz.created_by)
    return quiz


@router.put("/quizzes/{quiz_id}", response_model=QuizResponse)
async def update_quiz(
    quiz_id: str, payload: QuizUpdate, teacher: TeacherUser, db: Session = Depends(get_db)
):
    return QuizService(db).update_quiz(quiz_id, payload, teacher)


@router.delete("/quizzes/{quiz_id}", response_model=DeleteResponse)
async def delete_quiz(quiz_id: str, teacher: TeacherUser, db: Session = Depends(get_db)):
    soft_deleted = QuizService(db).delete_quiz(quiz_id, teacher)
    message = (
        "Quiz has attempts and has been archived" if soft_deleted else "Quiz deleted successfully"
    )
    return DeleteResponse(message=message, soft_deleted=soft_deleted, id=quiz_id)


@router.post("/quizzes/{quiz_id}/assign", response_model=AssignQuizResponse)
async def assign_quiz(
    quiz_id: str,
    payload: AssignQuizRequest,
    teacher: TeacherUser,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    count = QuizService(db).assign_quiz(quiz_id, payload.student_ids, teacher, notifier)
    return AssignQuizResponse(message=f"Quiz assigned to {count} student(s)", assigned_count=count)


@router.get("/quizzes/{quiz_id}/results", response_model=List[QuizResultItem])
async def get_quiz_results(quiz_id: str, teacher: TeacherUser, db: Session = Depends(get_db)):
    attempts = QuizService(db).get_quiz_results(quiz_id, teacher)
    return [result_item(attempt) for attempt in attempts]


# ---------- Students & results ----------


@router.get("/students", response_model=StudentListResponse)
async def list_my_students(
    teacher: TeacherUser,
    db: Session = Depends(get_db),
    is_active: Optional[bool] = None,
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    students, total, total_pages = TeacherService(db).list_students(
        teacher, page=page, size=size, is_active=is_active
    )
    return StudentListResponse(
        students=[UserResponse.model_validate(s) for s in students],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )


@router.get("/results", response_model=QuizResultListResponse)
async def list_my_results(
    teacher: TeacherUser,
    db: Session = Depends(get_db),
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    results, total, total_pages = TeacherService(db).list_results(teacher, page=page, size=size)
    return QuizResultListResponse(
        results=[result_item(attempt) for attempt in results],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )
