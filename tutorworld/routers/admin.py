from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from tutorworld.core.config import settings
from tutorworld.core.database import get_db
from tutorworld.core.dependencies import get_current_admin, get_notifier
from tutorworld.core.errors import ValidationFailed
from tutorworld.models.audit_log import AuditAction
from tutorworld.models.question import QuestionDifficulty, QuestionType
from tutorworld.models.quiz import QuizStatus
from tutorworld.models.user import User
from tutorworld.schemas.admin import (
    AuditLogListResponse,
    AuditLogResponse,
    CreateTeacherRequest,
    CreateTeacherResponse,
    ImportReport,
    StudentListResponse,
    ToggleStatusRequest,
    ToggleStatusResponse,
)
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
from tutorworld.schemas.quiz_attempt import QuizResultItem
from tutorworld.services.audit_log import AuditLogService
from tutorworld.services.question import QuestionService
from tutorworld.services.quiz import QuizService
from tutorworld.services.quiz_attempt import result_item
from tutorworld.services.user import UserService

router = APIRouter(prefix="/admin", tags=["admin"])

AdminUser = Annotated[User, Depends(get_current_admin)]
PageParam = Annotated[int, Query(ge=1)]
SizeParam = Annotated[int, Query(ge=1, le=settings.max_page_size)]


# ---------- Questions ----------


@router.post("/questions", response_model=QuestionResponse, status_code=status.HTTP_201_CREATED)
async def create_question(payload: QuestionCreate, admin: AdminUser, db: Session = Depends(get_db)):
    return QuestionService(db).create_question(payload, admin)


@router.get("/questions", response_model=QuestionListResponse)
async def list_questions(
    admin: AdminUser,
    db: Session = Depends(get_db),
    subject: Optional[str] = None,
    grade: Optional[str] = None,
    difficulty: Optional[QuestionDifficulty] = None,
    question_type: Optional[QuestionType] = None,
    is_active: Optional[bool] = None,
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    questions, total, total_pages = QuestionService(db).list_questions(
        page=page,
        size=size,
        subject=subject,
        grade=grade,
        difficulty=difficulty,
        question_type=question_type,
        is_active=is_active,
    )
    return QuestionListResponse(
        questions=[QuestionResponse.model_validate(q) for q in questions],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )


@router.get("/questions/{question_id}", response_model=QuestionResponse)
async def get_question(question_id: str, admin: AdminUser, db: Session = Depends(get_db)):
    return QuestionService(db).get_question(question_id)


@router.put("/questions/{question_id}", response_model=QuestionResponse)
async def update_question(
    question_id: str, payload: QuestionUpdate, admin: AdminUser, db: Session = Depends(get_db)
):
    return QuestionService(db).update_question(question_id, payload, admin)


@router.delete("/questions/{question_id}", response_model=DeleteResponse)
async def delete_question(question_id: str, admin: AdminUser, db: Session = Depends(get_db)):
    soft_deleted = QuestionService(db).delete_question(question_id, admin)
    message = (
        "Question is used in quizzes and has been deactivated"
        if soft_deleted
        else "Question deleted successfully"
    )
    return DeleteResponse(message=message, soft_deleted=soft_deleted, id=question_id)


# ---------- Quizzes ----------


@router.post("/quizzes", response_model=QuizResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz(payload: QuizCreate, admin: AdminUser, db: Session = Depends(get_db)):
    return QuizService(db).create_quiz(payload, admin)


@router.get("/quizzes", response_model=QuizListResponse)
async def list_quizzes(
    admin: AdminUser,
    db: Session = Depends(get_db),
    subject: Optional[str] = None,
    grade: Optional[str] = None,
    quiz_status: Annotated[Optional[QuizStatus], Query(alias="status")] = None,
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    quizzes, total, total_pages = QuizService(db).list_quizzes(
        page=page, size=size, subject=subject, grade=grade, status=quiz_status
    )
    return QuizListResponse(
        quizzes=[QuizResponse.model_validate(q) for q in quizzes],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )


@router.get("/quizzes/{quiz_id}", response_model=QuizResponse)
async def get_quiz(quiz_id: str, admin: AdminUser, db: Session = Depends(get_db)):
    return QuizService(db).get_quiz(quiz_id)


@router.put("/quizzes/{quiz_id}", response_model=QuizResponse)
async def update_quiz(quiz_id: str, payload: QuizUpdate, admin: AdminUser, db: Session = Depends(get_db)):
    return QuizService(db).update_quiz(quiz_id, payload, admin)


@router.delete("/quizzes/{quiz_id}", response_model=DeleteResponse)
async def delete_quiz(quiz_id: str, admin: AdminUser, db: Session = Depends(get_db)):
    soft_deleted = QuizService(db).delete_quiz(quiz_id, admin)
    message = (
        "Quiz has attempts and has been archived" if soft_deleted else "Quiz deleted successfully"
    )
    return DeleteResponse(message=message, soft_deleted=soft_deleted, id=quiz_id)


@router.post("/quizzes/{quiz_id}/assign", response_model=AssignQuizResponse)
async def assign_quiz(
    quiz_id: str,
    payload: AssignQuizRequest,
    admin: AdminUser,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    count = QuizService(db).assign_quiz(quiz_id, payload.student_ids, admin, notifier)
    return AssignQuizResponse(message=f"Quiz assigned to {count} student(s)", assigned_count=count)


@router.get("/quizzes/{quiz_id}/results", response_model=List[QuizResultItem])
async def get_quiz_results(quiz_id: str, admin: AdminUser, db: Session = Depends(get_db)):
    attempts = QuizService(db).get_quiz_results(quiz_id, admin)
    return [result_item(attempt) for attempt in attempts]


# ---------- Accounts ----------


@router.post("/teachers", response_model=CreateTeacherResponse, status_code=status.HTTP_201_CREATED)
async def create_teacher(
    payload: CreateTeacherRequest,
    admin: AdminUser,
    db: Session = Depends(get_db),
    notifier=Depends(get_notifier),
):
    teacher, sent = UserService(db, notifier).create_teacher(payload, admin)
    return CreateTeacherResponse(
        user=UserResponse.model_validate(teacher),
        message="Teacher account created successfully",
        invitation_sent=sent,
    )


@router.get("/students", response_model=StudentListResponse)
async def list_students(
    admin: AdminUser,
    db: Session = Depends(get_db),
    is_active: Optional[bool] = True,
    grade: Optional[str] = None,
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    students, total, total_pages = UserService(db).list_students(
        page=page, size=size, is_active=is_active, grade=grade
    )
    return StudentListResponse(
        students=[UserResponse.model_validate(s) for s in students],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )


@router.patch("/students/{user_id}/status", response_model=ToggleStatusResponse)
async def toggle_student_status(
    user_id: str,
    admin: AdminUser,
    payload: Optional[ToggleStatusRequest] = None,
    db: Session = Depends(get_db),
):
    student = UserService(db).toggle_student_status(
        user_id, admin, is_active=payload.is_active if payload else None
    )
    state = "activated" if student.is_active else "deactivated"
    return ToggleStatusResponse(
        message=f"Student account {state} successfully",
        user_id=student.user_id,
        is_active=student.is_active,
    )


@router.delete("/users/{user_id}", response_model=DeleteResponse)
async def delete_user(user_id: str, admin: AdminUser, db: Session = Depends(get_db)):
    UserService(db).soft_delete_user(user_id, admin)
    return DeleteResponse(message="User deleted successfully", soft_deleted=True, id=user_id)


@router.post("/students/import", response_model=ImportReport)
async def import_students(
    admin: AdminUser,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Bulk-create students from a CSV file (email, firstName, lastName, grade, password)"""
    if file.filename and not file.filename.lower().endswith(".csv"):
        raise ValidationFailed("Only CSV files are allowed")
    content = await file.read()
    return UserService(db).import_students(content, admin)


# ---------- Audit ----------


@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    admin: AdminUser,
    db: Session = Depends(get_db),
    action: Optional[AuditAction] = None,
    target_type: Optional[str] = None,
    changed_by: Optional[str] = None,
    page: PageParam = 1,
    size: SizeParam = settings.default_page_size,
):
    logs, total, total_pages = AuditLogService(db).list_logs(
        page=page, size=size, action=action, target_type=target_type, changed_by=changed_by
    )
    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        page=page,
        size=size,
        total_pages=total_pages,
    )
