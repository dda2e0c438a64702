from typing import Annotated, List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from tutorworld.core.clock import utcnow
from tutorworld.core.database import get_db
from tutorworld.core.dependencies import get_current_student
from tutorworld.models.user import User
from tutorworld.schemas.quiz import QuizResponse
from tutorworld.schemas.quiz_attempt import (
    AttemptResponse,
    AttemptResultResponse,
    AttemptSummary,
    StartQuizResponse,
    StudentAttemptItem,
    StudentQuizResponse,
    SubmitQuizRequest,
)
from tutorworld.services.quiz_attempt import AttemptService, start_response

router = APIRouter(prefix="/quizzes", tags=["quizzes"])

StudentUser = Annotated[User, Depends(get_current_student)]


def get_attempt_service(request: Request, db: Session = Depends(get_db)) -> AttemptService:
    """Attempt service with the app-level clock and random source, if any"""
    return AttemptService(
        db,
        clock=getattr(request.app.state, "clock", utcnow),
        rng=getattr(request.app.state, "rng", None),
    )


@router.get("/my-quizzes", response_model=List[StudentQuizResponse])
async def get_my_quizzes(
    student: StudentUser, service: AttemptService = Depends(get_attempt_service)
):
    """Active quizzes assigned to the current student"""
    items = []
    for entry in service.get_student_quizzes(student):
        last = entry["last_attempt"]
        items.append(
            StudentQuizResponse(
                quiz=QuizResponse.model_validate(entry["quiz"]),
                attempt_count=entry["attempt_count"],
                last_attempt=AttemptSummary(
                    attempt_id=last.attempt_id,
                    score=last.score,
                    percentage=last.percentage,
                    is_passed=last.is_passed,
                    completed_at=last.completed_at,
                )
                if last
                else None,
            )
        )
    return items


@router.get("/my-attempts", response_model=List[StudentAttemptItem])
async def get_my_attempts(
    student: StudentUser, service: AttemptService = Depends(get_attempt_service)
):
    return [
        StudentAttemptItem(
            attempt=AttemptResponse.model_validate(attempt),
            quiz_title=attempt.quiz.title if attempt.quiz else None,
            subject=attempt.quiz.subject if attempt.quiz else None,
        )
        for attempt in service.get_student_attempts(student)
    ]


@router.post("/{quiz_id}/start", response_model=StartQuizResponse)
async def start_quiz(
    quiz_id: str, student: StudentUser, service: AttemptService = Depends(get_attempt_service)
):
    """Start a quiz, or resume the open attempt. Answer keys are never included."""
    attempt, quiz, questions = service.start_attempt(quiz_id, student)
    return start_response(attempt, quiz, questions)


@router.post("/attempts/{attempt_id}/submit", response_model=AttemptResultResponse)
async def submit_quiz(
    attempt_id: str,
    payload: SubmitQuizRequest,
    student: StudentUser,
    service: AttemptService = Depends(get_attempt_service),
):
    answers = [answer.model_dump() for answer in payload.answers]
    attempt = service.submit_attempt(attempt_id, student, answers)
    return service.result_response(attempt)


@router.get("/attempts/{attempt_id}/result", response_model=AttemptResultResponse)
async def get_result(
    attempt_id: str, student: StudentUser, service: AttemptService = Depends(get_attempt_service)
):
    attempt = service.get_result(attempt_id, student)
    return service.result_response(attempt)
