from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tutorworld.core.clock import to_naive_utc
from tutorworld.core.database import get_db
from tutorworld.core.dependencies import get_current_student
from tutorworld.models.user import User
from tutorworld.schemas.progress import DetailedStatistics, ProgressChart, ProgressOverview
from tutorworld.services.progress import ProgressService

router = APIRouter(prefix="/progress", tags=["progress"])

StudentUser = Annotated[User, Depends(get_current_student)]


@router.get("/overview", response_model=ProgressOverview)
async def get_overview(student: StudentUser, db: Session = Depends(get_db)):
    return ProgressService(db).get_overview(student)


@router.get("/statistics", response_model=DetailedStatistics)
async def get_statistics(student: StudentUser, db: Session = Depends(get_db)):
    return ProgressService(db).get_detailed_statistics(student)


@router.get("/chart", response_model=ProgressChart)
async def get_chart(
    student: StudentUser,
    db: Session = Depends(get_db),
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    subject: Optional[str] = None,
):
    return ProgressService(db).get_chart(
        student,
        start_date=to_naive_utc(start_date),
        end_date=to_naive_utc(end_date),
        subject=subject,
    )
