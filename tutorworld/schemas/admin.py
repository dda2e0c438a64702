# tutorworld/schemas/admin.py
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from tutorworld.schemas.auth import UserResponse


class StudentListResponse(BaseModel):
    students: List[UserResponse]
    total: int
    page: int
    size: int
    total_pages: int


class ToggleStatusRequest(BaseModel):
    is_active: Optional[bool] = Field(None, description="Target state, flips the current one when empty")


class ToggleStatusResponse(BaseModel):
    message: str
    user_id: str
    is_active: bool


class CreateTeacherRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    school: Optional[str] = Field(None, max_length=255)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.lower()


class CreateTeacherResponse(BaseModel):
    user: UserResponse
    message: str
    invitation_sent: bool


class ImportRowError(BaseModel):
    row: int
    email: Optional[str] = None
    error: str


class ImportReport(BaseModel):
    total: int
    created: int
    failed: int
    errors: List[ImportRowError]


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    log_id: str
    action: str
    target_type: str
    target_id: Optional[str] = None
    target_label: Optional[str] = None
    changed_by: Optional[str] = Field(None, validation_alias="actor_user_id")
    changes: Optional[Any] = None
    ip_address: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="extra")
    created_at: datetime


class AuditLogListResponse(BaseModel):
    logs: List[AuditLogResponse]
    total: int
    page: int
    size: int
    total_pages: int


class TeacherDashboardStats(BaseModel):
    questions_created: int
    quizzes_created: int
    active_students: int
    total_submissions: int
    average_score: float
