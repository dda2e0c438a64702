# tutorworld/services/user.py
import csv
import io
import logging
import math
import secrets
import string
from typing import Any, Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorworld.core.clock import utcnow
from tutorworld.core.errors import Conflict, NotFound, ValidationFailed, db_exception
from tutorworld.core.hasher import PasswordHelper
from tutorworld.models.audit_log import AuditAction
from tutorworld.models.user import Role, User
from tutorworld.schemas.admin import CreateTeacherRequest
from tutorworld.services.audit_log import AuditLogService
from tutorworld.utils.email import NotificationKind

logger = logging.getLogger(__name__)

IMPORT_REQUIRED_COLUMNS = ("email", "firstName", "lastName", "password")


def generate_temporary_password(length: int = 12) -> str:
    """Random password that satisfies the strength rules"""
    alphabet = string.ascii_letters + string.digits
    body = "".join(secrets.choice(alphabet) for _ in range(length - 4))
    return (
        secrets.choice(string.ascii_uppercase)
        + secrets.choice(string.ascii_lowercase)
        + secrets.choice(string.digits)
        + secrets.choice("!@#$%^&*")
        + body
    )


class UserService:
    """Account administration: students, teachers and bulk import"""

    def __init__(self, db: Session, notifier=None, clock: Callable[[], Any] = utcnow):
        self.db = db
        self.notifier = notifier
        self.clock = clock
        self.audit = AuditLogService(db)

    def get_user(self, user_id: str, role: Optional[Role] = None) -> User:
        query = self.db.query(User).filter(User.user_id == user_id, User.is_deleted.is_(False))
        if role is not None:
            query = query.filter(User.role == role.value)
        user = query.first()
        if not user:
            label = role.value.capitalize() if role else "User"
            raise NotFound(f"{label} not found")
        return user

    def list_students(
        self,
        page: int = 1,
        size: int = 20,
        is_active: Optional[bool] = True,
        grade: Optional[str] = None,
    ):
        query = self.db.query(User).filter(
            User.role == Role.STUDENT.value, User.is_deleted.is_(False)
        )
        if is_active is not None:
            query = query.filter(User.is_active == is_active)
        if grade:
            query = query.filter(User.grade == grade)

        total = query.count()
        students = (
            query.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        total_pages = math.ceil(total / size) if total > 0 else 0
        return students, total, total_pages

    @db_exception
    def toggle_student_status(
        self, user_id: str, admin: User, is_active: Optional[bool] = None
    ) -> User:
        student = self.get_user(user_id, Role.STUDENT)
        previous = student.is_active
        student.is_active = (not previous) if is_active is None else is_active
        self.db.commit()
        self.db.refresh(student)

        logger.info(
            f"Student {student.user_id} {'activated' if student.is_active else 'deactivated'} "
            f"by {admin.user_id}"
        )
        self.audit.log(
            AuditAction.STATUS_CHANGE,
            "user",
            student.user_id,
            admin,
            target_label=student.email,
            changes={"is_active": {"from": previous, "to": student.is_active}},
        )
        return student

    @db_exception
    def soft_delete_user(self, user_id: str, admin: User) -> User:
        """Students and teachers are never removed, only flagged deleted and deactivated"""
        user = self.get_user(user_id)
        if user.role_enum is Role.ADMIN:
            raise ValidationFailed("Admin accounts cannot be deleted")

        user.is_deleted = True
        user.deleted_at = self.clock()
        user.is_active = False
        self.db.commit()

        logger.info(f"User {user.user_id} soft-deleted by {admin.user_id}")
        self.audit.log(AuditAction.DELETED, "user", user.user_id, admin, target_label=user.email)
        return user

    @db_exception
    def create_teacher(self, data: CreateTeacherRequest, admin: User):
        """Provision a verified teacher and send the invite. Returns (teacher, invitation_sent)."""
        if self.db.query(User.id).filter(User.email == data.email).first():
            raise Conflict("User with this email already exists")

        temporary_password = generate_temporary_password()
        teacher = User(
            email=data.email,
            hashed_password=PasswordHelper.hash_password(temporary_password),
            first_name=data.first_name,
            last_name=data.last_name,
            school=data.school,
            role=Role.TEACHER.value,
            is_active=True,
            is_email_verified=True,
        )
        self.db.add(teacher)
        self.db.commit()
        self.db.refresh(teacher)

        logger.info(f"Teacher {teacher.user_id} created by {admin.user_id}")
        self.audit.log(AuditAction.CREATED, "user", teacher.user_id, admin, target_label=teacher.email)

        sent = False
        if self.notifier is not None:
            try:
                sent = self.notifier.notify(
                    teacher.email,
                    NotificationKind.TEACHER_INVITE,
                    {
                        "first_name": teacher.first_name,
                        "email": teacher.email,
                        "temporary_password": temporary_password,
                    },
                )
            except Exception as e:
                logger.error(f"Failed to send teacher invite to {teacher.email}: {e}")
        return teacher, sent

    def import_students(self, content: bytes, admin: User) -> Dict[str, Any]:
        """
        Create verified students from CSV rows (email, firstName, lastName, grade, password).

        Row failures are reported, not raised. Row numbers count the header as row 1.
        """
        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError:
            raise ValidationFailed("CSV file must be UTF-8 encoded")

        reader = csv.DictReader(io.StringIO(text))
        report = {"total": 0, "created": 0, "failed": 0, "errors": []}
        seen = set()

        for index, row in enumerate(reader):
            row_number = index + 2
            report["total"] += 1
            values = {key.strip(): (value or "").strip() for key, value in row.items() if key}
            email = values.get("email", "").lower() or None

            def fail(message):
                report["failed"] += 1
                report["errors"].append({"row": row_number, "email": email, "error": message})

            if any(not values.get(column) for column in IMPORT_REQUIRED_COLUMNS):
                fail("Missing required fields")
                continue
            if email in seen or self.db.query(User.id).filter(User.email == email).first():
                fail("Student already exists")
                continue

            student = User(
                email=email,
                hashed_password=PasswordHelper.hash_password(values["password"]),
                first_name=values["firstName"],
                last_name=values["lastName"],
                grade=values.get("grade") or None,
                role=Role.STUDENT.value,
                is_active=True,
                is_email_verified=True,
            )
            try:
                self.db.add(student)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.warning(f"CSV import row {row_number} failed: {e}")
                fail("Could not create student")
                continue

            seen.add(email)
            report["created"] += 1

        logger.info(
            f"CSV import by {admin.user_id}: {report['created']} created, {report['failed']} failed"
        )
        if report["created"]:
            self.audit.log(
                AuditAction.CREATED,
                "user",
                "bulk_import",
                admin,
                target_label="CSV student import",
                metadata={"created": report["created"], "failed": report["failed"]},
            )
        return report
