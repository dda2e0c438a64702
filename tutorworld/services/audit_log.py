# tutorworld/services/audit_log.py
import logging
import math
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tutorworld.models.audit_log import AuditAction, AuditLog
from tutorworld.models.user import User

logger = logging.getLogger(__name__)


class AuditLogService:
    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        action: AuditAction,
        target_type: str,
        target_id: str,
        actor: User,
        target_label: Optional[str] = None,
        changes: Any = None,
        ip_address: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> Optional[AuditLog]:
        """
        Append an audit entry after the audited change has been committed.
        Failures are logged and discarded, never raised.
        """
        entry = AuditLog(
            action=action.value,
            target_type=target_type,
            target_id=str(target_id),
            target_label=target_label,
            changed_by=actor.id,
            changes=changes if changes is not None else [],
            ip_address=ip_address,
            extra=metadata,
        )
        try:
            self.db.add(entry)
            self.db.commit()
            return entry
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(f"Failed to write audit log {action.value} {target_type}:{target_id}: {e}")
            return None

    def list_logs(
        self,
        page: int = 1,
        size: int = 20,
        action: Optional[AuditAction] = None,
        target_type: Optional[str] = None,
        changed_by: Optional[str] = None,
    ):
        query = self.db.query(AuditLog)

        if action:
            query = query.filter(AuditLog.action == action.value)
        if target_type:
            query = query.filter(AuditLog.target_type == target_type)
        if changed_by:
            query = query.join(User, AuditLog.changed_by == User.id).filter(User.user_id == changed_by)

        total = query.count()
        logs = (
            query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset((page - 1) * size)
            .limit(size)
            .all()
        )
        total_pages = math.ceil(total / size) if total > 0 else 0
        return logs, total, total_pages
