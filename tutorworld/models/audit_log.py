import uuid
from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from tutorworld.core.clock import utcnow
from tutorworld.core.database import Base, JSONType


class AuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"
    LOGIN = "LOGIN"
    STATUS_CHANGE = "STATUS_CHANGE"
    ASSIGNED = "ASSIGNED"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    log_id = Column(
        String(36), unique=True, index=True, nullable=False, default=lambda: str(uuid.uuid4())
    )

    action = Column(String(20), nullable=False, index=True)
    target_type = Column(String(50), nullable=False, index=True)
    target_id = Column(String(64), nullable=False)
    target_label = Column(String(255), nullable=True)
    changed_by = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    changes = Column(JSONType, nullable=False, default=list)
    ip_address = Column(String(64), nullable=True)
    extra = Column("metadata", JSONType, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)

    @property
    def actor_user_id(self):
        return self.actor.user_id if self.actor else None

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', target='{self.target_type}:{self.target_id}')>"
