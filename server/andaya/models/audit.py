"""Audit, email log and impersonation session models."""

import uuid

from andaya.models.base import Base, utcnow
from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, Uuid


class AuditLog(Base):
    """Append-only record of privileged or money-related actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Uuid, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50))
    entity_id = Column(String(64), index=True)
    # "metadata" is reserved on declarative classes
    meta = Column("metadata", JSON)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity='{self.entity_type}:{self.entity_id}')>"


class EmailLog(Base):
    """Outcome of a transactional email send."""

    __tablename__ = "email_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, index=True)
    type = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False)  # sent, failed
    meta = Column("metadata", JSON)
    sent_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ImpersonationSession(Base):
    """Time-boxed session an admin opened to act as another user."""

    __tablename__ = "impersonation_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    admin_id = Column(Uuid, nullable=False, index=True)
    user_id = Column(Uuid, nullable=False, index=True)
    reason = Column(Text, nullable=False)
    ip_address = Column(String(64))
    issued_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True))
