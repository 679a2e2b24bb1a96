"""Input parsing and audit helpers shared by the business operations."""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from andaya.errors import BadRequestError
from andaya.models import AuditLog, EmailLog
from andaya.utils.dates import parse_iso_datetime
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def parse_uuid(value: Any, field: str) -> uuid.UUID:
    """Parse an id from a request body; 400 when missing or malformed."""
    if isinstance(value, uuid.UUID):
        return value
    if not value:
        raise BadRequestError(f"{field} es requerido")
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise BadRequestError(f"{field} inválido") from e


def parse_timestamp(value: Any, field: str) -> datetime:
    """Parse an ISO-8601 timestamp from a request body into aware UTC."""
    if not value:
        raise BadRequestError(f"{field} es requerido")
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError) as e:
        raise BadRequestError(f"{field} no es una fecha válida") from e


def record_audit(
    db: AsyncSession,
    action: str,
    actor_id: Optional[uuid.UUID] = None,
    entity_type: Optional[str] = None,
    entity_id: Any = None,
    meta: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Stage an audit log row. Committed together with the caller's changes."""
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=meta or {},
    )
    db.add(entry)
    logger.info(f"Audit: {action} by {actor_id} on {entity_type}:{entity_id}")
    return entry


def record_email(
    db: AsyncSession,
    email_type: str,
    sent: bool,
    user_id: Optional[uuid.UUID] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> EmailLog:
    """Stage an email log row for a send attempt."""
    entry = EmailLog(
        user_id=user_id,
        type=email_type,
        status="sent" if sent else "failed",
        meta=meta or {},
    )
    db.add(entry)
    return entry
