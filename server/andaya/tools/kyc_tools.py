"""KYC (identity verification) submission and review."""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from andaya.errors import BadRequestError, ConflictError, NotFoundError
from andaya.models import KYCVerification, Profile, UserRole
from andaya.models.kyc import KYCStatus
from andaya.models.profile import ADMIN_ROLES
from andaya.tools.common import parse_uuid, record_audit
from andaya.tools.serializers import kyc_to_dict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def submit_kyc(db: AsyncSession, user_id: uuid.UUID, documents: Dict[str, Any]) -> Dict[str, Any]:
    """
    Submit (or resubmit after a rejection) identity documents.

    The verification goes back to ``pending`` and admins are notified.
    """
    kyc = await db.scalar(select(KYCVerification).where(KYCVerification.user_id == user_id))

    if kyc and kyc.status == KYCStatus.VERIFIED:
        raise ConflictError("Tu identidad ya fue verificada")

    if kyc is None:
        kyc = KYCVerification(user_id=user_id)
        db.add(kyc)

    for key, value in documents.items():
        setattr(kyc, key, value)
    kyc.status = KYCStatus.PENDING
    kyc.rejection_reason = None
    kyc.reviewed_by = None
    kyc.reviewed_at = None

    await db.commit()
    await db.refresh(kyc)
    logger.info(f"KYC submitted by {user_id}")

    notification = await notify_kyc_submission(db, user_id)

    result = kyc_to_dict(kyc)
    result["admins_notified"] = notification["admin_count"]
    return result


async def get_my_kyc(db: AsyncSession, user_id: uuid.UUID) -> Dict[str, Any]:
    kyc = await db.scalar(select(KYCVerification).where(KYCVerification.user_id == user_id))
    if not kyc:
        return {"status": None, "rejection_reason": None}
    return kyc_to_dict(kyc)


async def notify_kyc_submission(db: AsyncSession, user_id: Any) -> Dict[str, Any]:
    """
    Notify admins that a user submitted KYC documents.

    Admins are reached through the audit log (``kyc_submitted``); nothing is
    logged when there are no admins.
    """
    user_uuid = parse_uuid(user_id, "user_id")

    profile = await db.get(Profile, user_uuid)
    result = await db.execute(
        select(UserRole.user_id).where(UserRole.role.in_(ADMIN_ROLES)).distinct()
    )
    admin_ids = [row[0] for row in result.all()]

    if admin_ids:
        user_name = profile.full_name if profile else None
        logger.info(
            f"New KYC submission from user {user_uuid} ({user_name or 'Unknown'}); "
            f"admins to notify: {len(admin_ids)}"
        )
        record_audit(
            db,
            "kyc_submitted",
            actor_id=user_uuid,
            entity_type="kyc_verification",
            entity_id=user_uuid,
            meta={"user_name": user_name, "notification_sent_to_admins": len(admin_ids)},
        )
        await db.commit()

    return {"success": True, "message": "Admins notified", "admin_count": len(admin_ids)}


async def update_kyc_status(
    db: AsyncSession,
    admin_id: uuid.UUID,
    user_id: Any,
    status: Optional[str],
    rejection_reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Admin verifies or rejects a submission. Rejections require a reason."""
    if not user_id or not status:
        raise BadRequestError("Parámetros inválidos")
    try:
        new_status = KYCStatus(status)
    except ValueError as e:
        raise BadRequestError("Parámetros inválidos") from e
    if new_status == KYCStatus.REJECTED and not rejection_reason:
        raise BadRequestError("Se requiere motivo de rechazo")

    user_uuid = parse_uuid(user_id, "user_id")
    kyc = await db.scalar(select(KYCVerification).where(KYCVerification.user_id == user_uuid))
    if not kyc:
        raise NotFoundError("Verificación KYC no encontrada")

    kyc.status = new_status
    kyc.reviewed_by = admin_id
    kyc.reviewed_at = datetime.now(timezone.utc)
    if new_status == KYCStatus.REJECTED:
        kyc.rejection_reason = rejection_reason

    record_audit(
        db,
        "update_kyc_status",
        actor_id=admin_id,
        entity_type="kyc",
        entity_id=user_uuid,
        meta={"status": new_status.value, "rejection_reason": rejection_reason},
    )
    await db.commit()
    await db.refresh(kyc)

    logger.info(f"KYC for user {user_uuid} set to {new_status.value} by {admin_id}")
    return {"success": True, "kyc": kyc_to_dict(kyc)}
