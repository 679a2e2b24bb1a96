"""Back-office user management: roles, profiles, password resets, impersonation."""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from andaya.config import settings
from andaya.errors import BadRequestError, NotFoundError, UpstreamError
from andaya.models import AdminNote, AuditLog, ImpersonationSession, KYCVerification, Profile, UserRole
from andaya.models.profile import AppRole
from andaya.schemas import ProfilePatch
from andaya.services.auth_client import SupabaseAuthClient
from andaya.tools.common import parse_uuid, record_audit
from andaya.tools.serializers import audit_to_dict, enum_value, iso, note_to_dict, profile_to_dict
from andaya.utils.dates import as_utc
from pydantic import ValidationError
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Columns an admin may edit on a profile
EDITABLE_PROFILE_FIELDS = set(ProfilePatch.model_fields)

MAX_AUDIT_PAGE = 500


async def get_user_roles(db: AsyncSession, user_id: uuid.UUID) -> List[str]:
    result = await db.execute(select(UserRole.role).where(UserRole.user_id == user_id))
    return [enum_value(role) for role in result.scalars().all()]


async def _get_profile_or_404(db: AsyncSession, user_id: Any) -> Profile:
    profile = await db.get(Profile, parse_uuid(user_id, "user_id"))
    if not profile:
        raise NotFoundError("Usuario no encontrado")
    return profile


# ============================================================================
# Users
# ============================================================================


async def list_users(db: AsyncSession, auth_client: SupabaseAuthClient) -> Dict[str, Any]:
    """
    List every auth user merged with profile, roles and KYC status.

    Auth users without a profile row get one created on the fly.
    """
    auth_users = await auth_client.list_users()

    profiles = {p.id: p for p in (await db.execute(select(Profile))).scalars().all()}

    roles: Dict[uuid.UUID, List[str]] = {}
    for user_id, role in (await db.execute(select(UserRole.user_id, UserRole.role))).all():
        roles.setdefault(user_id, []).append(enum_value(role))

    kyc = {
        user_id: enum_value(status)
        for user_id, status in (
            await db.execute(select(KYCVerification.user_id, KYCVerification.status))
        ).all()
    }

    missing = [u for u in auth_users if u.id not in profiles]
    for auth_user in missing:
        profile = Profile(id=auth_user.id, full_name=auth_user.full_name, email=auth_user.email)
        try:
            profile.phone = auth_user.phone
        except ValueError:
            logger.warning(f"Ignoring invalid phone for auth user {auth_user.id}")
        db.add(profile)
        profiles[auth_user.id] = profile
    if missing:
        await db.commit()
        logger.info(f"Created {len(missing)} missing profiles")

    users = []
    for auth_user in auth_users:
        profile = profiles.get(auth_user.id)
        users.append(
            {
                "id": str(auth_user.id),
                "email": auth_user.email,
                "created_at": auth_user.created_at,
                "last_sign_in_at": auth_user.last_sign_in_at,
                "full_name": (profile.full_name if profile else None) or auth_user.full_name,
                "phone": (profile.phone if profile else None) or auth_user.phone,
                "roles": roles.get(auth_user.id, []),
                "kyc_status": kyc.get(auth_user.id),
                "email_confirmed": auth_user.email_confirmed_at is not None,
                "is_active": profile.is_active if profile else True,
            }
        )
    return {"users": users}


async def set_user_roles(
    db: AsyncSession,
    admin_id: uuid.UUID,
    user_id: Any,
    roles: Optional[List[str]],
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Replace the user's roles with ``roles`` (an empty list removes all)."""
    if not user_id or roles is None:
        raise BadRequestError("Parámetros inválidos")

    try:
        new_roles = list(dict.fromkeys(AppRole(role) for role in roles))
    except ValueError as e:
        raise BadRequestError(f"Rol inválido: {e}") from e

    profile = await _get_profile_or_404(db, user_id)

    await db.execute(delete(UserRole).where(UserRole.user_id == profile.id))
    for role in new_roles:
        db.add(UserRole(user_id=profile.id, role=role))

    role_values = [role.value for role in new_roles]
    record_audit(
        db,
        "update_user_roles",
        actor_id=admin_id,
        entity_type="user",
        entity_id=profile.id,
        meta={"roles": role_values, "reason": reason},
    )
    await db.commit()

    logger.info(f"Roles for user {profile.id} set to {role_values} by {admin_id}")
    return {"success": True, "roles": role_values}


async def update_user_profile(
    db: AsyncSession,
    admin_id: uuid.UUID,
    user_id: Any,
    profile_patch: Optional[Dict[str, Any]],
) -> Dict[str, Any]:
    if not user_id or not profile_patch:
        raise BadRequestError("Parámetros inválidos")

    unknown = sorted(set(profile_patch) - EDITABLE_PROFILE_FIELDS)
    if unknown:
        raise BadRequestError(f"Campos no editables: {', '.join(unknown)}")

    try:
        profile_patch = ProfilePatch.model_validate(profile_patch).model_dump(exclude_unset=True)
    except ValidationError as e:
        details = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
        raise BadRequestError("Parámetros inválidos", details=details) from e

    profile = await _get_profile_or_404(db, user_id)
    try:
        for key, value in profile_patch.items():
            setattr(profile, key, value)
    except ValueError as e:
        await db.rollback()
        raise BadRequestError(str(e)) from e

    record_audit(
        db,
        "update_user_profile",
        actor_id=admin_id,
        entity_type="user",
        entity_id=profile.id,
        meta={"changes": list(profile_patch)},
    )
    await db.commit()
    await db.refresh(profile)

    logger.info(f"Profile {profile.id} updated by {admin_id}: {list(profile_patch)}")
    return {"success": True, "profile": profile_to_dict(profile)}


async def reset_user_password(
    db: AsyncSession,
    auth_client: SupabaseAuthClient,
    admin_id: uuid.UUID,
    user_id: Any,
    reason: Optional[str] = None,
) -> Dict[str, Any]:
    """Generate a password recovery link for the user."""
    if not user_id:
        raise BadRequestError("user_id requerido")

    auth_user = await auth_client.get_user_by_id(parse_uuid(user_id, "user_id"))
    if not auth_user or not auth_user.email:
        raise NotFoundError("Usuario no encontrado")

    link = await auth_client.generate_link("recovery", auth_user.email)

    record_audit(
        db,
        "force_password_reset",
        actor_id=admin_id,
        entity_type="user",
        entity_id=auth_user.id,
        meta={"email": auth_user.email, "reason": reason},
    )
    await db.commit()

    logger.info(f"Password reset link generated for {auth_user.email} by {admin_id}")
    return {
        "success": True,
        "message": "Email de reset enviado",
        "reset_link": link.get("action_link"),
    }


# ============================================================================
# Impersonation
# ============================================================================


async def impersonate_user(
    db: AsyncSession,
    auth_client: SupabaseAuthClient,
    admin_id: uuid.UUID,
    user_id: Any,
    reason: Optional[str],
    duration_minutes: Optional[int] = None,
    ip_address: Optional[str] = None,
    origin: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Open a time-boxed impersonation session and issue a magic link for it.

    The session row and the audit entry are written before the link is
    returned so every impersonation is traceable.
    """
    if not user_id or not reason:
        raise BadRequestError("user_id and reason are required")

    duration = duration_minutes or settings.IMPERSONATION_DEFAULT_MINUTES
    target = await auth_client.get_user_by_id(parse_uuid(user_id, "user_id"))
    if not target or not target.email:
        raise NotFoundError("User not found")

    expires_at = datetime.now(timezone.utc) + timedelta(minutes=duration)
    ip_address = ip_address or "unknown"

    session = ImpersonationSession(
        admin_id=admin_id,
        user_id=target.id,
        reason=reason,
        expires_at=expires_at,
        ip_address=ip_address,
    )
    db.add(session)
    await db.flush()

    redirect_to = f"{(origin or settings.APP_PUBLIC_URL).rstrip('/')}/"
    try:
        link = await auth_client.generate_link("magiclink", target.email, redirect_to=redirect_to)
    except UpstreamError as e:
        await db.rollback()
        logger.error(f"Failed to generate impersonation link for {target.id}: {e.message}")
        raise UpstreamError("Failed to generate token") from e

    record_audit(
        db,
        "impersonate_user",
        actor_id=admin_id,
        entity_type="user",
        entity_id=target.id,
        meta={
            "reason": reason,
            "duration_minutes": duration,
            "session_id": str(session.id),
            "ip_address": ip_address,
        },
    )
    await db.commit()

    logger.warning(f"Admin {admin_id} impersonating user {target.email} (reason: {reason})")
    return {
        "success": True,
        "session_id": str(session.id),
        "magic_link": link.get("action_link"),
        "expires_at": expires_at.isoformat(),
        "user": {"id": str(target.id), "email": target.email, "full_name": target.full_name},
    }


async def revoke_impersonation(
    db: AsyncSession, admin_id: uuid.UUID, session_id: Any
) -> Dict[str, Any]:
    session = await db.get(ImpersonationSession, parse_uuid(session_id, "session_id"))
    if not session:
        raise NotFoundError("Sesión no encontrada")

    now = datetime.now(timezone.utc)
    if session.revoked_at is None and as_utc(session.expires_at) > now:
        session.revoked_at = now
        record_audit(
            db,
            "revoke_impersonation",
            actor_id=admin_id,
            entity_type="impersonation_session",
            entity_id=session.id,
            meta={"user_id": str(session.user_id)},
        )
        await db.commit()
        logger.info(f"Impersonation session {session.id} revoked by {admin_id}")

    return {
        "success": True,
        "session_id": str(session.id),
        "revoked_at": iso(session.revoked_at),
        "expires_at": iso(session.expires_at),
    }


# ============================================================================
# Audit log & notes
# ============================================================================


async def list_audit_logs(
    db: AsyncSession,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    actor_id: Optional[str] = None,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    stmt = select(AuditLog)
    if action:
        stmt = stmt.where(AuditLog.action == action)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if actor_id:
        stmt = stmt.where(AuditLog.actor_id == parse_uuid(actor_id, "actor_id"))

    limit = max(1, min(limit, MAX_AUDIT_PAGE))
    stmt = stmt.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).limit(limit)

    result = await db.execute(stmt)
    return [audit_to_dict(entry) for entry in result.scalars().all()]


async def add_admin_note(
    db: AsyncSession, admin_id: uuid.UUID, user_id: Any, content: str
) -> Dict[str, Any]:
    profile = await _get_profile_or_404(db, user_id)
    note = AdminNote(user_id=profile.id, author_id=admin_id, content=content.strip())
    db.add(note)
    await db.commit()
    await db.refresh(note)
    return note_to_dict(note)


async def list_admin_notes(db: AsyncSession, user_id: Any) -> List[Dict[str, Any]]:
    profile = await _get_profile_or_404(db, user_id)
    result = await db.execute(
        select(AdminNote).where(AdminNote.user_id == profile.id).order_by(AdminNote.created_at.desc())
    )
    return [note_to_dict(note) for note in result.scalars().all()]
