"""
Back-office endpoints.

The ``admin-*`` function endpoints are mounted under ``/functions`` next to
the other function-style endpoints; the REST endpoints live under ``/admin``.
Every endpoint requires an admin role.
"""

import logging
from typing import Optional

from andaya.routes.deps import CurrentUser, require_admin
from andaya.schemas import (
    AdminNoteCreate,
    FxSettingsUpdate,
    ImpersonateRequest,
    KYCStatusUpdate,
    ResetPasswordRequest,
    SetRolesRequest,
    UpdateProfileRequest,
)
from andaya.services.auth_client import SupabaseAuthClient, get_auth_client
from andaya.services.database import get_db
from andaya.tools import admin_tools, fx_tools, kyc_tools
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

functions_router = APIRouter()
router = APIRouter(prefix="/admin")


def client_ip(request: Request) -> Optional[str]:
    """Caller IP, preferring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or (request.client.host if request.client else None)


# ============================================================================
# Function endpoints
# ============================================================================


@functions_router.get("/admin-list-users")
@functions_router.post("/admin-list-users")
async def admin_list_users(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
):
    return await admin_tools.list_users(db, auth_client)


@functions_router.post("/admin-set-role")
async def admin_set_role(
    body: SetRolesRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_tools.set_user_roles(db, admin.id, body.user_id, body.roles, body.reason)


@functions_router.post("/admin-update-profile")
async def admin_update_profile(
    body: UpdateProfileRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_tools.update_user_profile(db, admin.id, body.user_id, body.profile_patch)


@functions_router.post("/admin-reset-password")
async def admin_reset_password(
    body: ResetPasswordRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
):
    return await admin_tools.reset_user_password(
        db, auth_client, admin.id, body.user_id, body.reason
    )


@functions_router.post("/admin-impersonate")
async def admin_impersonate(
    body: ImpersonateRequest,
    request: Request,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
):
    """Issue a time-boxed magic link to sign in as another user."""
    return await admin_tools.impersonate_user(
        db,
        auth_client,
        admin.id,
        body.user_id,
        body.reason,
        duration_minutes=body.duration_minutes,
        ip_address=client_ip(request),
        origin=request.headers.get("origin"),
    )


@functions_router.post("/admin-kyc-update-status")
async def admin_kyc_update_status(
    body: KYCStatusUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await kyc_tools.update_kyc_status(
        db, admin.id, body.user_id, body.status, body.rejection_reason
    )


# ============================================================================
# REST endpoints
# ============================================================================


@router.post("/impersonation/{session_id}/revoke")
async def revoke_impersonation(
    session_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_tools.revoke_impersonation(db, admin.id, session_id)


@router.get("/audit-logs")
async def list_audit_logs(
    action: Optional[str] = Query(None),
    entity_type: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_tools.list_audit_logs(
        db, action=action, entity_type=entity_type, actor_id=actor_id, limit=limit
    )


@router.get("/users/{user_id}/notes")
async def list_notes(
    user_id: str,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_tools.list_admin_notes(db, user_id)


@router.post("/users/{user_id}/notes", status_code=status.HTTP_201_CREATED)
async def add_note(
    user_id: str,
    body: AdminNoteCreate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await admin_tools.add_admin_note(db, admin.id, user_id, body.content)


@router.get("/fx/settings")
async def get_fx_settings(
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await fx_tools.read_fx_settings(db)


@router.put("/fx/settings")
async def update_fx_settings(
    body: FxSettingsUpdate,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await fx_tools.update_fx_settings(db, admin.id, body.model_dump(exclude_unset=True))
