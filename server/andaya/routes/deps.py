"""Authentication dependencies shared by the routers."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import List, Optional

from andaya.errors import ForbiddenError, UnauthorizedError
from andaya.models.profile import ADMIN_ROLES
from andaya.services.auth_client import SupabaseAuthClient, get_auth_client
from andaya.services.database import get_db
from andaya.tools.admin_tools import get_user_roles
from andaya.tools.profile_tools import ensure_profile
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: uuid.UUID
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        return any(role in ADMIN_ROLES for role in self.roles)


async def _resolve_user(
    credentials: Optional[HTTPAuthorizationCredentials],
    db: AsyncSession,
    auth_client: SupabaseAuthClient,
) -> Optional[CurrentUser]:
    if credentials is None or not credentials.credentials:
        return None

    auth_user = await auth_client.get_user(credentials.credentials)
    if auth_user is None:
        return None

    profile = await ensure_profile(db, auth_user)
    if profile.is_active is False:
        logger.warning(f"Deactivated user {auth_user.id} attempted access")
        raise ForbiddenError("Cuenta desactivada")

    roles = await get_user_roles(db, auth_user.id)
    return CurrentUser(id=auth_user.id, email=auth_user.email, roles=roles)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> CurrentUser:
    """Resolve the bearer token to a user; 401 when missing or rejected."""
    user = await _resolve_user(credentials, db, auth_client)
    if user is None:
        raise UnauthorizedError("No autorizado")
    return user


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> Optional[CurrentUser]:
    """Like :func:`get_current_user` but anonymous callers get None."""
    return await _resolve_user(credentials, db, auth_client)


async def require_admin(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_admin:
        raise ForbiddenError("Acceso denegado")
    return user
