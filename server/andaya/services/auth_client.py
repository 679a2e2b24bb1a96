"""
Client for the hosted auth provider (Supabase Auth / GoTrue REST API).

Only consumes the provider: resolves bearer tokens to users and calls the
admin endpoints needed by the back office (list users, generate magic and
recovery links). Passwords and sessions never touch this service.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from andaya.config import settings
from andaya.errors import UpstreamError
from andaya.utils.retry import with_retry

logger = logging.getLogger(__name__)


@dataclass
class AuthUser:
    """User as returned by the auth provider."""

    id: uuid.UUID
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[str] = None
    last_sign_in_at: Optional[str] = None
    email_confirmed_at: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "AuthUser":
        return cls(
            id=uuid.UUID(str(data["id"])),
            email=data.get("email"),
            phone=data.get("phone") or None,
            created_at=data.get("created_at"),
            last_sign_in_at=data.get("last_sign_in_at"),
            email_confirmed_at=data.get("email_confirmed_at"),
            user_metadata=data.get("user_metadata") or {},
        )

    @property
    def full_name(self) -> Optional[str]:
        return self.user_metadata.get("full_name")


class SupabaseAuthClient:
    """Thin async wrapper over the GoTrue REST endpoints."""

    def __init__(
        self,
        base_url: str = None,
        anon_key: str = None,
        service_role_key: str = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = None,
    ):
        self.base_url = (base_url if base_url is not None else settings.SUPABASE_URL).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.SUPABASE_ANON_KEY
        self.service_role_key = (
            service_role_key if service_role_key is not None else settings.SUPABASE_SERVICE_ROLE_KEY
        )
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/auth/v1",
            timeout=timeout or settings.HTTP_TIMEOUT,
            transport=transport,
        )

    def _admin_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
        }

    async def close(self):
        await self._client.aclose()

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        """
        Resolve an access token to its user.

        Returns:
            The user, or None if the provider rejects the token

        Raises:
            UpstreamError: If the provider cannot be reached
        """
        try:
            response = await self._client.get(
                "/user",
                headers={"apikey": self.anon_key, "Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Auth provider unreachable: {e}")
            raise UpstreamError("Auth provider unavailable") from e

        if response.status_code in (401, 403, 404):
            return None
        if response.status_code >= 400:
            logger.error(f"Auth provider returned {response.status_code} for /user")
            raise UpstreamError("Auth provider error")

        return AuthUser.from_api(response.json())

    async def _admin_request(self, method: str, path: str, **kwargs) -> httpx.Response:
        async def call():
            return await self._client.request(method, path, headers=self._admin_headers(), **kwargs)

        try:
            response = await with_retry(
                call,
                max_retries=2,
                initial_delay=0.5,
                retry_on=(httpx.TransportError,),
                operation_name=f"auth admin {method} {path}",
            )
        except httpx.HTTPError as e:
            raise UpstreamError("Auth provider unavailable") from e

        return response

    async def list_users(self, per_page: int = 1000) -> List[AuthUser]:
        """List every auth user, following pagination."""
        users: List[AuthUser] = []
        page = 1
        while True:
            response = await self._admin_request(
                "GET", "/admin/users", params={"page": page, "per_page": per_page}
            )
            if response.status_code >= 400:
                raise UpstreamError(f"Failed to list users ({response.status_code})")

            batch = response.json().get("users", [])
            users.extend(AuthUser.from_api(item) for item in batch)
            if len(batch) < per_page:
                return users
            page += 1

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[AuthUser]:
        response = await self._admin_request("GET", f"/admin/users/{user_id}")
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise UpstreamError(f"Failed to fetch user ({response.status_code})")
        return AuthUser.from_api(response.json())

    async def generate_link(
        self, link_type: str, email: str, redirect_to: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Generate a magic-link or recovery link for a user.

        Returns:
            Provider payload; ``action_link`` holds the URL
        """
        body: Dict[str, Any] = {"type": link_type, "email": email}
        if redirect_to:
            body["redirect_to"] = redirect_to

        response = await self._admin_request("POST", "/admin/generate_link", json=body)
        if response.status_code >= 400:
            raise UpstreamError(f"Failed to generate {link_type} link ({response.status_code})")

        data = response.json()
        # Older GoTrue versions nest the link under "properties"
        if "action_link" not in data and isinstance(data.get("properties"), dict):
            data["action_link"] = data["properties"].get("action_link")
        return data


_auth_client: Optional[SupabaseAuthClient] = None


def get_auth_client() -> SupabaseAuthClient:
    """Shared client instance (FastAPI dependency)."""
    global _auth_client
    if _auth_client is None:
        _auth_client = SupabaseAuthClient()
    return _auth_client


async def close_auth_client():
    global _auth_client
    if _auth_client is not None:
        await _auth_client.close()
        _auth_client = None
