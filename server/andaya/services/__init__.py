"""
Services package for the AndaYa backend.
"""

from .auth_client import AuthUser, SupabaseAuthClient
from .email_client import EmailService
from .fx_provider import FxProviderClient

__all__ = [
    "AuthUser",
    "SupabaseAuthClient",
    "EmailService",
    "FxProviderClient",
]
