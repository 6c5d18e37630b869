from __future__ import annotations

import hashlib
import logging
import os
from dataclasses import dataclass

from supabase import Client, create_client

logger = logging.getLogger(__name__)

# tokens signed out while SUPABASE_DISABLED=1
_REVOKED_TOKENS: set[str] = set()


@dataclass(slots=True)
class UserInfo:
    id: str
    email: str | None
    display_name: str | None = None
    photo_url: str | None = None


class SupabaseAuthAdapter:
    """Small wrapper around Supabase Auth for validating and revoking access tokens.

    When SUPABASE_DISABLED=1, any token that has not been signed out maps to a
    deterministic fake user.
    """

    def __init__(self) -> None:
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.url = os.getenv("SUPABASE_URL")
        self.key = os.getenv("SUPABASE_ANON_KEY")
        self.service_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        self._client: Client | None = None
        if not self.disabled and self.url and self.key:
            self._client = create_client(self.url, self.key)

    def validate_token(self, token: str) -> UserInfo:
        if not token:
            raise ValueError("Missing access token")
        if self.disabled:
            if token in _REVOKED_TOKENS:
                raise ValueError("Session has been signed out")
            fake_id = "fake-" + hashlib.sha256(token.encode()).hexdigest()[:10]
            return UserInfo(id=fake_id, email=None)
        if self._client is None:
            raise RuntimeError(
                "Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY."
            )
        # Real validation via Supabase Auth API
        try:  # pragma: no cover - network
            res = self._client.auth.get_user(token)
            user = res.user if res else None
            if not user:
                raise ValueError("Invalid access token")
            metadata = user.user_metadata or {}
            return UserInfo(
                id=user.id,
                email=user.email,
                display_name=metadata.get("full_name") or metadata.get("name"),
                photo_url=metadata.get("avatar_url") or metadata.get("picture"),
            )
        except ValueError:  # pragma: no cover - network
            raise
        except Exception as exc:  # pragma: no cover - network
            raise ValueError(f"Invalid access token: {exc}") from exc

    def sign_out(self, token: str) -> None:
        """Revoke the session behind ``token``."""
        if self.disabled:
            _REVOKED_TOKENS.add(token)
            return
        if not self.url or not (self.service_key or self.key):
            raise RuntimeError(
                "Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY."
            )
        try:  # pragma: no cover - network
            admin_client = create_client(self.url, self.service_key or self.key)
            admin_client.auth.admin.sign_out(token)
        except Exception as exc:  # pragma: no cover - network
            raise RuntimeError(f"Sign-out failed: {exc}") from exc


# Simple reusable singleton client getter for repositories/storage
_CLIENT_SINGLETON: Client | None = None


def get_supabase_client() -> Client | None:
    global _CLIENT_SINGLETON
    disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_SERVICE_ROLE_KEY") or os.getenv("SUPABASE_ANON_KEY")
    if disabled or not url or not key:
        return None
    if _CLIENT_SINGLETON is None:
        logger.info("Creating Supabase client for %s", url)
        _CLIENT_SINGLETON = create_client(url, key)
    return _CLIENT_SINGLETON
