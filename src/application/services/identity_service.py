from __future__ import annotations

import logging
from dataclasses import dataclass

from src.domain.entities.user import Role, UserRecord
from src.domain.result import Found, TransientError, value_or_none
from src.infrastructure.database.repositories.user_repository import UserRepository
from src.infrastructure.database.supabase_client import SupabaseAuthAdapter, UserInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Who is calling, resolved once per request from the bearer token."""

    user: UserInfo
    role: Role
    token: str

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


@dataclass(frozen=True)
class SignInResult:
    session: SessionContext
    record: UserRecord
    created: bool


@dataclass
class IdentityService:
    auth: SupabaseAuthAdapter
    users: UserRepository

    def resolve(self, token: str) -> SessionContext:
        """Validate ``token`` and attach the caller's role.

        Raises:
            ValueError: If the token is missing, invalid or signed out.
        """
        user = self.auth.validate_token(token)
        return SessionContext(user=user, role=self.get_role(user.id), token=token)

    def sign_in(self, token: str) -> SignInResult:
        """Validate ``token`` and make sure the caller has a user record."""
        user = self.auth.validate_token(token)
        record, created = self.users.ensure_exists(
            uid=user.id,
            email=user.email,
            display_name=user.display_name,
            photo_url=user.photo_url,
        )
        if created:
            logger.info("Created user record for %s", user.id)
        session = SessionContext(user=user, role=record.role, token=token)
        return SignInResult(session=session, record=record, created=created)

    def sign_out(self, session: SessionContext) -> None:
        self.auth.sign_out(session.token)
        logger.info("Signed out %s", session.user_id)

    def get_role(self, uid: str) -> Role:
        """Role of ``uid``, falling back to designer when unknown or unreadable."""
        lookup = self.users.find(uid)
        if isinstance(lookup, Found):
            return lookup.value.role
        if isinstance(lookup, TransientError):
            logger.warning("Role lookup for %s failed, using designer: %s", uid, lookup.error)
        return Role.DESIGNER

    def get_user(self, uid: str) -> UserRecord | None:
        return value_or_none(self.users.find(uid))

    def set_admin(self, uid: str) -> UserRecord | None:
        """Give ``uid`` the admin role. Returns None when the user does not exist."""
        updated = self.users.set_role(uid, Role.ADMIN)
        if updated is None:
            logger.warning("Cannot promote %s: user not found", uid)
        else:
            logger.info("User %s has been set as admin", uid)
        return updated

    def set_admin_by_email(self, email: str) -> UserRecord | None:
        lookup = self.users.find_by_email(email)
        if isinstance(lookup, TransientError):
            raise RuntimeError(f"DB find user failed: {lookup.error}") from lookup.error
        if not isinstance(lookup, Found):
            logger.warning("No user found with email %s", email)
            return None
        return self.set_admin(lookup.value.uid)
