"""Promote an existing user to admin by email.

Usage: ``astra-make-admin user@example.com``
"""
from __future__ import annotations

import argparse
import logging
from typing import Optional

from src.application.services.identity_service import IdentityService
from src.infrastructure.database.repositories.user_repository import UserRepository
from src.infrastructure.database.supabase_client import SupabaseAuthAdapter, get_supabase_client
from src.infrastructure.logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Give an Astra Labs user the admin role")
    parser.add_argument("email", help="Email address the user signed in with")
    return parser


def main(argv: Optional[list[str]] = None, identity: IdentityService | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()
    if identity is None:
        identity = IdentityService(
            auth=SupabaseAuthAdapter(),
            users=UserRepository(get_supabase_client()),
        )
    try:
        record = identity.set_admin_by_email(args.email)
    except RuntimeError as exc:
        logger.error("Error setting admin: %s", exc)
        return 1
    if record is None:
        return 1
    print(f"{record.email or args.email} ({record.uid}) is now an admin")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
