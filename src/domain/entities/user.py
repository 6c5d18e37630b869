from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    DESIGNER = "designer"
    ADMIN = "admin"


@dataclass(frozen=True)
class UserRecord:
    uid: str  # user id from Supabase auth
    email: str | None
    display_name: str | None = None
    photo_url: str | None = None
    role: Role = Role.DESIGNER
    created_at: datetime | None = None
