from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.domain.entities.user import Role, UserRecord


class UserProfile(BaseModel):
    """Stored profile of a designer or admin."""
    uid: str = Field(..., description="Unique identifier of the user")
    email: str | None = Field(None, description="Email address of the user", examples=["user@example.com"])
    display_name: str | None = Field(None, description="Display name of the user", examples=["Ada Lovelace"])
    photo_url: str | None = Field(None, description="Avatar URL")
    role: Role = Field(Role.DESIGNER, description="designer or admin")
    created_at: datetime | None = Field(None, description="When the profile was first created")

    @classmethod
    def from_entity(cls, entity: UserRecord) -> "UserProfile":
        return cls(
            uid=entity.uid,
            email=entity.email,
            display_name=entity.display_name,
            photo_url=entity.photo_url,
            role=entity.role,
            created_at=entity.created_at,
        )
