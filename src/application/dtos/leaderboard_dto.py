from __future__ import annotations

from pydantic import BaseModel, Field

from src.application.dtos.image_dto import ImageMetadata
from src.domain.services.ranking_service import DesignerRanking


class TopVotedResponse(BaseModel):
    images: list[ImageMetadata] = Field(..., description="Images with at least one vote, most voted first")


class DesignerRankingItem(BaseModel):
    user_id: str = Field(..., description="ID of the designer")
    display_name: str = Field(..., description="Display name recorded on the designer's images")
    email: str = Field(..., description="Email recorded on the designer's images")
    total_votes: int = Field(..., description="Sum of votes over all of the designer's images", ge=0)
    image_count: int = Field(..., description="Number of images the designer has saved", ge=0)

    @classmethod
    def from_entity(cls, entry: DesignerRanking) -> "DesignerRankingItem":
        return cls(
            user_id=entry.owner_id,
            display_name=entry.display_name,
            email=entry.email,
            total_votes=entry.total_votes,
            image_count=entry.image_count,
        )


class DesignerRankingsResponse(BaseModel):
    designers: list[DesignerRankingItem] = Field(..., description="Designers, most voted first")
