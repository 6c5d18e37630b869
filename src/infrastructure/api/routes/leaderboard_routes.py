from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from src.application.dtos.image_dto import ImageMetadata
from src.application.dtos.leaderboard_dto import (
    DesignerRankingItem,
    DesignerRankingsResponse,
    TopVotedResponse,
)
from src.application.use_cases.search_images import SearchImagesUseCase
from src.infrastructure.api.dependencies import get_search_use_case

router = APIRouter(
    prefix="/leaderboard",
    tags=["Leaderboard"],
    responses={422: {"description": "Validation Error - Invalid request format"}},
)


@router.get(
    "/images",
    response_model=TopVotedResponse,
    summary="Top Voted Images",
    description="""
    Images with at least one vote, most voted first. Images with equal votes
    keep gallery order.

    **Authentication required**: No
    """,
)
def top_voted(
    limit: int = Query(10, ge=1, le=100, description="Maximum number of images to return"),
    uc: SearchImagesUseCase = Depends(get_search_use_case),
):
    return TopVotedResponse(images=[ImageMetadata.from_entity(it) for it in uc.top_voted(limit)])


@router.get(
    "/designers",
    response_model=DesignerRankingsResponse,
    summary="Designer Rankings",
    description="""
    Designers ordered by the total votes across their images, with the number
    of images each has saved.

    **Authentication required**: No
    """,
)
def designer_rankings(uc: SearchImagesUseCase = Depends(get_search_use_case)):
    return DesignerRankingsResponse(
        designers=[DesignerRankingItem.from_entity(entry) for entry in uc.designer_rankings()]
    )
