from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.application.dtos.image_dto import ImageMetadata, SearchImagesResponse, SimilarImagesResponse
from src.application.services.identity_service import SessionContext
from src.application.use_cases.search_images import SearchImagesUseCase
from src.infrastructure.api.dependencies import get_search_use_case, get_session, read_image_upload

router = APIRouter(
    prefix="/dashboard",
    tags=["Designer Dashboard"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


@router.get(
    "/images",
    response_model=SearchImagesResponse,
    summary="My Images",
    description="""
    The caller's own images, newest first. With `q`, ranked by prompt match
    instead.

    **Authentication required**: Yes (Bearer token)
    """,
)
def my_images(
    q: str = Query("", description="Optional search term"),
    session: SessionContext = Depends(get_session),
    uc: SearchImagesUseCase = Depends(get_search_use_case),
):
    items = uc.by_prompt(q, owner_id=session.user_id)
    return SearchImagesResponse(images=[ImageMetadata.from_entity(it) for it in items], total=len(items))


@router.post(
    "/images/search/similar",
    response_model=SimilarImagesResponse,
    summary="Search My Images by Image",
    description="Similarity search restricted to the caller's own images. **Authentication required**: Yes",
)
def search_my_similar(
    data: bytes = Depends(read_image_upload),
    session: SessionContext = Depends(get_session),
    uc: SearchImagesUseCase = Depends(get_search_use_case),
):
    try:
        result = uc.by_image(data, owner_id=session.user_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return SimilarImagesResponse(
        keywords=result.keywords,
        images=[ImageMetadata.from_entity(it) for it in result.images],
        total=len(result.images),
    )
