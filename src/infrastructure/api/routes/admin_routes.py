from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.application.dtos.image_dto import ImageMetadata, SearchImagesResponse, SimilarImagesResponse
from src.application.dtos.user_dto import UserProfile
from src.application.services.identity_service import IdentityService, SessionContext
from src.application.use_cases.search_images import SearchImagesUseCase
from src.infrastructure.api.dependencies import (
    get_identity_service,
    get_search_use_case,
    read_image_upload,
    require_admin,
)

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        403: {"description": "Forbidden - Admin role required"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


@router.get(
    "/images",
    response_model=SearchImagesResponse,
    summary="All Images",
    description="""
    Every image in the system, newest first.

    **Filters:**
    - `q` ranks images by prompt match
    - `designer_id` restricts the result to one designer

    **Authentication required**: Yes (Bearer token, admin)
    """,
)
def all_images(
    q: str = Query("", description="Optional search term"),
    designer_id: str | None = Query(None, description="Only images owned by this user"),
    admin: SessionContext = Depends(require_admin),
    uc: SearchImagesUseCase = Depends(get_search_use_case),
):
    items = uc.by_prompt(q, owner_id=designer_id)
    return SearchImagesResponse(images=[ImageMetadata.from_entity(it) for it in items], total=len(items))


@router.post(
    "/images/search/similar",
    response_model=SimilarImagesResponse,
    summary="Search All Images by Image",
    description="Similarity search over every image. **Authentication required**: Yes (admin)",
)
def search_all_similar(
    data: bytes = Depends(read_image_upload),
    admin: SessionContext = Depends(require_admin),
    uc: SearchImagesUseCase = Depends(get_search_use_case),
):
    try:
        result = uc.by_image(data)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return SimilarImagesResponse(
        keywords=result.keywords,
        images=[ImageMetadata.from_entity(it) for it in result.images],
        total=len(result.images),
    )


@router.get(
    "/designers/{uid}",
    response_model=UserProfile,
    summary="Designer Details",
    description="Stored profile of one user. **Authentication required**: Yes (admin)",
    responses={404: {"description": "Not Found - User does not exist"}},
)
def designer_details(
    uid: str,
    admin: SessionContext = Depends(require_admin),
    identity: IdentityService = Depends(get_identity_service),
):
    try:
        record = identity.get_user(uid)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {uid} not found")
    return UserProfile.from_entity(record)


@router.post(
    "/users/{uid}/promote",
    response_model=UserProfile,
    summary="Promote to Admin",
    description="Give a user the admin role. **Authentication required**: Yes (admin)",
    responses={404: {"description": "Not Found - User does not exist"}},
)
def promote(
    uid: str,
    admin: SessionContext = Depends(require_admin),
    identity: IdentityService = Depends(get_identity_service),
):
    try:
        record = identity.set_admin(uid)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {uid} not found")
    return UserProfile.from_entity(record)
