from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from src.application.dtos.common_dto import ErrorResponse
from src.application.dtos.image_dto import (
    DeleteImageResponse,
    GenerateImageRequest,
    GenerateImageResponse,
    ImageMetadata,
    LineageResponse,
    ListImagesResponse,
    SaveImageRequest,
    SearchImagesResponse,
    SimilarImagesResponse,
    VoteResponse,
)
from src.application.services.identity_service import SessionContext
from src.application.use_cases.save_generated_image import SaveGeneratedImageUseCase
from src.application.use_cases.search_images import SearchImagesUseCase
from src.application.use_cases.vote_image import VoteImageUseCase
from src.domain.services.lineage_service import ImageNotFoundError, LineageService
from src.infrastructure.api.dependencies import (
    get_generator,
    get_image_repo,
    get_lineage_service,
    get_save_use_case,
    get_search_use_case,
    get_session,
    get_vote_use_case,
    read_image_upload,
)
from src.infrastructure.database.repositories.image_repository import ImageRepository
from src.infrastructure.generation.openai_client import ImageGenerationClient

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/images",
    tags=["Images"],
    responses={
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        404: {"model": ErrorResponse, "description": "Not Found - Image does not exist"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)


def _not_found(image_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Image {image_id} not found")


@router.post(
    "/generate",
    response_model=GenerateImageResponse,
    summary="Generate Image",
    description="""
    Generate one image from a text prompt.

    The returned URL is transient: save it with `POST /images` to keep it.
    Nothing is stored by this call.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={
        400: {"description": "Bad Request - Empty prompt"},
        502: {"description": "Bad Gateway - Generation provider failed or is not configured"},
    },
)
def generate_image(
    body: GenerateImageRequest,
    session: SessionContext = Depends(get_session),
    generator: ImageGenerationClient = Depends(get_generator),
):
    try:
        url = generator.generate(body.prompt)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except RuntimeError as exc:
        logger.error("Generation for %s failed: %s", session.user_id, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return GenerateImageResponse(image_url=url, prompt=body.prompt)


@router.post(
    "",
    response_model=ImageMetadata,
    status_code=status.HTTP_201_CREATED,
    summary="Save Generated Image",
    description="""
    Copy a generated image to media storage and record it in the gallery.

    **Versioning:**
    - Without `parent_id` the image is an original (version 1)
    - With `parent_id` it becomes the next version of the parent's chain, and
      the parent is no longer marked as the latest version

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="The saved image record",
    responses={
        400: {"description": "Bad Request - Empty prompt or unusable image data"},
        502: {"description": "Bad Gateway - Storage or database failure"},
    },
)
def save_image(
    body: SaveImageRequest,
    session: SessionContext = Depends(get_session),
    uc: SaveGeneratedImageUseCase = Depends(get_save_use_case),
):
    try:
        entity = uc.execute(
            user_id=session.user_id,
            prompt=body.prompt,
            image_data=body.image_url,
            display_name=session.user.display_name,
            email=session.user.email,
            parent_id=body.parent_id,
        )
    except ImageNotFoundError as exc:
        raise _not_found(exc.image_id)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return ImageMetadata.from_entity(entity)


@router.get(
    "",
    response_model=ListImagesResponse,
    summary="List Gallery Images",
    description="""
    Retrieve a page of the public gallery, newest first.

    **Authentication required**: No
    """,
    response_description="Paginated list of images",
)
def list_images(
    uc: SearchImagesUseCase = Depends(get_search_use_case),
    limit: int = Query(20, ge=1, le=100, description="Maximum number of images to return (1-100)"),
    offset: int = Query(0, ge=0, description="Number of images to skip from the beginning"),
):
    items = uc.all_images()
    page = items[offset : offset + limit]
    return ListImagesResponse(
        images=[ImageMetadata.from_entity(it) for it in page],
        total=len(items),
        limit=limit,
        offset=offset,
    )


@router.get(
    "/search",
    response_model=SearchImagesResponse,
    summary="Search by Prompt",
    description="""
    Rank gallery images by how well their prompt matches `q`.

    Matching is case-insensitive. A prompt containing the whole term ranks
    above one that only contains some of its words. A blank query returns
    everything in gallery order.

    **Authentication required**: No
    """,
)
def search_images(
    q: str = Query("", description="Search term"),
    uc: SearchImagesUseCase = Depends(get_search_use_case),
):
    items = uc.by_prompt(q)
    return SearchImagesResponse(images=[ImageMetadata.from_entity(it) for it in items], total=len(items))


@router.post(
    "/search/similar",
    response_model=SimilarImagesResponse,
    summary="Search by Image",
    description="""
    Extract keywords from an uploaded image (multipart field `image`) and rank
    gallery prompts by how many of them they contain.

    **Authentication required**: No
    """,
    responses={400: {"description": "Bad Request - Missing or invalid image"}},
)
def search_similar(
    data: bytes = Depends(read_image_upload),
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
    "/{image_id}",
    response_model=ImageMetadata,
    summary="Get Image",
    description="Retrieve one image record by ID. **Authentication required**: No",
)
def get_image(image_id: str, images: ImageRepository = Depends(get_image_repo)):
    try:
        entity = images.get(image_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if not entity:
        raise _not_found(image_id)
    return ImageMetadata.from_entity(entity)


@router.delete(
    "/{image_id}",
    response_model=DeleteImageResponse,
    summary="Delete Image",
    description="""
    Delete an image record.

    **Important:** derived versions are not deleted and keep pointing at the
    removed record; their lineage is reported as truncated afterwards.

    **Authentication required**: Yes (Bearer token, owner or admin)
    """,
    responses={403: {"description": "Forbidden - Only the owner or an admin can delete"}},
)
def delete_image(
    image_id: str,
    session: SessionContext = Depends(get_session),
    images: ImageRepository = Depends(get_image_repo),
):
    try:
        entity = images.get(image_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if not entity:
        raise _not_found(image_id)
    if entity.owner_id != session.user_id and not session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to delete this image")
    try:
        deleted = images.delete(image_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    if not deleted:
        raise _not_found(image_id)
    logger.info("Image %s deleted by %s", image_id, session.user_id)
    return DeleteImageResponse(ok=True)


@router.post(
    "/{image_id}/vote",
    response_model=VoteResponse,
    summary="Toggle Vote",
    description="""
    Add the caller's up-vote, or remove it when already present.

    The vote count and voter set change in one atomic update, so concurrent
    voters never lose each other's votes.

    **Authentication required**: Yes (Bearer token)
    """,
)
def toggle_vote(
    image_id: str,
    session: SessionContext = Depends(get_session),
    uc: VoteImageUseCase = Depends(get_vote_use_case),
):
    try:
        state = uc.execute(image_id, session.user_id)
    except ImageNotFoundError:
        raise _not_found(image_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return VoteResponse(image_id=state.image_id, voted=state.voted, votes=state.votes)


@router.get(
    "/{image_id}/vote",
    response_model=VoteResponse,
    summary="Get Vote Status",
    description="Whether the caller up-votes the image, and its vote count. **Authentication required**: Yes",
)
def vote_status(
    image_id: str,
    session: SessionContext = Depends(get_session),
    uc: VoteImageUseCase = Depends(get_vote_use_case),
):
    try:
        state = uc.status(image_id, session.user_id)
    except ImageNotFoundError:
        raise _not_found(image_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return VoteResponse(image_id=state.image_id, voted=state.voted, votes=state.votes)


@router.get(
    "/{image_id}/versions",
    response_model=LineageResponse,
    summary="List Versions",
    description="""
    Return the root of the image's chain followed by the root's direct
    derivatives in creation order.

    **Authentication required**: No
    """,
)
def list_versions(image_id: str, lineage: LineageService = Depends(get_lineage_service)):
    try:
        result = lineage.trace_versions(image_id)
    except ImageNotFoundError:
        raise _not_found(image_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return LineageResponse(
        image_id=image_id,
        images=[ImageMetadata.from_entity(it) for it in result.images],
        truncated=result.truncated,
    )


@router.get(
    "/{image_id}/ancestors",
    response_model=LineageResponse,
    summary="List Ancestors",
    description="""
    Return the image and every ancestor, oldest first. An unknown ID yields an
    empty list.

    **Authentication required**: No
    """,
)
def list_ancestors(image_id: str, lineage: LineageService = Depends(get_lineage_service)):
    try:
        result = lineage.trace_ancestors(image_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return LineageResponse(
        image_id=image_id,
        images=[ImageMetadata.from_entity(it) for it in result.images],
        truncated=result.truncated,
    )
