from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import JSONResponse

from src.application.dtos.media_dto import (
    ImageAnalysisResponse,
    ProxyErrorResponse,
    UploadRequest,
    UploadResponse,
)
from src.application.services.identity_service import SessionContext
from src.domain.services.keyword_extractor import KeywordExtractor
from src.infrastructure.api.dependencies import get_session, get_storage
from src.infrastructure.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Media"],
    responses={
        400: {"model": ProxyErrorResponse, "description": "Bad Request - Missing or invalid image"},
        401: {"description": "Unauthorized - Invalid or missing authentication token"},
        500: {"model": ProxyErrorResponse, "description": "Upstream storage or analysis failure"},
    },
)


def _error(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ProxyErrorResponse(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@router.post(
    "/upload",
    response_model=UploadResponse,
    response_model_by_alias=True,
    summary="Upload Image to Media Storage",
    description="""
    Store an image and return a durable URL for it.

    `imageData` may be:
    - a `data:image/...;base64,` URL
    - bare base64
    - an http(s) URL, which is fetched and re-hosted (generation URLs expire)

    `folder` defaults to `astra-images`.

    **Authentication required**: Yes (Bearer token)
    """,
)
def upload(
    body: UploadRequest,
    session: SessionContext = Depends(get_session),
    storage: SupabaseStorage = Depends(get_storage),
):
    if not body.image_data:
        return _error(status.HTTP_400_BAD_REQUEST, "No image data provided")
    try:
        stored = storage.upload(body.image_data, folder=body.folder)
    except ValueError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid image data", str(exc))
    except RuntimeError as exc:
        logger.error("Upload for %s failed: %s", session.user_id, exc)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upload image", str(exc))
    return UploadResponse(image_url=stored.url)


@router.post(
    "/image-analysis",
    response_model=ImageAnalysisResponse,
    summary="Analyse Image",
    description="""
    Describe an uploaded image (multipart field `image`) with a few keywords,
    strongest first. Used for search-by-image.

    **Authentication required**: Yes (Bearer token)
    """,
)
def image_analysis(
    image: UploadFile | None = File(None, description="Image file to analyse"),
    session: SessionContext = Depends(get_session),
):
    if image is None:
        return _error(status.HTTP_400_BAD_REQUEST, "No image provided")
    data = image.file.read()
    if not data:
        return _error(status.HTTP_400_BAD_REQUEST, "No image provided")
    try:
        keywords = KeywordExtractor.extract_keywords(data)
    except ValueError as exc:
        return _error(status.HTTP_400_BAD_REQUEST, "Invalid image file", str(exc))
    logger.info("Analysed image for %s: %s", session.user_id, ", ".join(keywords))
    return ImageAnalysisResponse(keywords=keywords)
