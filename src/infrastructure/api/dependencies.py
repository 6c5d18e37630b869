from __future__ import annotations

from typing import Annotated

from fastapi import Depends, File, HTTPException, Security, UploadFile, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.application.services.identity_service import IdentityService, SessionContext
from src.application.use_cases.save_generated_image import SaveGeneratedImageUseCase
from src.application.use_cases.search_images import SearchImagesUseCase
from src.application.use_cases.vote_image import VoteImageUseCase
from src.domain.services.lineage_service import LineageService
from src.infrastructure.database.repositories.image_repository import ImageRepository
from src.infrastructure.database.repositories.user_repository import UserRepository
from src.infrastructure.database.supabase_client import SupabaseAuthAdapter, get_supabase_client
from src.infrastructure.generation.openai_client import ImageGenerationClient
from src.infrastructure.storage.supabase_storage import SupabaseStorage

_bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_adapter() -> SupabaseAuthAdapter:
    return SupabaseAuthAdapter()


def get_storage() -> SupabaseStorage:
    return SupabaseStorage(get_supabase_client())


def get_image_repo() -> ImageRepository:
    return ImageRepository(get_supabase_client())


def get_user_repo() -> UserRepository:
    return UserRepository(get_supabase_client())


def get_generator() -> ImageGenerationClient:
    return ImageGenerationClient()


def get_identity_service(
    auth: Annotated[SupabaseAuthAdapter, Depends(get_auth_adapter)],
    users: Annotated[UserRepository, Depends(get_user_repo)],
) -> IdentityService:
    return IdentityService(auth=auth, users=users)


def get_bearer_token(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)],
) -> str:
    if not credentials or not credentials.scheme or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    if not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return credentials.credentials


def get_session(
    token: Annotated[str, Depends(get_bearer_token)],
    identity: Annotated[IdentityService, Depends(get_identity_service)],
) -> SessionContext:
    try:
        return identity.resolve(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


def require_admin(session: Annotated[SessionContext, Depends(get_session)]) -> SessionContext:
    if not session.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return session


async def read_image_upload(
    image: UploadFile = File(..., description="Image file to analyse"),
) -> bytes:
    data = await image.read()
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No image provided")
    return data


def get_search_use_case(
    images: Annotated[ImageRepository, Depends(get_image_repo)],
) -> SearchImagesUseCase:
    return SearchImagesUseCase(image_repo=images)


def get_vote_use_case(
    images: Annotated[ImageRepository, Depends(get_image_repo)],
) -> VoteImageUseCase:
    return VoteImageUseCase(image_repo=images)


def get_save_use_case(
    storage: Annotated[SupabaseStorage, Depends(get_storage)],
    images: Annotated[ImageRepository, Depends(get_image_repo)],
) -> SaveGeneratedImageUseCase:
    return SaveGeneratedImageUseCase(storage=storage, image_repo=images)


def get_lineage_service(
    images: Annotated[ImageRepository, Depends(get_image_repo)],
) -> LineageService:
    return LineageService(images=images)
