from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from src.application.dtos.common_dto import SuccessResponse
from src.application.dtos.user_dto import UserProfile
from src.application.services.identity_service import IdentityService, SessionContext
from src.domain.entities.user import Role
from src.infrastructure.api.dependencies import get_bearer_token, get_identity_service, get_session

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"description": "Unauthorized - Invalid, signed-out or missing authentication token"},
        422: {"description": "Validation Error - Invalid request format"}
    }
)


class SessionResponse(BaseModel):
    """Response model for sign-in."""
    user_id: str = Field(..., description="Unique identifier of the authenticated user")
    email: str | None = Field(None, description="Email address of the authenticated user", examples=["user@example.com"])
    role: Role = Field(..., description="designer or admin")
    created: bool = Field(..., description="True when this sign-in created the user record")
    profile: UserProfile = Field(..., description="Stored user record")


class MeResponse(BaseModel):
    """The current caller and their stored profile, if any."""
    user_id: str = Field(..., description="Unique identifier of the user")
    email: str | None = Field(None, description="Email address from the identity provider")
    role: Role = Field(..., description="designer or admin")
    profile: UserProfile | None = Field(None, description="Stored user record, null before first sign-in")


@router.post(
    "/session",
    response_model=SessionResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign In",
    description="""
    Exchange a provider access token for an application session.

    This endpoint:
    - Verifies the token in the Authorization header
    - Creates the user record on first sign-in (role `designer`)
    - Leaves an existing record untouched, including its role

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="The signed-in user and their role"
)
def sign_in(
    token: str = Depends(get_bearer_token),
    identity: IdentityService = Depends(get_identity_service),
):
    """Validate the token and make sure the user record exists."""
    try:
        result = identity.sign_in(token)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return SessionResponse(
        user_id=result.session.user_id,
        email=result.session.user.email,
        role=result.record.role,
        created=result.created,
        profile=UserProfile.from_entity(result.record),
    )


@router.get(
    "/me",
    response_model=MeResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Current User",
    description="""
    Return the caller's identity, role and stored profile.

    The role falls back to `designer` when no record exists or it cannot be read.

    **Authentication required**: Yes (Bearer token)
    """,
    response_description="Current user information"
)
def get_me(
    session: SessionContext = Depends(get_session),
    identity: IdentityService = Depends(get_identity_service),
):
    """Get the current user's profile."""
    try:
        record = identity.get_user(session.user_id)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return MeResponse(
        user_id=session.user_id,
        email=session.user.email,
        role=session.role,
        profile=UserProfile.from_entity(record) if record else None,
    )


@router.post(
    "/signout",
    response_model=SuccessResponse,
    status_code=status.HTTP_200_OK,
    summary="Sign Out",
    description="""
    Revoke the session behind the bearer token. Later requests with the same
    token are rejected with 401.

    **Authentication required**: Yes (Bearer token)
    """,
)
def sign_out(
    session: SessionContext = Depends(get_session),
    identity: IdentityService = Depends(get_identity_service),
):
    try:
        identity.sign_out(session)
    except RuntimeError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return SuccessResponse(ok=True, message="Signed out")
