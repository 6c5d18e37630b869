from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.domain.entities.image import ImageRecord


class ImageMetadata(BaseModel):
    """A saved image with its voting and lineage fields."""
    id: str = Field(..., description="Unique identifier of the image", examples=["img_3f9a1c2b7d4e"])
    prompt: str = Field(..., description="Prompt the image was generated from", examples=["a fluffy cat in a hat"])
    image_url: str = Field(..., description="Durable URL of the stored image")
    owner_id: str = Field(..., description="ID of the designer who created the image")
    owner_name: str = Field(..., description="Display name of the creator", examples=["Ada Lovelace"])
    owner_email: str = Field(..., description="Email of the creator")
    created_at: datetime = Field(..., description="ISO timestamp when the image was saved")
    votes: int = Field(0, description="Number of up-votes", ge=0)
    parent_id: str | None = Field(None, description="Image this one was reprompted from, null for originals")
    version: int = Field(1, description="Position in the version chain (1 = original)", ge=1)
    is_latest_version: bool = Field(True, description="Whether no newer version was saved from this image")
    version_history: list[str] = Field(default_factory=list, description="Ancestor ids, oldest first")

    @classmethod
    def from_entity(cls, entity: ImageRecord) -> "ImageMetadata":
        return cls(
            id=entity.id,
            prompt=entity.prompt,
            image_url=entity.image_url,
            owner_id=entity.owner_id,
            owner_name=entity.owner_name,
            owner_email=entity.owner_email,
            created_at=entity.created_at,
            votes=entity.votes,
            parent_id=entity.parent_id,
            version=entity.version,
            is_latest_version=entity.is_latest_version,
            version_history=list(entity.version_history or ()),
        )


class ListImagesResponse(BaseModel):
    """Response model for the paginated gallery."""
    images: list[ImageMetadata] = Field(..., description="List of image metadata objects")
    total: int = Field(..., description="Total number of images available", examples=[150], ge=0)
    limit: int = Field(..., description="Maximum number of images returned in this response", examples=[20], ge=1, le=100)
    offset: int = Field(..., description="Number of images skipped from the beginning", examples=[0], ge=0)


class SearchImagesResponse(BaseModel):
    """Images matching a prompt search, best match first."""
    images: list[ImageMetadata] = Field(..., description="Matching images")
    total: int = Field(..., description="Number of matching images", ge=0)


class SimilarImagesResponse(BaseModel):
    """Images matching the keywords extracted from an uploaded image."""
    keywords: list[str] = Field(..., description="Keywords extracted from the uploaded image", examples=[["water", "minimal"]])
    images: list[ImageMetadata] = Field(..., description="Matching images, best match first")
    total: int = Field(..., description="Number of matching images", ge=0)


class GenerateImageRequest(BaseModel):
    """Request model for text-to-image generation."""
    prompt: str = Field(..., min_length=1, max_length=4000, description="Text prompt", examples=["a lighthouse at dusk, watercolor"])


class GenerateImageResponse(BaseModel):
    """A freshly generated image that has not been saved yet."""
    image_url: str = Field(..., description="Transient URL (or data URL) of the generated image")
    prompt: str = Field(..., description="Prompt used for generation")


class SaveImageRequest(BaseModel):
    """Request model for saving a generated image, optionally as a new version."""
    prompt: str = Field(..., min_length=1, description="Prompt the image was generated from")
    image_url: str = Field(..., min_length=1, description="Generated image URL, data URL or base64")
    parent_id: str | None = Field(None, description="Image being reprompted; omit for an original")


class DeleteImageResponse(BaseModel):
    """Response model for image deletion."""
    ok: bool = Field(True, description="Indicates whether the deletion was successful")


class VoteResponse(BaseModel):
    """Vote state of one image for the calling user."""
    image_id: str = Field(..., description="ID of the image")
    voted: bool = Field(..., description="Whether the caller currently up-votes the image")
    votes: int = Field(..., description="Current number of up-votes", ge=0)


class LineageResponse(BaseModel):
    """A version set or ancestor chain."""
    image_id: str = Field(..., description="Image the lineage was requested for")
    images: list[ImageMetadata] = Field(..., description="Images in lineage order")
    truncated: bool = Field(False, description="True when a missing ancestor cut the walk short")
