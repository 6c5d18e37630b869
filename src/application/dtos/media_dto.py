from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class UploadRequest(BaseModel):
    """Image payload to forward to media storage."""
    model_config = ConfigDict(populate_by_name=True)

    image_data: str | None = Field(None, alias="imageData", description="Base64, data URL or http(s) URL of the image")
    folder: str | None = Field(None, description="Destination folder", examples=["astra-images/user123"])


class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: str = Field(..., alias="imageUrl", description="Durable URL of the stored image")


class ImageAnalysisResponse(BaseModel):
    keywords: list[str] = Field(..., description="Descriptive keywords, strongest first", examples=[["sunset", "colorful"]])


class ProxyErrorResponse(BaseModel):
    """Error body of the /api proxy endpoints."""
    error: str = Field(..., description="What went wrong", examples=["Failed to upload image"])
    details: str | None = Field(None, description="Underlying error message")
