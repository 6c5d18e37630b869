from __future__ import annotations

import logging
from dataclasses import dataclass

from src.domain.entities.image import ImageRecord
from src.domain.services.lineage_service import ImageNotFoundError, next_version
from src.infrastructure.database.repositories.image_repository import ImageRepository
from src.infrastructure.storage.supabase_storage import SupabaseStorage

logger = logging.getLogger(__name__)

MEDIA_ROOT_FOLDER = "astra-images"


@dataclass
class SaveGeneratedImageUseCase:
    storage: SupabaseStorage
    image_repo: ImageRepository

    def execute(
        self,
        user_id: str,
        prompt: str,
        image_data: str,
        *,
        display_name: str | None = None,
        email: str | None = None,
        parent_id: str | None = None,
    ) -> ImageRecord:
        """
        Persist a generated image.

        The transient generation URL is copied to media storage first, then the
        record is written. Passing ``parent_id`` saves a reprompt: the new record
        becomes the next version of the parent's chain.

        Raises:
            ValueError: If the prompt is empty or the image data is unusable.
            ImageNotFoundError: If ``parent_id`` does not resolve.
        """
        if not prompt or not prompt.strip():
            raise ValueError("Prompt cannot be empty")

        parent = None
        if parent_id:
            parent = self.image_repo.get(parent_id)
            if parent is None:
                raise ImageNotFoundError(parent_id)

        stored = self.storage.upload(image_data, folder=f"{MEDIA_ROOT_FOLDER}/{user_id}")
        lineage = next_version(parent)
        entity = self.image_repo.create(
            prompt=prompt,
            image_url=stored.url,
            owner_id=user_id,
            owner_name=display_name or "Anonymous",
            owner_email=email or "No email",
            parent_id=parent.id if parent else None,
            version=lineage.version,
            version_history=lineage.version_history,
        )
        logger.info("Saved image %s (v%d) for %s", entity.id, entity.version, user_id)
        return entity
