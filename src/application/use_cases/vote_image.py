from __future__ import annotations

import logging
from dataclasses import dataclass

from src.domain.services.lineage_service import ImageNotFoundError
from src.infrastructure.database.repositories.image_repository import ImageRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteState:
    image_id: str
    voted: bool
    votes: int


@dataclass
class VoteImageUseCase:
    image_repo: ImageRepository

    def execute(self, image_id: str, user_id: str) -> VoteState:
        """Toggle ``user_id``'s vote on the image and return the resulting state."""
        updated = self.image_repo.toggle_vote(image_id, user_id)
        if updated is None:
            raise ImageNotFoundError(image_id)
        voted = updated.has_voter(user_id)
        logger.info(
            "Vote %s image %s by user %s", "added to" if voted else "removed from", image_id, user_id
        )
        return VoteState(image_id=image_id, voted=voted, votes=updated.votes)

    def status(self, image_id: str, user_id: str) -> VoteState:
        image = self.image_repo.get(image_id)
        if image is None:
            raise ImageNotFoundError(image_id)
        return VoteState(image_id=image_id, voted=image.has_voter(user_id), votes=image.votes)

    def has_voted(self, image_id: str, user_id: str) -> bool:
        return self.status(image_id, user_id).voted
