from __future__ import annotations

from dataclasses import dataclass

from src.domain.entities.image import ImageRecord
from src.domain.services.keyword_extractor import KeywordExtractor
from src.domain.services.ranking_service import DesignerRanking, RankingService
from src.infrastructure.database.repositories.image_repository import ImageRepository


@dataclass
class SimilarityResult:
    keywords: list[str]
    images: list[ImageRecord]


@dataclass
class SearchImagesUseCase:
    """Gallery, search and leaderboard queries over the full image set."""

    image_repo: ImageRepository

    def _scope(self, owner_id: str | None) -> list[ImageRecord]:
        if owner_id:
            return self.image_repo.list_by_owner(owner_id)
        return self.image_repo.list_all()

    def all_images(self, owner_id: str | None = None) -> list[ImageRecord]:
        return self._scope(owner_id)

    def by_prompt(self, term: str, owner_id: str | None = None) -> list[ImageRecord]:
        return RankingService.search_by_prompt(self._scope(owner_id), term)

    def by_image(self, data: bytes, owner_id: str | None = None) -> SimilarityResult:
        keywords = KeywordExtractor.extract_keywords(data)
        images = RankingService.search_by_keywords(self._scope(owner_id), keywords)
        return SimilarityResult(keywords=keywords, images=images)

    def top_voted(self, limit: int = 10) -> list[ImageRecord]:
        return RankingService.top_voted(self.image_repo.list_all(), limit)

    def designer_rankings(self) -> list[DesignerRanking]:
        return RankingService.designer_rankings(self.image_repo.list_all())
