from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from src.domain.entities.image import ImageRecord

EXACT_MATCH_SCORE = 10
KEYWORD_MATCH_SCORE = 1
IMAGE_KEYWORD_SCORE = 2


@dataclass
class DesignerRanking:
    owner_id: str
    display_name: str
    email: str
    total_votes: int = 0
    image_count: int = 0


class RankingService:
    """In-memory keyword scoring and vote ranking over image records.

    The document store has no full-text search, so every search runs over the
    full image set. Sorting is stable: equal scores keep their input order.
    """

    # Whole term as a substring: +10, each whitespace-delimited keyword: +1
    @staticmethod
    def score_prompt(term: str, prompt: str) -> int:
        prompt_lower = prompt.lower()
        term_lower = term.lower()
        score = EXACT_MATCH_SCORE if term_lower in prompt_lower else 0
        score += sum(KEYWORD_MATCH_SCORE for word in term_lower.split() if word in prompt_lower)
        return score

    # Each image keyword found in the prompt: +2
    @staticmethod
    def score_keywords(keywords: Sequence[str], prompt: str) -> int:
        prompt_lower = prompt.lower()
        return sum(IMAGE_KEYWORD_SCORE for kw in keywords if kw.lower() in prompt_lower)

    @staticmethod
    def _rank(scored: Iterable[tuple[ImageRecord, int]]) -> list[ImageRecord]:
        hits = [(image, score) for image, score in scored if score > 0]
        hits.sort(key=lambda item: item[1], reverse=True)
        return [image for image, _ in hits]

    @classmethod
    def search_by_prompt(cls, images: Sequence[ImageRecord], term: str) -> list[ImageRecord]:
        """Images whose prompt matches ``term``, best match first.

        A blank term matches everything and leaves the order untouched.
        """
        if not term or not term.strip():
            return list(images)
        return cls._rank((image, cls.score_prompt(term, image.prompt)) for image in images)

    @classmethod
    def search_by_keywords(
        cls, images: Sequence[ImageRecord], keywords: Sequence[str]
    ) -> list[ImageRecord]:
        """Images whose prompt mentions the extracted keywords.

        With no keywords there is nothing to rank by, so every image is returned.
        """
        keywords = [kw for kw in keywords if kw and kw.strip()]
        if not keywords:
            return list(images)
        return cls._rank((image, cls.score_keywords(keywords, image.prompt)) for image in images)

    @staticmethod
    def top_voted(images: Sequence[ImageRecord], limit: int = 10) -> list[ImageRecord]:
        voted = [image for image in images if image.votes > 0]
        voted.sort(key=lambda image: image.votes, reverse=True)
        return voted[: max(limit, 0)]

    @staticmethod
    def designer_rankings(images: Sequence[ImageRecord]) -> list[DesignerRanking]:
        stats: dict[str, DesignerRanking] = {}
        for image in images:
            entry = stats.get(image.owner_id)
            if entry is None:
                entry = DesignerRanking(
                    owner_id=image.owner_id,
                    display_name=image.owner_name,
                    email=image.owner_email,
                )
                stats[image.owner_id] = entry
            entry.total_votes += image.votes
            entry.image_count += 1
        return sorted(stats.values(), key=lambda entry: entry.total_votes, reverse=True)
