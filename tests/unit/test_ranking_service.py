from datetime import UTC, datetime, timedelta

from src.domain.entities.image import ImageRecord
from src.domain.services.ranking_service import RankingService as RS

BASE = datetime(2024, 1, 1, tzinfo=UTC)


def make_image(idx: int, prompt: str = "image", votes: int = 0, owner: str = "A") -> ImageRecord:
    return ImageRecord(
        id=f"img_{idx}",
        prompt=prompt,
        image_url=f"https://cdn.example.com/{idx}.png",
        owner_id=owner,
        owner_name=f"Designer {owner}",
        owner_email=f"{owner.lower()}@example.com",
        created_at=BASE + timedelta(minutes=idx),
        votes=votes,
    )


def test_prompt_search_ranks_cat_prompts():
    images = [make_image(1, "a fluffy cat"), make_image(2, "a dog"), make_image(3, "cat in a hat")]
    result = RS.search_by_prompt(images, "cat")
    assert [img.prompt for img in result] == ["a fluffy cat", "cat in a hat"]


def test_exact_substring_beats_keyword_match():
    images = [make_image(1, "a red car and a cat"), make_image(2, "red cat")]
    result = RS.search_by_prompt(images, "red cat")
    assert [img.id for img in result] == ["img_2", "img_1"]


def test_blank_search_returns_everything_unchanged():
    images = [make_image(3), make_image(1), make_image(2)]
    assert RS.search_by_prompt(images, "") == images
    assert RS.search_by_prompt(images, "   ") == images


def test_search_is_case_insensitive():
    images = [make_image(1, "A Fluffy CAT")]
    assert RS.search_by_prompt(images, "cat") == images


def test_keyword_search_scores_each_keyword():
    images = [make_image(1, "a calm lake"), make_image(2, "water at sunset"), make_image(3, "sunset city")]
    result = RS.search_by_keywords(images, ["sunset", "water"])
    assert [img.id for img in result] == ["img_2", "img_3"]


def test_keyword_search_without_keywords_returns_all():
    images = [make_image(1), make_image(2)]
    assert RS.search_by_keywords(images, []) == images


def test_top_voted_excludes_zero_votes():
    images = [make_image(i, votes=v) for i, v in enumerate([0, 5, 3, 1])]
    top = RS.top_voted(images, 2)
    assert [img.votes for img in top] == [5, 3]

    everything = RS.top_voted(images, 10)
    assert [img.votes for img in everything] == [5, 3, 1]


def test_designer_rankings_sum_and_count():
    images = [
        make_image(1, votes=3, owner="A"),
        make_image(2, votes=2, owner="A"),
        make_image(3, votes=5, owner="B"),
    ]
    rankings = RS.designer_rankings(images)
    by_owner = {r.owner_id: r for r in rankings}
    assert by_owner["A"].total_votes == 5 and by_owner["A"].image_count == 2
    assert by_owner["B"].total_votes == 5 and by_owner["B"].image_count == 1
    # tie keeps first-seen order
    assert [r.owner_id for r in rankings] == ["A", "B"]
    assert by_owner["A"].display_name == "Designer A"
