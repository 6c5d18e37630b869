"""
Tests for saving generated images and reprompted versions.
"""
from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from src.application.use_cases.save_generated_image import SaveGeneratedImageUseCase
from src.domain.entities.image import ImageRecord
from src.domain.services.lineage_service import ImageNotFoundError


@pytest.fixture()
def mock_dependencies():
    storage = Mock()
    image_repo = Mock()
    storage.upload.return_value = Mock(url="https://cdn.example.com/astra-images/user_1/image.png")
    image_repo.create.side_effect = lambda **kwargs: _record("img_new", **kwargs)
    return storage, image_repo


def _record(image_id: str, **overrides) -> ImageRecord:
    fields = dict(
        prompt="a lighthouse",
        image_url="https://cdn.example.com/x.png",
        owner_id="user_1",
        owner_name="Ada",
        owner_email="ada@example.com",
        parent_id=None,
        version=1,
        version_history=(),
    )
    fields.update(overrides)
    fields["version_history"] = tuple(fields["version_history"] or ())
    return ImageRecord(id=image_id, created_at=datetime.now(UTC), **fields)


class TestSaveGeneratedImageUseCase:
    def test_original_image(self, mock_dependencies):
        storage, image_repo = mock_dependencies
        uc = SaveGeneratedImageUseCase(storage, image_repo)

        result = uc.execute("user_1", "a lighthouse", "https://openai.example.com/tmp.png")

        storage.upload.assert_called_once_with(
            "https://openai.example.com/tmp.png", folder="astra-images/user_1"
        )
        kwargs = image_repo.create.call_args.kwargs
        assert kwargs["version"] == 1
        assert kwargs["parent_id"] is None
        assert kwargs["version_history"] == []
        assert kwargs["image_url"] == "https://cdn.example.com/astra-images/user_1/image.png"
        assert result.id == "img_new"

    def test_owner_defaults(self, mock_dependencies):
        storage, image_repo = mock_dependencies
        uc = SaveGeneratedImageUseCase(storage, image_repo)

        uc.execute("user_1", "a lighthouse", "data:image/png;base64,AAAA")

        kwargs = image_repo.create.call_args.kwargs
        assert kwargs["owner_name"] == "Anonymous"
        assert kwargs["owner_email"] == "No email"

    def test_reprompt_becomes_next_version(self, mock_dependencies):
        storage, image_repo = mock_dependencies
        parent = _record("img_parent", version=2, version_history=("img_root",), parent_id="img_root")
        image_repo.get.return_value = parent
        uc = SaveGeneratedImageUseCase(storage, image_repo)

        uc.execute("user_1", "a lighthouse at dusk", "AAAA", parent_id="img_parent", display_name="Ada")

        kwargs = image_repo.create.call_args.kwargs
        assert kwargs["version"] == 3
        assert kwargs["parent_id"] == "img_parent"
        assert kwargs["version_history"] == ["img_root", "img_parent"]
        assert kwargs["owner_name"] == "Ada"

    def test_missing_parent_is_rejected_before_upload(self, mock_dependencies):
        storage, image_repo = mock_dependencies
        image_repo.get.return_value = None
        uc = SaveGeneratedImageUseCase(storage, image_repo)

        with pytest.raises(ImageNotFoundError):
            uc.execute("user_1", "prompt", "AAAA", parent_id="gone")
        storage.upload.assert_not_called()
        image_repo.create.assert_not_called()

    def test_empty_prompt(self, mock_dependencies):
        storage, image_repo = mock_dependencies
        uc = SaveGeneratedImageUseCase(storage, image_repo)
        with pytest.raises(ValueError):
            uc.execute("user_1", "   ", "AAAA")
