"""Version lineage over the ``parent_id`` pointers of image records.

Records are fetched one at a time while walking up a chain. A parent that no
longer resolves (its record was deleted) ends the walk at the last record that
did; the walk result says so through ``truncated`` instead of raising.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from src.domain.entities.image import ImageRecord
from src.domain.result import Found, Lookup, NotFound, TransientError

logger = logging.getLogger(__name__)


class ImageNotFoundError(LookupError):
    def __init__(self, image_id: str) -> None:
        super().__init__(f"Image {image_id} not found")
        self.image_id = image_id


class ImageSource(Protocol):
    def find(self, image_id: str) -> Lookup[ImageRecord]: ...

    def list_children(self, parent_id: str) -> list[ImageRecord]: ...


@dataclass
class Lineage:
    images: list[ImageRecord] = field(default_factory=list)
    truncated: bool = False  # walk stopped at a parent id that no longer resolves


@dataclass(frozen=True)
class VersionInfo:
    version: int
    version_history: list[str]


def next_version(parent: ImageRecord | None) -> VersionInfo:
    """Version fields for a record derived from ``parent`` (None for a root)."""
    if parent is None:
        return VersionInfo(version=1, version_history=[])
    history = list(parent.version_history) if parent.version_history is not None else [parent.id]
    return VersionInfo(version=(parent.version or 1) + 1, version_history=[*history, parent.id])


def _resolve(lookup: Lookup[ImageRecord]) -> ImageRecord | None:
    if isinstance(lookup, TransientError):
        raise RuntimeError(f"Could not load image {lookup.key}: {lookup.error}") from lookup.error
    if isinstance(lookup, NotFound):
        return None
    return lookup.value


@dataclass
class LineageService:
    images: ImageSource

    def find_root(self, image: ImageRecord) -> Lineage:
        """Walk up from ``image``; the last element of the result is the root reached."""
        chain = Lineage(images=[image])
        current = image
        while current.parent_id:
            parent = _resolve(self.images.find(current.parent_id))
            if parent is None:
                logger.warning(
                    "Lineage of %s stops at %s: parent %s is missing",
                    image.id, current.id, current.parent_id,
                )
                chain.truncated = True
                break
            chain.images.append(parent)
            current = parent
        return chain

    def trace_versions(self, image_id: str) -> Lineage:
        """The root of ``image_id``'s chain followed by the root's direct derivatives."""
        image = _resolve(self.images.find(image_id))
        if image is None:
            raise ImageNotFoundError(image_id)
        upward = self.find_root(image)
        root = upward.images[-1]
        return Lineage(
            images=[root, *self.images.list_children(root.id)],
            truncated=upward.truncated,
        )

    def get_versions(self, image_id: str) -> list[ImageRecord]:
        return self.trace_versions(image_id).images

    def trace_ancestors(self, image_id: str) -> Lineage:
        """``image_id`` and its ancestors, oldest first. Unknown ids give an empty lineage."""
        image = _resolve(self.images.find(image_id))
        if image is None:
            return Lineage()
        upward = self.find_root(image)
        upward.images.reverse()
        return upward

    def get_ancestors(self, image_id: str) -> list[ImageRecord]:
        return self.trace_ancestors(image_id).images
