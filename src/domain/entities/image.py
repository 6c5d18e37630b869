from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class ImageRecord:
    id: str
    prompt: str
    image_url: str  # durable media URL
    owner_id: str
    owner_name: str
    owner_email: str
    created_at: datetime
    votes: int = 0
    voter_ids: tuple[str, ...] = field(default_factory=tuple)
    # Lineage fields
    parent_id: str | None = None  # None marks a root image
    version: int = 1
    is_latest_version: bool = True
    # ancestor ids, oldest first; None on legacy records written before lineage tracking
    version_history: tuple[str, ...] | None = field(default_factory=tuple)

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def has_voter(self, user_id: str) -> bool:
        return user_id in self.voter_ids
