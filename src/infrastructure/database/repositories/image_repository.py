from __future__ import annotations

import logging
import os
import threading
import uuid
from dataclasses import replace
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.image import ImageRecord
from src.domain.result import Found, Lookup, NotFound, TransientError, value_or_none
from src.infrastructure.database.postgres_client import get_postgres_client

logger = logging.getLogger(__name__)

# module-level in-memory store for disabled mode
_MEM_IMAGES: dict[str, ImageRecord] = {}
_MEM_LOCK = threading.Lock()

_COLUMNS = (
    "prompt, image_url, owner_id, owner_name, owner_email, "
    "parent_id, version, is_latest_version, version_history"
)


def clear_memory_store() -> None:
    with _MEM_LOCK:
        _MEM_IMAGES.clear()


def _newest_first(records: list[ImageRecord]) -> list[ImageRecord]:
    return sorted(records, key=lambda r: r.created_at, reverse=True)


class ImageRepository:
    """Image metadata documents, stored in Supabase, local PostgreSQL or memory."""

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = os.getenv("SUPABASE_DISABLED", "0") == "1"
        self.use_local_db = os.getenv("USE_LOCAL_DB", "0") == "1"
        self.pg_client = get_postgres_client() if self.use_local_db else None

    @property
    def _in_memory(self) -> bool:
        if self.disabled:
            return True
        if self.client is None:
            raise RuntimeError("Supabase is not configured. Set SUPABASE_URL and SUPABASE_ANON_KEY.")
        return False

    def _row_to_entity(self, row: dict) -> ImageRecord:
        """Convert database row to ImageRecord."""
        # PostgreSQL returns datetime objects, Supabase returns ISO strings
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        return ImageRecord(
            id=str(row["id"]),
            prompt=row["prompt"],
            image_url=row["image_url"],
            owner_id=row["owner_id"],
            owner_name=row.get("owner_name") or "Anonymous",
            owner_email=row.get("owner_email") or "No email",
            created_at=created_at,
            votes=row.get("votes") or 0,
            voter_ids=tuple(row.get("voter_ids") or ()),
            parent_id=row.get("parent_id"),
            version=row.get("version") or 1,
            is_latest_version=row.get("is_latest_version", True),
            version_history=(
                tuple(row["version_history"]) if row.get("version_history") is not None else None
            ),
        )

    def create(
        self,
        prompt: str,
        image_url: str,
        owner_id: str,
        owner_name: str,
        owner_email: str,
        parent_id: str | None = None,
        version: int = 1,
        version_history: list[str] | None = None,
    ) -> ImageRecord:
        """Insert a record. With a parent, the parent stops being the latest version
        in the same atomic step."""
        history = list(version_history or [])

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                with self.pg_client.transaction() as cursor:
                    if parent_id:
                        cursor.execute(
                            "UPDATE images SET is_latest_version = FALSE WHERE id = %s",
                            (parent_id,),
                        )
                    cursor.execute(
                        f"INSERT INTO images ({_COLUMNS}) "
                        "VALUES (%s, %s, %s, %s, %s, %s, %s, TRUE, %s) RETURNING *",
                        (prompt, image_url, owner_id, owner_name, owner_email,
                         parent_id, version, history),
                    )
                    row = cursor.fetchone()
                return self._row_to_entity(dict(row))
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert image failed: {exc}") from exc

        # In-memory mode
        if self._in_memory:
            entity = ImageRecord(
                id=f"img_{uuid.uuid4().hex[:12]}",
                prompt=prompt,
                image_url=image_url,
                owner_id=owner_id,
                owner_name=owner_name,
                owner_email=owner_email,
                created_at=datetime.now(UTC),
                parent_id=parent_id,
                version=version,
                is_latest_version=True,
                version_history=tuple(history),
            )
            with _MEM_LOCK:
                parent = _MEM_IMAGES.get(parent_id) if parent_id else None
                if parent is not None:
                    _MEM_IMAGES[parent.id] = replace(parent, is_latest_version=False)
                _MEM_IMAGES[entity.id] = entity
            return entity

        # Supabase mode
        try:  # pragma: no cover - network
            if parent_id:
                res = self.client.rpc(
                    "create_image_version",
                    {
                        "p_prompt": prompt,
                        "p_image_url": image_url,
                        "p_owner_id": owner_id,
                        "p_owner_name": owner_name,
                        "p_owner_email": owner_email,
                        "p_parent_id": parent_id,
                        "p_version": version,
                        "p_version_history": history,
                    },
                ).execute()
            else:
                data = {
                    "prompt": prompt,
                    "image_url": image_url,
                    "owner_id": owner_id,
                    "owner_name": owner_name,
                    "owner_email": owner_email,
                    "parent_id": None,
                    "version": version,
                    "is_latest_version": True,
                    "version_history": history,
                }
                res = self.client.table("images").insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            raise RuntimeError(f"DB insert image failed: {exc}") from exc

    def find(self, image_id: str) -> Lookup[ImageRecord]:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.execute_one("SELECT * FROM images WHERE id = %s", (image_id,))
            except Exception as exc:
                return TransientError(image_id, exc)
            return Found(self._row_to_entity(row)) if row else NotFound(image_id)

        # In-memory mode
        try:
            in_memory = self._in_memory
        except RuntimeError as exc:
            return TransientError(image_id, exc)
        if in_memory:
            entity = _MEM_IMAGES.get(image_id)
            return Found(entity) if entity is not None else NotFound(image_id)

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("images").select("*").eq("id", image_id).limit(1).execute()
        except Exception as exc:  # pragma: no cover - network
            return TransientError(image_id, exc)
        rows = res.data or []  # pragma: no cover - network
        return Found(self._row_to_entity(rows[0])) if rows else NotFound(image_id)

    def get(self, image_id: str) -> ImageRecord | None:
        return value_or_none(self.find(image_id))

    def list_all(self) -> list[ImageRecord]:
        """All images, newest first."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            rows = self.pg_client.execute_many("SELECT * FROM images ORDER BY created_at DESC")
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self._in_memory:
            return _newest_first(list(_MEM_IMAGES.values()))

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("images").select("*").order("created_at", desc=True).execute()
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:
            raise RuntimeError(f"DB list images failed: {exc}") from exc

    def list_by_owner(self, owner_id: str) -> list[ImageRecord]:
        """Images created by one user, newest first."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            query = "SELECT * FROM images WHERE owner_id = %s ORDER BY created_at DESC"
            rows = self.pg_client.execute_many(query, (owner_id,))
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self._in_memory:
            return _newest_first([img for img in _MEM_IMAGES.values() if img.owner_id == owner_id])

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("images")
                .select("*")
                .eq("owner_id", owner_id)
                .order("created_at", desc=True)
                .execute()
            )
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:
            raise RuntimeError(f"DB list images failed: {exc}") from exc

    def list_children(self, parent_id: str) -> list[ImageRecord]:
        """Direct derivatives of ``parent_id`` in creation order."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            query = "SELECT * FROM images WHERE parent_id = %s ORDER BY created_at"
            rows = self.pg_client.execute_many(query, (parent_id,))
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self._in_memory:
            return [img for img in _MEM_IMAGES.values() if img.parent_id == parent_id]

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("images")
                .select("*")
                .eq("parent_id", parent_id)
                .order("created_at")
                .execute()
            )
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:
            raise RuntimeError(f"DB list image versions failed: {exc}") from exc

    def toggle_vote(self, image_id: str, user_id: str) -> ImageRecord | None:
        """Add or remove ``user_id`` from the voter set, keeping ``votes`` in step.

        Returns the updated record, or None when the image does not exist.
        """
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            query = """
                UPDATE images SET
                    votes = CASE WHEN %(user)s = ANY(voter_ids) THEN votes - 1 ELSE votes + 1 END,
                    voter_ids = CASE
                        WHEN %(user)s = ANY(voter_ids) THEN array_remove(voter_ids, %(user)s)
                        ELSE array_append(voter_ids, %(user)s)
                    END
                WHERE id = %(id)s
                RETURNING *
            """
            try:
                row = self.pg_client.execute_one(query, {"user": user_id, "id": image_id})
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL vote update failed: {exc}") from exc
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                current = _MEM_IMAGES.get(image_id)
                if current is None:
                    return None
                if current.has_voter(user_id):
                    voters = tuple(v for v in current.voter_ids if v != user_id)
                else:
                    voters = current.voter_ids + (user_id,)
                updated = replace(current, voter_ids=voters, votes=len(voters))
                _MEM_IMAGES[image_id] = updated
                return updated

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.rpc(
                "toggle_image_vote", {"p_image_id": image_id, "p_user_id": user_id}
            ).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB vote update failed: {exc}") from exc

    def delete(self, image_id: str) -> bool:
        """Delete one record. Derived versions keep their ``parent_id``."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            affected = self.pg_client.execute_update("DELETE FROM images WHERE id = %s", (image_id,))
            return affected > 0

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                return _MEM_IMAGES.pop(image_id, None) is not None

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("images").delete().eq("id", image_id).execute()
            return bool(res.data)
        except Exception as exc:
            raise RuntimeError(f"DB delete image failed: {exc}") from exc
