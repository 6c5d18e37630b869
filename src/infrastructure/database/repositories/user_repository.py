from __future__ import annotations

import os
import threading
from dataclasses import replace
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.user import Role, UserRecord
from src.domain.result import Found, Lookup, NotFound, TransientError
from src.infrastructure.database.postgres_client import get_postgres_client

_MEM_USERS: dict[str, UserRecord] = {}
_MEM_LOCK = threading.Lock()


def clear_memory_store() -> None:
    with _MEM_LOCK:
        _MEM_USERS.clear()


class UserRepository:
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

    def _row_to_entity(self, row: dict) -> UserRecord:
        """Convert database row to UserRecord."""
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)

        try:
            role = Role(row.get("role") or Role.DESIGNER.value)
        except ValueError:
            role = Role.DESIGNER
        return UserRecord(
            uid=row["uid"],
            email=row.get("email"),
            display_name=row.get("display_name"),
            photo_url=row.get("photo_url"),
            role=role,
            created_at=created_at,
        )

    def find(self, uid: str) -> Lookup[UserRecord]:
        return self._find_by("uid", uid)

    def find_by_email(self, email: str) -> Lookup[UserRecord]:
        return self._find_by("email", email)

    def _find_by(self, column: str, value: str) -> Lookup[UserRecord]:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                # column is one of two fixed names, never caller input
                row = self.pg_client.execute_one(
                    f"SELECT * FROM users WHERE {column} = %s LIMIT 1", (value,)
                )
            except Exception as exc:
                return TransientError(value, exc)
            return Found(self._row_to_entity(row)) if row else NotFound(value)

        # In-memory mode
        try:
            in_memory = self._in_memory
        except RuntimeError as exc:
            return TransientError(value, exc)
        if in_memory:
            for user in _MEM_USERS.values():
                if getattr(user, column) == value:
                    return Found(user)
            return NotFound(value)

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("users").select("*").eq(column, value).limit(1).execute()
        except Exception as exc:  # pragma: no cover - network
            return TransientError(value, exc)
        rows = res.data or []  # pragma: no cover - network
        return Found(self._row_to_entity(rows[0])) if rows else NotFound(value)

    def ensure_exists(
        self,
        uid: str,
        email: str | None,
        display_name: str | None = None,
        photo_url: str | None = None,
    ) -> tuple[UserRecord, bool]:
        """Create the user with the designer role unless a record already exists.

        Returns the stored record and whether it was created by this call. An
        existing record, including its role, is left untouched.
        """
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                with self.pg_client.transaction() as cursor:
                    cursor.execute(
                        """
                        INSERT INTO users (uid, email, display_name, photo_url, role)
                        VALUES (%s, %s, %s, %s, 'designer')
                        ON CONFLICT (uid) DO NOTHING
                        RETURNING *
                        """,
                        (uid, email, display_name, photo_url),
                    )
                    created = cursor.fetchone()
                    if created is None:
                        cursor.execute("SELECT * FROM users WHERE uid = %s", (uid,))
                        return self._row_to_entity(dict(cursor.fetchone())), False
                return self._row_to_entity(dict(created)), True
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL ensure user failed: {exc}") from exc

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                existing = _MEM_USERS.get(uid)
                if existing is not None:
                    return existing, False
                entity = UserRecord(
                    uid=uid,
                    email=email,
                    display_name=display_name,
                    photo_url=photo_url,
                    role=Role.DESIGNER,
                    created_at=datetime.now(UTC),
                )
                _MEM_USERS[uid] = entity
                return entity, True

        # Supabase mode
        try:  # pragma: no cover - network
            data = {
                "uid": uid,
                "email": email,
                "display_name": display_name,
                "photo_url": photo_url,
                "role": Role.DESIGNER.value,
            }
            res = (
                self.client.table("users")
                .upsert(data, on_conflict="uid", ignore_duplicates=True)
                .execute()
            )
            created = bool(res.data)
            current = self.client.table("users").select("*").eq("uid", uid).limit(1).execute()
            return self._row_to_entity(current.data[0]), created
        except Exception as exc:
            raise RuntimeError(f"DB ensure user failed: {exc}") from exc

    def set_role(self, uid: str, role: Role) -> UserRecord | None:
        """Overwrite the role. Returns None when no such user exists."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.execute_one(
                    "UPDATE users SET role = %s WHERE uid = %s RETURNING *", (role.value, uid)
                )
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL update user failed: {exc}") from exc
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self._in_memory:
            with _MEM_LOCK:
                current = _MEM_USERS.get(uid)
                if current is None:
                    return None
                updated = replace(current, role=role)
                _MEM_USERS[uid] = updated
                return updated

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("users").update({"role": role.value}).eq("uid", uid).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB update user failed: {exc}") from exc
