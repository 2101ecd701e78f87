"""Supabase access for mood entries, meditation sessions and
inspiration chunks."""

import logging
from datetime import datetime, timezone

from supabase import Client, create_client

logger = logging.getLogger(__name__)

MOOD_ENTRIES_TABLE = "mood_entries"
MEDITATION_SESSIONS_TABLE = "meditation_sessions"
CONTENT_CHUNKS_TABLE = "content_chunks"
MATCH_CHUNKS_RPC = "match_chunks"

ENTRY_COLUMNS = "id, user_id, current_emotion, target_emotion, note, created_at"


class MoodStore:
    def __init__(self, client: Client):
        self.db = client

    @classmethod
    def from_config(cls, config):
        if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        return cls(create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY))

    # -- mood entries --

    def create_entry(self, user_id: str, current_emotion: str, note: str | None = None) -> dict | None:
        """Record a check-in. target_emotion starts empty."""
        data = {
            "user_id": user_id,
            "current_emotion": current_emotion,
            "target_emotion": None,
            "note": note,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        result = self.db.table(MOOD_ENTRIES_TABLE).insert(data).execute()
        return result.data[0] if result.data else None

    def get_entry(self, entry_id: str) -> dict | None:
        result = (
            self.db.table(MOOD_ENTRIES_TABLE)
            .select(ENTRY_COLUMNS)
            .eq("id", entry_id)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    def set_target_emotion(self, entry_id: str, target_emotion: str) -> dict | None:
        result = (
            self.db.table(MOOD_ENTRIES_TABLE)
            .update({"target_emotion": target_emotion})
            .eq("id", entry_id)
            .execute()
        )
        return result.data[0] if result.data else None

    def list_entries(self, user_id: str, limit: int = 20) -> list[dict]:
        """Most recent check-ins first."""
        result = (
            self.db.table(MOOD_ENTRIES_TABLE)
            .select(ENTRY_COLUMNS)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return result.data or []

    # -- meditation sessions --

    def record_session(self, user_id: str, mood_entry_id: str, duration_seconds: int) -> dict | None:
        """Insert the single completion record for a session."""
        data = {
            "user_id": user_id,
            "mood_entry_id": mood_entry_id,
            "completed": True,
            "duration_seconds": int(duration_seconds),
        }
        result = self.db.table(MEDITATION_SESSIONS_TABLE).insert(data).execute()
        return result.data[0] if result.data else None

    def list_sessions(self, user_id: str, limit: int = 20) -> list[dict]:
        result = (
            self.db.table(MEDITATION_SESSIONS_TABLE)
            .select("*")
            .eq("user_id", user_id)
            .limit(limit)
            .execute()
        )
        return result.data or []

    # -- inspiration chunks --

    def match_chunks(self, embedding: list[float], current_emotion: str,
                     target_emotion: str, count: int = 10) -> list[dict]:
        """Nearest inspiration chunks for a journey, via the match_chunks RPC."""
        result = self.db.rpc(
            MATCH_CHUNKS_RPC,
            {
                "query_embedding": embedding,
                "in_current": current_emotion,
                "in_target": target_emotion,
                "match_count": count,
            },
        ).execute()
        return result.data or []

    def chunks_missing_embeddings(self, limit: int = 1000) -> list[dict]:
        result = (
            self.db.table(CONTENT_CHUNKS_TABLE)
            .select("id, text")
            .is_("embedding", "null")
            .limit(limit)
            .execute()
        )
        return result.data or []

    def set_chunk_embedding(self, chunk_id: str, embedding: list[float]) -> None:
        self.db.table(CONTENT_CHUNKS_TABLE).update({"embedding": embedding}).eq("id", chunk_id).execute()
