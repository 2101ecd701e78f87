"""Back-fill embeddings for inspiration chunks that do not have one yet.

Run with ``python -m services.chunk_embedder`` after loading new chunks
into the content_chunks table.
"""

import logging

logger = logging.getLogger(__name__)


def embed_missing_chunks(store, ai, limit=1000):
    """Embed every chunk without an embedding. Returns the number updated."""
    rows = store.chunks_missing_embeddings(limit=limit)
    updated = 0
    for row in rows:
        text = (row.get("text") or "").strip()
        if not text:
            logger.warning("Skipping empty chunk %s", row.get("id"))
            continue
        store.set_chunk_embedding(row["id"], ai.embed(text))
        updated += 1
    logger.info("Embedded %d of %d chunks", updated, len(rows))
    return updated


if __name__ == "__main__":
    from config import Config
    from services.mood_store import MoodStore
    from services.openai_service import OpenAIService

    logging.basicConfig(level=Config.LOG_LEVEL)
    count = embed_missing_chunks(
        MoodStore.from_config(Config), OpenAIService.from_config(Config)
    )
    print(f"Embedded {count} chunks")
