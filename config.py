import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _parse_openai_base_url():
    """Normalise OPENAI_BASE_URL, accepting it with or without scheme and /v1."""
    raw = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1").strip()

    if "://" not in raw:
        raw = f"https://{raw}"

    raw = raw.rstrip("/")
    if not raw.endswith("/v1"):
        raw = f"{raw}/v1"

    return raw


class Config:
    # Flask
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
    DEBUG = os.getenv("FLASK_DEBUG", "true").lower() == "true"
    HOST = os.getenv("FLASK_HOST", "0.0.0.0")
    PORT = int(os.getenv("FLASK_PORT", "5000"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # Supabase
    SUPABASE_URL = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # OpenAI
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_BASE_URL = _parse_openai_base_url()
    OPENAI_CHAT_MODEL = os.getenv("OPENAI_CHAT_MODEL", "gpt-4o-mini")
    OPENAI_EMBEDDING_MODEL = os.getenv(
        "OPENAI_EMBEDDING_MODEL", "text-embedding-3-small"
    )
    OPENAI_TTS_MODEL = os.getenv("OPENAI_TTS_MODEL", "gpt-4o-mini-tts")
    OPENAI_TTS_VOICE = os.getenv("OPENAI_TTS_VOICE", "alloy")

    # Generation
    MATCH_CHUNK_COUNT = int(os.getenv("MATCH_CHUNK_COUNT", "10"))
    GENERATED_PHASE_DURATION = int(os.getenv("GENERATED_PHASE_DURATION", "30"))

    # Playback
    DEFAULT_PHASE_DURATION = int(os.getenv("DEFAULT_PHASE_DURATION", "90"))
    TICK_INTERVAL_SECONDS = float(os.getenv("TICK_INTERVAL_SECONDS", "1.0"))
    COMPLETION_DISPLAY_DELAY = float(os.getenv("COMPLETION_DISPLAY_DELAY", "2.5"))

    # Ambient audio
    AMBIENT_AUDIO_DIR = os.getenv(
        "AMBIENT_AUDIO_DIR",
        os.path.join(os.path.dirname(__file__), "static", "audio"),
    )
