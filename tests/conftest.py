"""Pytest configuration and fixtures."""

import json
import os

import pytest

os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-key")
os.environ.setdefault("OPENAI_API_KEY", "test-openai-key")

from config import Config  # noqa: E402

PHASE_NAMES = ["Awareness", "Acceptance", "Processing", "Reframing", "Integration", "Maintenance"]


def make_phases(duration=90, count=6):
    return [
        {"phase": PHASE_NAMES[i % 6], "text": f"Breathe and notice, step {i + 1}.",
         "theme": {"duration": duration}}
        for i in range(count)
    ]


class FakeTimer:
    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records timers instead of starting threads; tests fire them by hand."""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, callback):
        timer = FakeTimer(interval, callback)
        self.timers.append(timer)
        return timer

    def pending(self, interval=None):
        return [
            t for t in self.timers
            if not t.cancelled and not t.fired
            and (interval is None or t.interval == interval)
        ]

    def fire(self, interval=None):
        """Fire the oldest pending timer. Returns False if none is pending."""
        pending = self.pending(interval)
        if not pending:
            return False
        timer = pending[0]
        timer.fired = True
        timer.callback()
        return True

    def run_ticks(self, count, interval=1.0):
        fired = 0
        for _ in range(count):
            if not self.fire(interval):
                break
            fired += 1
        return fired


class FakeStore:
    """In-memory stand-in for MoodStore."""

    def __init__(self):
        self.entries = {}
        self.sessions = []
        self.fail_record = False
        self._next = 1

    def create_entry(self, user_id, current_emotion, note=None):
        entry_id = f"entry-{self._next}"
        self._next += 1
        entry = {
            "id": entry_id,
            "user_id": user_id,
            "current_emotion": current_emotion,
            "target_emotion": None,
            "note": note,
            "created_at": "2026-10-19T09:00:00+00:00",
        }
        self.entries[entry_id] = entry
        return dict(entry)

    def get_entry(self, entry_id):
        entry = self.entries.get(entry_id)
        return dict(entry) if entry else None

    def set_target_emotion(self, entry_id, target_emotion):
        if entry_id not in self.entries:
            return None
        self.entries[entry_id]["target_emotion"] = target_emotion
        return dict(self.entries[entry_id])

    def list_entries(self, user_id, limit=20):
        rows = [e for e in self.entries.values() if e["user_id"] == user_id]
        return list(reversed(rows))[:limit]

    def record_session(self, user_id, mood_entry_id, duration_seconds):
        if self.fail_record:
            raise RuntimeError("insert failed")
        row = {
            "user_id": user_id,
            "mood_entry_id": mood_entry_id,
            "completed": True,
            "duration_seconds": duration_seconds,
        }
        self.sessions.append(row)
        return row

    def list_sessions(self, user_id, limit=20):
        return [s for s in self.sessions if s["user_id"] == user_id][:limit]

    def match_chunks(self, embedding, current_emotion, target_emotion, count=10):
        return [{"id": "c1", "text": "Let the breath slow down.",
                 "current_emotion": current_emotion, "target_emotion": target_emotion,
                 "distance": 0.1}]


class FakeAI:
    def __init__(self, phases=None):
        self.reply = json.dumps(
            phases if phases is not None
            else [{"phase": n, "text": f"{n} words."} for n in PHASE_NAMES]
        )
        self.chat_calls = []
        self.spoken = []

    def chat(self, messages, system_prompt=None):
        self.chat_calls.append((messages, system_prompt))
        return self.reply

    def embed(self, text):
        return [0.1, 0.2, 0.3]

    def stream_speech(self, text):
        self.spoken.append(text)
        yield b"ID3"
        yield b"-audio"


class AppTestConfig(Config):
    TICK_INTERVAL_SECONDS = 1.0
    COMPLETION_DISPLAY_DELAY = 2.5
    DEFAULT_PHASE_DURATION = 90
    GENERATED_PHASE_DURATION = 30


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def fake_ai():
    return FakeAI()


@pytest.fixture
def app(store, fake_ai, scheduler, tmp_path):
    from app import create_app
    from services.phase_cache import PhaseCache
    from services.session_manager import SessionManager

    class _Config(AppTestConfig):
        AMBIENT_AUDIO_DIR = str(tmp_path)

    (tmp_path / "calm.mp3").write_bytes(b"ambient")
    cache = PhaseCache()
    sessions = SessionManager(store, cache, _Config, synthesize=None, scheduler=scheduler)
    return create_app(_Config, store=store, ai=fake_ai, phase_cache=cache, sessions=sessions)


@pytest.fixture
def client(app):
    """Create a test client."""
    return app.test_client()
