"""Tests for session loading and teardown."""

from unittest.mock import MagicMock

import pytest
from conftest import AppTestConfig, make_phases

from services import playback
from services.errors import SessionLoadError
from services.phase_cache import PhaseCache
from services.session_manager import SessionManager


@pytest.fixture
def cache():
    return PhaseCache()


@pytest.fixture
def entry_id(store):
    entry = store.create_entry("user-1", "anxious")
    store.set_target_emotion(entry["id"], "calm")
    return entry["id"]


@pytest.fixture
def manager(store, cache, scheduler, tmp_path):
    class _Config(AppTestConfig):
        AMBIENT_AUDIO_DIR = str(tmp_path)

    (tmp_path / "calm.mp3").write_bytes(b"ambient")
    return SessionManager(store, cache, _Config, scheduler=scheduler)


def test_open_starts_paused(manager, cache, entry_id):
    cache.put(entry_id, make_phases())
    engine = manager.open(entry_id)
    assert engine.state == playback.PAUSED
    assert engine.user_id == "user-1"
    assert manager.get(entry_id) is engine
    assert engine.snapshot()["ambient"]["url"] == "/static/audio/calm.mp3"


def test_open_without_entry_id(manager):
    with pytest.raises(SessionLoadError):
        manager.open(None)


def test_open_without_generated_phases(manager, entry_id):
    with pytest.raises(SessionLoadError):
        manager.open(entry_id)


def test_malformed_phases_are_dropped(manager, cache, entry_id):
    cache.put(entry_id, make_phases(count=3))
    with pytest.raises(SessionLoadError):
        manager.open(entry_id)
    assert entry_id not in cache
    assert manager.get(entry_id) is None


def test_store_failure_becomes_load_error(cache, scheduler):
    store = MagicMock()
    store.get_entry.side_effect = RuntimeError("network")
    manager = SessionManager(store, cache, AppTestConfig, scheduler=scheduler)
    with pytest.raises(SessionLoadError):
        manager.open("entry-1")


def test_close_tears_down(manager, cache, entry_id, scheduler):
    cache.put(entry_id, make_phases())
    engine = manager.open(entry_id)
    engine.play()

    assert manager.close(entry_id) is True
    assert scheduler.pending() == []
    assert entry_id not in cache
    assert manager.close(entry_id) is False


def test_completion_clears_cache(manager, cache, entry_id, scheduler, store):
    cache.put(entry_id, make_phases())
    engine = manager.open(entry_id)
    engine.end()
    scheduler.fire(2.5)
    assert engine.state == playback.COMPLETED
    assert entry_id not in cache
    assert store.sessions == [{
        "user_id": "user-1",
        "mood_entry_id": entry_id,
        "completed": True,
        "duration_seconds": 0,
    }]


def test_reopen_replaces_engine(manager, cache, entry_id, scheduler):
    cache.put(entry_id, make_phases())
    first = manager.open(entry_id)
    first.play()
    second = manager.open(entry_id)
    assert second is not first
    assert len(scheduler.pending(1.0)) == 0


def test_completed_session_is_unregistered(manager, cache, entry_id, scheduler):
    cache.put(entry_id, make_phases())
    engine = manager.open(entry_id)
    engine.end()
    assert manager.get(entry_id) is engine

    scheduler.fire(2.5)
    assert engine.state == playback.COMPLETED
    assert manager.get(entry_id) is None
    assert manager.close(entry_id) is False


def test_stale_completion_keeps_replacement(manager, cache, entry_id, scheduler):
    cache.put(entry_id, make_phases())
    first = manager.open(entry_id)
    first.end()
    second = manager.open(entry_id)

    first._finish()
    assert manager.get(entry_id) is second


def test_failed_reopen_leaves_nothing_registered(manager, cache, entry_id):
    cache.put(entry_id, make_phases())
    manager.open(entry_id)
    cache.put(entry_id, make_phases(count=2))

    with pytest.raises(SessionLoadError):
        manager.open(entry_id)
    assert manager.get(entry_id) is None
