"""Registry of live playback sessions.

Handles the loading step (fetch the mood entry, take the generated
phases out of the phase cache, build the engine and its media) and the
teardown when a session is closed or navigated away from.
"""

import logging
import threading

from services.ambient_audio import AmbientTrack
from services.errors import SessionLoadError
from services.narration_service import Narrator
from services.playback import PlaybackEngine, start_timer

logger = logging.getLogger(__name__)

COMPLETED_REDIRECT = "/profile"


class SessionManager:
    def __init__(self, store, phase_cache, config, synthesize=None,
                 scheduler=start_timer):
        self.store = store
        self.phase_cache = phase_cache
        self.config = config
        self.synthesize = synthesize
        self.scheduler = scheduler
        self._sessions = {}
        self._lock = threading.Lock()

    def open(self, entry_id, user_id=None):
        """Load and register a session for entry_id, starting PAUSED.

        Raises SessionLoadError when the entry, its target emotion or the
        generated phases are missing or malformed.
        """
        if not entry_id:
            raise SessionLoadError("Missing entry id")

        with self._lock:
            existing = self._sessions.pop(entry_id, None)
        if existing is not None:
            existing.close()

        try:
            entry = self.store.get_entry(entry_id)
        except Exception as e:
            logger.exception("Could not fetch mood entry %s", entry_id)
            raise SessionLoadError("Couldn't load your check-in") from e
        phases = self.phase_cache.get(entry_id)
        if phases is None:
            raise SessionLoadError("No meditation has been generated for this check-in")

        user_id = user_id or (entry or {}).get("user_id")
        engine = PlaybackEngine(
            entry_id,
            user_id=user_id,
            recorder=self.store.record_session,
            narrator=Narrator(self.synthesize) if self.synthesize else None,
            ambient=self._ambient_for(entry),
            on_completed=self._on_completed,
            default_duration=self.config.DEFAULT_PHASE_DURATION,
            tick_interval=self.config.TICK_INTERVAL_SECONDS,
            completion_delay=self.config.COMPLETION_DISPLAY_DELAY,
            scheduler=self.scheduler,
        )
        try:
            engine.load(entry, phases)
        except SessionLoadError as e:
            logger.warning("Session %s failed to load: %s", entry_id, e)
            engine.close()
            self.phase_cache.discard(entry_id)
            raise

        with self._lock:
            self._sessions[entry_id] = engine
        logger.info("Opened session %s", entry_id)
        return engine

    def get(self, entry_id):
        with self._lock:
            return self._sessions.get(entry_id)

    def close(self, entry_id):
        """Tear down a session: timers, narration, audio and cached phases."""
        with self._lock:
            engine = self._sessions.pop(entry_id, None)
        if engine is not None:
            engine.close()
        self.phase_cache.discard(entry_id)
        return engine is not None

    def close_all(self):
        with self._lock:
            entry_ids = list(self._sessions)
        for entry_id in entry_ids:
            self.close(entry_id)

    def _ambient_for(self, entry):
        if not entry or not entry.get("target_emotion"):
            return None
        try:
            return AmbientTrack(self.config.AMBIENT_AUDIO_DIR, entry["target_emotion"])
        except Exception:
            logger.exception("Ambient track lookup failed")
            return None

    def _on_completed(self, engine):
        with self._lock:
            if self._sessions.get(engine.entry_id) is engine:
                del self._sessions[engine.entry_id]
        self.phase_cache.discard(engine.entry_id)
        logger.info("Session %s completed after %ss; next: %s",
                    engine.entry_id, engine.duration_seconds, COMPLETED_REDIRECT)
