"""Meditation session playback engine.

Drives six timed phases through LOADING → PAUSED ⇄ PLAYING → COMPLETING
→ COMPLETED. A single repeating one-second timer advances the clock while
playing; user actions (play, pause, skip, end) arrive from request
threads. Every state change goes through ``_transition`` under one lock,
and each timer carries a generation number so a tick scheduled before a
pause or a skip can never advance the session a second time.

Completion is two-step: the duration is recorded as soon as the lock is
released, then a separate display-delay timer moves the session to COMPLETED and fires
``on_completed``.
"""

import logging
import threading

from services import emotion_colors
from services.errors import SessionLoadError
from services.meditation_generator import PHASE_COUNT

logger = logging.getLogger(__name__)

LOADING = "loading"
PAUSED = "paused"
PLAYING = "playing"
COMPLETING = "completing"
COMPLETED = "completed"
ERROR = "error"

LIVE_STATES = (PAUSED, PLAYING)


def start_timer(interval, callback):
    """Run callback once after interval seconds on a daemon thread."""
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    timer.start()
    return timer


def validate_entry(entry):
    if not entry:
        raise SessionLoadError("Mood entry not found")
    if not entry.get("target_emotion"):
        raise SessionLoadError("Target emotion has not been chosen")


def validate_phases(phases):
    """Raise SessionLoadError unless phases is six items that all carry text."""
    if not isinstance(phases, list) or len(phases) != PHASE_COUNT:
        count = len(phases) if isinstance(phases, list) else 0
        raise SessionLoadError(f"Expected {PHASE_COUNT} phases, got {count}")
    for i, phase in enumerate(phases):
        if not isinstance(phase, dict):
            raise SessionLoadError(f"Phase {i + 1} is malformed")
        text = phase.get("text")
        if not isinstance(text, str) or not text.strip():
            raise SessionLoadError(f"Phase {i + 1} has no text")


def phase_duration(phase, default=90):
    theme = phase.get("theme") or {}
    duration = theme.get("duration") if isinstance(theme, dict) else None
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        return default
    value = int(duration)
    return value if value > 0 else default


class PlaybackEngine:
    def __init__(self, entry_id, user_id=None, recorder=None, narrator=None,
                 ambient=None, on_completed=None, default_duration=90,
                 tick_interval=1.0, completion_delay=2.5,
                 scheduler=start_timer):
        self.entry_id = entry_id
        self.user_id = user_id
        self.entry = None
        self.phases = []
        self.durations = []

        self.state = LOADING
        self.error = None
        self.phase_index = 0
        self.elapsed = 0
        self.duration_seconds = None
        self.recorded = False

        self._recorder = recorder
        self._narrator = narrator
        self._ambient = ambient
        self._on_completed = on_completed
        self._default_duration = default_duration
        self._tick_interval = tick_interval
        self._completion_delay = completion_delay
        self._scheduler = scheduler

        self._lock = threading.RLock()
        self._timer = None
        self._generation = 0
        self._completion_timer = None
        self._pending_record = False
        self._closed = False

    # -- public actions --

    def load(self, entry, phases):
        """Validate entry and phases. Raises SessionLoadError on bad input."""
        return self._transition("load", entry=entry, phases=phases)

    def play(self):
        return self._transition("play")

    def pause(self):
        return self._transition("pause")

    def toggle(self):
        return self._transition("toggle")

    def skip(self):
        return self._transition("skip")

    def end(self):
        return self._transition("end")

    def tick(self, generation=None):
        """Advance the clock by one second. Normally called by the timer."""
        return self._transition("tick", generation=generation)

    def close(self):
        """Stop every timer and audio resource without recording."""
        with self._lock:
            self._closed = True
            self._stop_timer()
            if self._completion_timer is not None:
                self._completion_timer.cancel()
                self._completion_timer = None
            self._stop_media()

    # -- derived values --

    @property
    def current_phase(self):
        return self.phases[self.phase_index] if self.phases else None

    @property
    def current_duration(self):
        return self.durations[self.phase_index] if self.durations else self._default_duration

    @property
    def total_duration(self):
        return sum(self.durations)

    def elapsed_total(self):
        """Full durations of the phases before the current one plus time in it."""
        total = sum(self.durations[:self.phase_index]) + self.elapsed
        return max(0, min(total, self.total_duration))

    def background_color(self):
        entry = self.entry or {}
        return emotion_colors.background_for(
            entry.get("current_emotion"),
            entry.get("target_emotion"),
            self.phase_index,
            len(self.phases) or PHASE_COUNT,
        )

    def snapshot(self):
        with self._lock:
            phase = self.current_phase or {}
            duration = self.current_duration
            count = len(self.phases) or PHASE_COUNT
            snap = {
                "entry_id": self.entry_id,
                "state": self.state,
                "phase_index": self.phase_index,
                "phase_count": count,
                "elapsed": self.elapsed,
                "phase": phase.get("phase"),
                "text": phase.get("text"),
                "phase_duration": duration,
                "phase_progress": round(self.elapsed / duration * 100, 2),
                "total_progress": round(
                    (self.phase_index + self.elapsed / duration) / count * 100, 2
                ),
                "background": self.background_color() if self.entry else None,
                "ambient": self._ambient.to_dict() if self._ambient else None,
                "narration_ready": bool(
                    self._narrator and self._narrator.audio_for(self.phase_index)
                ),
                "duration_seconds": self.duration_seconds,
            }
            if self.error:
                snap["error"] = self.error
            return snap

    def narration_audio(self):
        if self._narrator is None:
            return None
        return self._narrator.audio_for(self.phase_index)

    # -- state machine --

    def _transition(self, event, **kwargs):
        with self._lock:
            changed = self._apply(event, **kwargs)
            pending = self._pending_record
            self._pending_record = False
        if pending:
            # the store write can block, so it runs with the lock released
            self._record()
            with self._lock:
                if self.state == COMPLETING and not self._closed:
                    self._completion_timer = self._scheduler(
                        self._completion_delay, self._finish
                    )
        return changed

    def _apply(self, event, **kwargs):
        state = self.state

        if event == "load":
            if state != LOADING:
                return False
            try:
                validate_entry(kwargs["entry"])
                validate_phases(kwargs["phases"])
            except SessionLoadError as e:
                self.state = ERROR
                self.error = str(e)
                raise
            self.entry = kwargs["entry"]
            self.phases = kwargs["phases"]
            self.durations = [
                phase_duration(p, self._default_duration) for p in self.phases
            ]
            self.state = PAUSED
            return True

        if event == "play":
            if state != PAUSED:
                return False
            self.state = PLAYING
            self._generation += 1
            self._schedule_tick(self._generation)
            self._ambient_call("play")
            if self._narrator and self._narrator.requested_phase != self.phase_index:
                self._request_narration()
            return True

        if event == "pause":
            if state != PLAYING:
                return False
            self._stop_timer()
            self.state = PAUSED
            self._ambient_call("pause")
            return True

        if event == "toggle":
            if state not in LIVE_STATES:
                return False
            return self._apply("pause" if state == PLAYING else "play")

        if event == "tick":
            generation = kwargs.get("generation")
            if state != PLAYING:
                return False
            if generation is not None and generation != self._generation:
                return False
            self.elapsed += 1
            if self.elapsed >= self.current_duration:
                self.elapsed = self.current_duration
                self._advance()
            return True

        if event == "skip":
            if state not in LIVE_STATES:
                return False
            self._advance()
            if self.state == PLAYING:
                # new phase starts on a fresh one-second boundary
                self._stop_timer()
                self._schedule_tick(self._generation)
            return True

        if event == "end":
            if state not in LIVE_STATES:
                return False
            self._begin_completion()
            return True

        if event == "finish":
            if state != COMPLETING:
                return False
            self.state = COMPLETED
            self._completion_timer = None
            return True

        raise ValueError(f"Unknown playback event: {event}")

    def _advance(self):
        if self.phase_index >= len(self.phases) - 1:
            self._begin_completion()
            return
        self.phase_index += 1
        self.elapsed = 0
        if self.state == PLAYING:
            self._request_narration()

    def _begin_completion(self):
        self._stop_timer()
        self.state = COMPLETING
        self._stop_media()
        self.duration_seconds = self.elapsed_total()
        self._pending_record = True

    def _record(self):
        if self.recorded:
            return
        self.recorded = True
        if self._recorder is None or not self.user_id:
            logger.warning("Session %s finished without a recorder or user", self.entry_id)
            return
        try:
            self._recorder(self.user_id, self.entry_id, self.duration_seconds)
            logger.info("Recorded session %s: %ss", self.entry_id, self.duration_seconds)
        except Exception:
            logger.exception("Failed to record session %s", self.entry_id)

    def _finish(self):
        if not self._transition("finish"):
            return
        if self._on_completed is not None:
            try:
                self._on_completed(self)
            except Exception:
                logger.exception("Completion callback failed for %s", self.entry_id)

    # -- timer --

    def _schedule_tick(self, generation):
        self._timer = self._scheduler(
            self._tick_interval, lambda: self._on_timer(generation)
        )

    def _on_timer(self, generation):
        """Timer callback: reschedule first so the clock keeps running."""
        with self._lock:
            if generation != self._generation or self.state != PLAYING:
                return
            self._schedule_tick(generation)
        try:
            self.tick(generation)
        except Exception:
            logger.exception("Playback tick failed for %s", self.entry_id)

    def _stop_timer(self):
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # -- media --

    def _request_narration(self):
        phase = self.current_phase
        if self._narrator is None or phase is None:
            return
        try:
            self._narrator.start(self.phase_index, phase.get("text"))
        except Exception:
            logger.exception("Could not start narration for phase %d", self.phase_index)

    def _ambient_call(self, action):
        if self._ambient is None:
            return
        try:
            getattr(self._ambient, action)()
        except Exception:
            logger.exception("Ambient audio %s failed", action)

    def _stop_media(self):
        if self._narrator is not None:
            try:
                self._narrator.cancel()
            except Exception:
                logger.exception("Could not cancel narration")
        self._ambient_call("stop")
