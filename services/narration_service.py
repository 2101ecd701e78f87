"""Cancellable narration tasks.

Each phase's text is synthesized on a background thread. Starting a new
task cancels the one before it, and a cancelled task never publishes its
audio, so stale narration cannot play over a newer phase.
"""

import logging
import threading

from services.errors import NarrationCancelled

logger = logging.getLogger(__name__)


class NarrationTask:
    def __init__(self, phase_index, text, synthesize):
        self.phase_index = phase_index
        self.text = text
        self._synthesize = synthesize
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self.audio = None
        self.error = None
        self._thread = threading.Thread(
            target=self._run, name=f"narration-{phase_index}", daemon=True
        )

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    @property
    def done(self):
        return self._done.is_set()

    @property
    def ready(self):
        return self.audio is not None and not self.cancelled

    def start(self):
        self._thread.start()
        return self

    def cancel(self):
        self._cancelled.set()

    def wait(self, timeout=None):
        return self._done.wait(timeout)

    def _run(self):
        try:
            parts = []
            for chunk in self._synthesize(self.text):
                if self.cancelled:
                    raise NarrationCancelled(f"phase {self.phase_index} superseded")
                parts.append(chunk)
            if self.cancelled:
                raise NarrationCancelled(f"phase {self.phase_index} superseded")
            self.audio = b"".join(parts)
        except NarrationCancelled:
            logger.debug("Discarded narration for phase %d", self.phase_index)
        except Exception as e:
            self.error = e
            logger.warning("Narration failed for phase %d: %s", self.phase_index, e)
        finally:
            self._done.set()


class Narrator:
    """Keeps at most one live narration task per session."""

    def __init__(self, synthesize):
        self._synthesize = synthesize
        self._task = None
        self._lock = threading.Lock()

    @property
    def current(self):
        return self._task

    @property
    def requested_phase(self):
        task = self._task
        return task.phase_index if task is not None and not task.cancelled else None

    def start(self, phase_index, text):
        """Cancel any pending task and begin narrating text for phase_index."""
        with self._lock:
            if self._task is not None:
                self._task.cancel()
            if not text:
                self._task = None
                return None
            self._task = NarrationTask(phase_index, text, self._synthesize).start()
            return self._task

    def cancel(self):
        with self._lock:
            if self._task is not None:
                self._task.cancel()
            self._task = None

    def audio_for(self, phase_index):
        """Finished audio for phase_index, or None if not (yet) available."""
        task = self._task
        if task is not None and task.phase_index == phase_index and task.ready:
            return task.audio
        return None

    def wait(self, timeout=None):
        task = self._task
        return task.wait(timeout) if task is not None else True
