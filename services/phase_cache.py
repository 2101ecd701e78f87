"""Transient storage for generated phase sequences, keyed by mood entry.

Phases live here between generation and playback and are dropped when
the session for that entry is closed.
"""

import copy
import threading


class PhaseCache:
    def __init__(self):
        self._phases = {}
        self._lock = threading.Lock()

    def put(self, entry_id, phases):
        with self._lock:
            self._phases[entry_id] = copy.deepcopy(phases)

    def get(self, entry_id):
        """Return a copy of the cached phases, or None."""
        with self._lock:
            phases = self._phases.get(entry_id)
            return copy.deepcopy(phases) if phases is not None else None

    def discard(self, entry_id):
        with self._lock:
            self._phases.pop(entry_id, None)

    def __contains__(self, entry_id):
        with self._lock:
            return entry_id in self._phases
