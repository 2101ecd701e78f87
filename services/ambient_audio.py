"""Looping background music chosen by the session's target emotion.

The browser does the actual playback; this tracks which asset belongs to
the session and whether it should currently be playing.
"""

import logging
import os

logger = logging.getLogger(__name__)

STOPPED = "stopped"
PLAYING = "playing"
PAUSED = "paused"
UNAVAILABLE = "unavailable"


def resolve_track(audio_dir, target_emotion):
    """Return the asset path for target_emotion, or None if it is missing."""
    if not target_emotion:
        return None
    filename = f"{os.path.basename(str(target_emotion).lower())}.mp3"
    path = os.path.join(audio_dir, filename)
    return path if os.path.isfile(path) else None


class AmbientTrack:
    def __init__(self, audio_dir, target_emotion, url_prefix="/static/audio"):
        self.target_emotion = target_emotion
        self.path = resolve_track(audio_dir, target_emotion)
        self.url = (
            f"{url_prefix}/{os.path.basename(self.path)}" if self.path else None
        )
        self.status = STOPPED if self.path else UNAVAILABLE
        if not self.path:
            logger.warning("No ambient track for %r in %s", target_emotion, audio_dir)

    @property
    def available(self):
        return self.path is not None

    def play(self):
        if self.available:
            self.status = PLAYING

    def pause(self):
        if self.status == PLAYING:
            self.status = PAUSED

    def stop(self):
        if self.available:
            self.status = STOPPED

    def to_dict(self):
        return {"url": self.url, "status": self.status, "loop": True}
