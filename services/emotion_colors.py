"""Background colour for a session, blended from the current emotion
toward the target emotion as the phases progress."""

EMOTION_COLORS = {
    "sad": {"hue": 210, "sat": 60, "light": 40},
    "anxious": {"hue": 150, "sat": 50, "light": 45},
    "angry": {"hue": 0, "sat": 70, "light": 50},
    "frustrated": {"hue": 30, "sat": 65, "light": 48},
    "confused": {"hue": 280, "sat": 45, "light": 50},
    "calm": {"hue": 180, "sat": 50, "light": 55},
    "content": {"hue": 45, "sat": 70, "light": 60},
    "peaceful": {"hue": 240, "sat": 40, "light": 50},
    "grateful": {"hue": 270, "sat": 55, "light": 58},
    "happy": {"hue": 50, "sat": 80, "light": 65},
}

DEFAULT_FROM = "calm"
DEFAULT_TO = "peaceful"


def interpolate(start, end, progress):
    """Linear blend of two HSL dicts. progress is clamped to [0, 1]."""
    progress = min(max(progress, 0.0), 1.0)
    return {
        key: start[key] + (end[key] - start[key]) * progress
        for key in ("hue", "sat", "light")
    }


def to_hsl(color):
    return f"hsl({color['hue']:g}, {color['sat']:g}%, {color['light']:g}%)"


def phase_progress(phase_index, total_phases):
    return phase_index / max(1, total_phases - 1)


def background_for(current_emotion, target_emotion, phase_index, total_phases):
    """CSS hsl() string for the given point in the session."""
    start = EMOTION_COLORS.get(current_emotion) or EMOTION_COLORS[DEFAULT_FROM]
    end = EMOTION_COLORS.get(target_emotion) or EMOTION_COLORS[DEFAULT_TO]
    return to_hsl(interpolate(start, end, phase_progress(phase_index, total_phases)))
