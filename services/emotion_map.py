"""Emotion transition model. Pure lookups, no I/O.

Maps a checked-in emotion to the three target emotions a meditation can
guide toward, and resolves any emotion id to its display metadata.
"""

FALLBACK_TARGETS = ("calm", "peaceful", "content")

EMOTION_PROGRESSIONS = {
    # High arousal, negative → lower arousal, positive
    "anxious": ("calm", "grounded", "peaceful"),
    "worried": ("calm", "accepting", "peaceful"),
    "stressed": ("relaxed", "calm", "peaceful"),
    # High arousal, negative → lower intensity or shift valence
    "angry": ("calm", "accepting", "peaceful"),
    "frustrated": ("patient", "calm", "accepting"),
    "irritated": ("calm", "patient", "accepting"),
    # Low arousal, negative → shift valence
    "sad": ("accepting", "content", "peaceful"),
    "depressed": ("accepting", "hopeful", "calm"),
    "lonely": ("connected", "accepting", "peaceful"),
    # Mid-range
    "bored": ("curious", "interested", "content"),
    "confused": ("clear", "focused", "understanding"),
    "tired": ("rested", "peaceful", "calm"),
    # Already positive
    "content": ("grateful", "joyful", "energized"),
    "calm": ("peaceful", "grateful", "content"),
    "happy": ("joyful", "grateful", "energized"),
}

EMOTION_DISPLAY = {
    "calm": {"label": "Calm", "description": "Peace and serenity", "emoji": "🌿", "color": "bg-teal-600"},
    "peaceful": {"label": "Peaceful", "description": "Inner stillness", "emoji": "☮️", "color": "bg-blue-600"},
    "content": {"label": "Content", "description": "Gentle satisfaction", "emoji": "😊", "color": "bg-orange-600"},
    "accepting": {"label": "Accepting", "description": "Allowing what is", "emoji": "🤲", "color": "bg-amber-600"},
    "patient": {"label": "Patient", "description": "Steady and calm", "emoji": "🐢", "color": "bg-yellow-600"},
    "grounded": {"label": "Grounded", "description": "Centered and stable", "emoji": "🌱", "color": "bg-green-700"},
    "hopeful": {"label": "Hopeful", "description": "Looking forward", "emoji": "🌈", "color": "bg-sky-500"},
    "connected": {"label": "Connected", "description": "In touch with others", "emoji": "🤝", "color": "bg-rose-500"},
    "curious": {"label": "Curious", "description": "Open to discovery", "emoji": "🪶", "color": "bg-indigo-500"},
    "joyful": {"label": "Joyful", "description": "Light and radiant", "emoji": "☀️", "color": "bg-yellow-400"},
    "energized": {"label": "Energized", "description": "Alive and vibrant", "emoji": "⚡", "color": "bg-lime-500"},
    "relaxed": {"label": "Relaxed", "description": "Ease and comfort", "emoji": "😌", "color": "bg-cyan-600"},
}

DEFAULT_DISPLAY_COLOR = "bg-purple-600"

# Moods offered on the check-in screen
CHECK_IN_MOODS = [
    {"id": "calm", "label": "Calm", "description": "Feeling peaceful and centered", "emoji": "😌", "color": "bg-teal-600"},
    {"id": "happy", "label": "Happy", "description": "Joyful and optimistic", "emoji": "😊", "color": "bg-orange-600"},
    {"id": "anxious", "label": "Anxious", "description": "Worried or restless", "emoji": "😟", "color": "bg-green-600"},
    {"id": "sad", "label": "Sad", "description": "Feeling down or melancholy", "emoji": "😢", "color": "bg-indigo-600"},
    {"id": "frustrated", "label": "Frustrated", "description": "Annoyed or stressed", "emoji": "😤", "color": "bg-yellow-600"},
    {"id": "confused", "label": "Confused", "description": "Uncertain or overwhelmed", "emoji": "😕", "color": "bg-pink-600"},
]


def targets_for(current_emotion):
    """Return the ordered target emotions reachable from current_emotion.

    Lookup is case-insensitive. Missing or unknown emotions get the
    fallback (calm, peaceful, content) so the caller always has a choice.
    """
    if not current_emotion or not isinstance(current_emotion, str):
        return list(FALLBACK_TARGETS)
    targets = EMOTION_PROGRESSIONS.get(current_emotion.strip().lower())
    return list(targets or FALLBACK_TARGETS)


def display_for(emotion_id):
    """Return {label, description, emoji, color} for emotion_id. Never raises."""
    known = EMOTION_DISPLAY.get(emotion_id) if isinstance(emotion_id, str) else None
    if known:
        return dict(known)
    return {
        "label": emotion_id,
        "description": "Finding balance",
        "emoji": "✨",
        "color": DEFAULT_DISPLAY_COLOR,
    }


def is_check_in_mood(mood_id):
    return any(m["id"] == mood_id for m in CHECK_IN_MOODS)


def target_options(current_emotion):
    """Targets for current_emotion, each merged with its display metadata."""
    return [{"id": t, **display_for(t)} for t in targets_for(current_emotion)]
