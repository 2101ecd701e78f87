"""Exception types shared by the meditation services."""


class MeditationError(Exception):
    """Base for all meditation service errors."""


class SessionLoadError(MeditationError):
    """A session cannot start; the user has to restart the check-in flow."""

    def __init__(self, message, redirect="/check-in"):
        super().__init__(message)
        self.redirect = redirect


class MeditationGenerationError(MeditationError):
    """The language model did not produce a usable six-phase script."""

    def __init__(self, message, raw=None):
        super().__init__(message)
        self.raw = raw


class NarrationCancelled(MeditationError):
    """A narration task was superseded before it finished."""
