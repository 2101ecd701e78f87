"""Meditation script generation: one chat completion that turns a
current/target emotion pair into six narrated phases.

Inspiration lines are pulled from the content_chunks table by vector
similarity before prompting, and the model's JSON output is validated
before anything downstream sees it.
"""

import json
import logging

from services.errors import MeditationGenerationError

logger = logging.getLogger(__name__)

PHASE_NAMES = (
    "Awareness",
    "Acceptance",
    "Processing",
    "Reframing",
    "Integration",
    "Maintenance",
)
PHASE_COUNT = len(PHASE_NAMES)

MEDITATION_SYSTEM_PROMPT = """\
You are a safe, supportive meditation guide.

Write a guided meditation in exactly 6 phases:
1. Awareness – acknowledge the current emotion with gentle observation.
2. Acceptance – normalize and validate the feeling.
3. Processing – introduce one technique (breathing, grounding, or body scan).
4. Reframing – gently offer a new perspective, no toxic positivity.
5. Integration – invite the target emotion to grow naturally.
6. Maintenance – suggest a simple way to carry it into daily life.

Requirements:
- Each phase should last {phase_seconds} seconds when read aloud.
- Tone: warm, compassionate, clear. No medical/therapeutic claims.
- Use the "inspiration lines" as raw material; adapt rather than copy.
- Personalize lightly using the user's note if present.
- Return ONLY a JSON array of 6 items with keys "phase" and "text".
- Output ONLY a valid JSON array. Do not include markdown, code fences, or explanations.\
"""

NO_INSPIRATION = "- (no inspiration found; write a gentle generic meditation)"


def format_inspirations(chunks):
    if not chunks:
        return NO_INSPIRATION
    return "\n".join(
        f"- ({c.get('current_emotion')}→{c.get('target_emotion')}) {c.get('text', '')}"
        for c in chunks
    )


def build_user_prompt(current_emotion, target_emotion, note, chunks):
    return (
        f"Current emotion: {current_emotion}\n"
        f"Target emotion: {target_emotion}\n"
        f"User note: {note or '(none)'}\n\n"
        f"Inspiration lines:\n{format_inspirations(chunks)}\n"
    )


def strip_code_fences(text):
    """Remove a surrounding ```json ... ``` block if the model added one."""
    text = text.strip()
    if text.startswith("```"):
        lines = text.split("\n")
        text = "\n".join(lines[1:-1]) if len(lines) > 2 else text.strip("`")
    return text.strip()


def parse_phases(raw, phase_duration):
    """Parse model output into exactly six normalised phase dicts.

    Raises MeditationGenerationError when the output is not a JSON array
    of six items.
    """
    text = strip_code_fences(raw or "")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        logger.warning("Could not parse meditation JSON: %s", e)
        raise MeditationGenerationError("AI returned unparsable content", raw=raw) from e

    if not isinstance(data, list) or len(data) != PHASE_COUNT:
        raise MeditationGenerationError(f"AI did not return {PHASE_COUNT} phases", raw=raw)

    phases = []
    for i, item in enumerate(data):
        item = item if isinstance(item, dict) else {}
        name = item.get("phase")
        text = item.get("text")
        phases.append({
            "phase": name if isinstance(name, str) and name else f"Phase {i + 1}",
            "text": text if isinstance(text, str) else "",
            "theme": {"duration": phase_duration},
        })
    return phases


class MeditationGenerator:
    def __init__(self, ai, store, match_count=10, phase_duration=30):
        self.ai = ai
        self.store = store
        self.match_count = match_count
        self.phase_duration = phase_duration

    def retrieve_inspirations(self, current_emotion, target_emotion):
        """Nearest inspiration chunks. Retrieval failure degrades to none."""
        try:
            embedding = self.ai.embed(f"{current_emotion} {target_emotion}")
            return self.store.match_chunks(
                embedding, current_emotion, target_emotion, self.match_count
            )
        except Exception:
            logger.exception("Inspiration retrieval failed for %s → %s",
                             current_emotion, target_emotion)
            return []

    def generate(self, current_emotion, target_emotion, note=None):
        """Return six phases guiding from current_emotion to target_emotion."""
        if not current_emotion or not target_emotion:
            raise MeditationGenerationError("current_emotion and target_emotion are required")

        chunks = self.retrieve_inspirations(current_emotion, target_emotion)
        system = MEDITATION_SYSTEM_PROMPT.format(phase_seconds=self.phase_duration)
        user = build_user_prompt(current_emotion, target_emotion, note, chunks)

        raw = self.ai.chat([{"role": "user", "content": user}], system_prompt=system)
        phases = parse_phases(raw, self.phase_duration)
        logger.info("Generated %d phases for %s → %s", len(phases),
                    current_emotion, target_emotion)
        return phases
