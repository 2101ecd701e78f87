"""Tests for meditation script generation."""

import json
from unittest.mock import MagicMock

import pytest
from conftest import PHASE_NAMES, FakeAI, FakeStore

from services.errors import MeditationGenerationError
from services.meditation_generator import (
    NO_INSPIRATION,
    MeditationGenerator,
    build_user_prompt,
    parse_phases,
    strip_code_fences,
)

SIX = [{"phase": n, "text": f"{n} text"} for n in PHASE_NAMES]


def test_strip_code_fences():
    fenced = "```json\n[1, 2]\n```"
    assert strip_code_fences(fenced) == "[1, 2]"
    assert strip_code_fences("  [1]  ") == "[1]"


def test_parse_normalises_phases():
    raw = json.dumps([{"phase": "", "text": 3}] + SIX[1:])
    phases = parse_phases(raw, 30)
    assert len(phases) == 6
    assert phases[0] == {"phase": "Phase 1", "text": "", "theme": {"duration": 30}}
    assert phases[5]["phase"] == "Maintenance"
    assert all(p["theme"]["duration"] == 30 for p in phases)


def test_parse_accepts_fenced_output():
    raw = "```json\n" + json.dumps(SIX) + "\n```"
    assert len(parse_phases(raw, 30)) == 6


@pytest.mark.parametrize("raw", ["", "not json", json.dumps(SIX[:5]), json.dumps({"phases": SIX})])
def test_parse_rejects_malformed(raw):
    with pytest.raises(MeditationGenerationError):
        parse_phases(raw, 30)


def test_user_prompt_without_inspiration():
    prompt = build_user_prompt("sad", "content", None, [])
    assert "User note: (none)" in prompt
    assert NO_INSPIRATION in prompt


def test_generate_uses_inspirations():
    ai = FakeAI(SIX)
    generator = MeditationGenerator(ai, FakeStore(), phase_duration=30)
    phases = generator.generate("anxious", "calm", "long day")

    assert [p["phase"] for p in phases] == PHASE_NAMES
    messages, system = ai.chat_calls[0]
    assert "exactly 6 phases" in system
    assert "30 seconds" in system
    assert "(anxious→calm) Let the breath slow down." in messages[0]["content"]
    assert "User note: long day" in messages[0]["content"]


def test_retrieval_failure_degrades():
    ai = FakeAI(SIX)
    store = MagicMock()
    store.match_chunks.side_effect = RuntimeError("rpc failed")
    phases = MeditationGenerator(ai, store).generate("anxious", "calm")
    assert len(phases) == 6
    assert NO_INSPIRATION in ai.chat_calls[0][0][0]["content"]


def test_generate_requires_both_emotions():
    with pytest.raises(MeditationGenerationError):
        MeditationGenerator(FakeAI(SIX), FakeStore()).generate("anxious", None)


def test_short_response_is_fatal():
    generator = MeditationGenerator(FakeAI(SIX[:4]), FakeStore())
    with pytest.raises(MeditationGenerationError) as exc_info:
        generator.generate("anxious", "calm")
    assert exc_info.value.raw is not None
