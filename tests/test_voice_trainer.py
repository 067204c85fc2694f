"""Tests for the voice trainer agent."""
import json

import pytest

from authority_pilot.agents.voice_trainer import QUIZ_PREFIX, VoiceTrainerAgent, default_voice_analysis
from authority_pilot.database import VoiceProfile
from authority_pilot.errors import AuthorityPilotError


@pytest.fixture
def trainer():
    return VoiceTrainerAgent()


async def test_analyze_uses_model_json(trainer, mock_openai):
    mock_openai.return_value = json.dumps({
        "tone_attributes": {"professional": 0.9},
        "key_messages": ["Data beats opinions"],
    })

    analysis = await trainer.analyze_writing_samples(["sample one is long", "sample two is long", "three here too"])

    assert analysis["tone_attributes"] == {"professional": 0.9}
    assert analysis["key_messages"] == ["Data beats opinions"]
    # Missing sections fall back to defaults
    assert analysis["hashtag_style"] == default_voice_analysis()["hashtag_style"]
    assert mock_openai.await_args.kwargs["response_format"] == {"type": "json_object"}


async def test_analyze_falls_back_on_invalid_json(trainer, mock_openai):
    mock_openai.return_value = "not json"

    analysis = await trainer.analyze_writing_samples(["a" * 20, "b" * 20, "c" * 20])

    assert analysis == default_voice_analysis()


async def test_quiz_payload_skips_openai(trainer, mock_openai):
    answers = {"tone": "formal", "humor": "never", "expertise": "innovative", "length": "short", "stories": "facts"}

    analysis = await trainer.analyze_writing_samples([f"{QUIZ_PREFIX} {json.dumps(answers)}"])

    mock_openai.assert_not_awaited()
    assert analysis["tone_attributes"]["professional"] == 0.8
    assert analysis["emoji_usage"]["frequency"] == "none"
    assert analysis["sentence_structure"]["complexity"] == "complex"
    assert "gonna" in analysis["vocabulary_preferences"]["avoid"]
    assert analysis["key_messages"] == ["Driving innovation in the industry"]


def test_malformed_quiz_returns_defaults(trainer):
    assert trainer.process_quiz_answers(f"{QUIZ_PREFIX} [1, 2]") == default_voice_analysis()


def test_confidence_score(trainer):
    profile = VoiceProfile(user_id="00000000-0000-0000-0000-000000000001")

    score = trainer.calculate_confidence_score("Great news. We shipped today. #launch #team #growth", profile)

    assert score == pytest.approx(0.9)


async def test_generate_content(trainer, mock_openai, voice_profile):
    mock_openai.return_value = "  Small releases compound. #shipping #teams #craft  "

    result = await trainer.generate_content("Why we ship weekly", voice_profile)

    assert result["content"] == "Small releases compound. #shipping #teams #craft"
    assert 0 <= result["confidence"] <= 1
    assert "Ship small, ship often" in mock_openai.await_args.kwargs["user_prompt"]


async def test_generate_content_empty_response_raises(trainer, mock_openai, voice_profile):
    mock_openai.return_value = "   "

    with pytest.raises(AuthorityPilotError):
        await trainer.generate_content("Anything", voice_profile)
