"""Tests for post text helpers."""
import random
from datetime import datetime

from authority_pilot.content import extract_hashtags, extract_mentions, generate_topic_prompt
from authority_pilot.database import Profile


class FirstChoice:
    def choice(self, seq):
        return seq[0]


def test_extract_hashtags_and_mentions():
    text = "Thanks @Grace and @linus! #OpenSource #Python rocks"

    assert extract_hashtags(text) == ["opensource", "python"]
    assert extract_mentions(text) == ["grace", "linus"]


def test_topic_prompt_uses_profile_and_date():
    profile = Profile(id="00000000-0000-0000-0000-000000000001", industry="fintech", role="CTO")

    prompt = generate_topic_prompt(profile, now=datetime(2026, 3, 5), rng=FirstChoice())

    assert prompt == (
        "Share an insight about fintech trends in 2026. "
        "Make it personal and authentic, written on March 5, 2026."
    )


def test_topic_prompt_without_profile():
    prompt = generate_topic_prompt(None, now=datetime(2026, 1, 1), rng=random.Random(1))

    assert prompt.endswith("written on January 1, 2026.")
