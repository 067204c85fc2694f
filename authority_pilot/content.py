"""Helpers for generated post text."""
import random
import re
from datetime import datetime
from typing import List, Optional

from authority_pilot.database.models import Profile

HASHTAG_PATTERN = re.compile(r"#(\w+)")
MENTION_PATTERN = re.compile(r"@(\w+)")


def extract_hashtags(text: str) -> List[str]:
    """Return lowercased hashtags without the leading '#'."""
    return [tag.lower() for tag in HASHTAG_PATTERN.findall(text)]


def extract_mentions(text: str) -> List[str]:
    """Return lowercased mentions without the leading '@'."""
    return [mention.lower() for mention in MENTION_PATTERN.findall(text)]


def generate_topic_prompt(
    profile: Optional[Profile],
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None
) -> str:
    """Pick a topic prompt based on the user's industry and role."""
    now = now or datetime.now()
    rng = rng or random
    industry = profile.industry if profile and profile.industry else None
    role = profile.role if profile and profile.role else None
    year = now.year

    topics = [
        f"Share an insight about {industry or 'your industry'} trends in {year}",
        f"Discuss a lesson learned from your experience as a {role or 'professional'}",
        f"Share your perspective on the future of {industry or 'your field'} by {year + 1}",
        f"Offer advice to someone starting their career in {industry or 'your industry'}",
        f"Reflect on the biggest changes in {industry or 'your field'} this year ({year})",
        "Share a recent win or achievement you're proud of",
        f"Discuss a challenge many {role or 'professionals'} face and how to overcome it",
        "Share your thoughts on work-life balance in the current market",
        f"Discuss the importance of continuous learning in {industry or 'your field'}",
        f"Share what you're excited about in your industry for the rest of {year}",
    ]

    current_date = f"{now.strftime('%B')} {now.day}, {year}"
    return f"{rng.choice(topics)}. Make it personal and authentic, written on {current_date}."
