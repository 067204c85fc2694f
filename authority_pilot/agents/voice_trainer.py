"""Voice trainer agent: learns a writing voice and writes in it."""
import copy
import json
import re
from typing import Dict, Any, List
from loguru import logger

from authority_pilot.agents.base import BaseAgent, get_current_context
from authority_pilot.database.models import VoiceProfile
from authority_pilot.errors import AuthorityPilotError

QUIZ_PREFIX = "Generated from personality quiz:"

EMOJI_PATTERN = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF\U0001F1E0-\U0001F1FF]"
)
SENTENCE_SPLIT = re.compile(r"[.!?]+")

DEFAULT_VOICE_ANALYSIS: Dict[str, Any] = {
    "tone_attributes": {
        "professional": 0.7,
        "casual": 0.3,
        "humorous": 0.1,
        "inspirational": 0.2,
        "educational": 0.5,
    },
    "vocabulary_preferences": {"use": [], "avoid": []},
    "sentence_structure": {"average_length": 15, "complexity": "medium", "paragraph_length": 3},
    "emoji_usage": {"frequency": "low", "preferred": []},
    "hashtag_style": {"count": 3, "placement": "end", "format": "camelCase"},
    "key_messages": [],
    "brand_personality": {},
    "training_version": 1,
}

# Fallbacks used only when rendering the generation prompt
PROMPT_TONE_DEFAULTS = {
    "professional": 0.5,
    "casual": 0.3,
    "humorous": 0.1,
    "inspirational": 0.1,
    "educational": 0.5,
}

HUMOR_SCORES = {"never": 0.1, "subtle": 0.3, "moderate": 0.6, "frequent": 0.8}
SENTENCE_LENGTHS = {"short": 10, "medium": 15, "long": 25, "mixed": 18}
PARAGRAPH_LENGTHS = {"short": 2, "medium": 3, "long": 5, "mixed": 3}


def default_voice_analysis() -> Dict[str, Any]:
    """Fresh copy of the default voice analysis."""
    return copy.deepcopy(DEFAULT_VOICE_ANALYSIS)


class VoiceTrainerAgent(BaseAgent):
    """Agent for extracting voice characteristics and generating on-voice content."""

    def __init__(self):
        """Initialize voice trainer agent."""
        super().__init__("VoiceTrainer")

    async def process(self, samples: List[str]) -> Dict[str, Any]:
        """Analyze writing samples (alias of analyze_writing_samples)."""
        return await self.analyze_writing_samples(samples)

    async def analyze_writing_samples(self, samples: List[str]) -> Dict[str, Any]:
        """
        Extract voice characteristics from writing samples or quiz answers.

        Args:
            samples: Writing samples, or a single quiz payload

        Returns:
            Voice analysis keyed like the voice_profiles columns
        """
        if len(samples) == 1 and samples[0].startswith(QUIZ_PREFIX):
            return self.process_quiz_answers(samples[0])

        logger.info(f"Analyzing {len(samples)} writing samples")

        try:
            response = await self.call_openai(
                system_prompt=self._get_analysis_system_prompt(),
                user_prompt=self._get_analysis_user_prompt(samples),
                temperature=0.3,
                response_format={"type": "json_object"},
                max_tokens=1500
            )
            if not response:
                raise AuthorityPilotError("No analysis received from OpenAI")
            analysis = json.loads(response)
        except Exception as e:
            logger.error(f"Voice analysis failed, using defaults: {e}")
            return default_voice_analysis()

        defaults = default_voice_analysis()
        result = {
            key: analysis.get(key) or defaults[key]
            for key in (
                "tone_attributes", "vocabulary_preferences", "sentence_structure",
                "emoji_usage", "hashtag_style", "brand_personality"
            )
        }
        result["key_messages"] = analysis.get("key_messages") or []
        result["training_version"] = 1

        logger.info("Voice analysis completed successfully")
        return result

    async def generate_content(
        self,
        prompt: str,
        voice_profile: VoiceProfile,
        content_type: str = "post",
        platform: str = "linkedin"
    ) -> Dict[str, Any]:
        """
        Generate content in the user's voice.

        Args:
            prompt: Topic or instruction
            voice_profile: Stored voice profile
            content_type: post, article, thread or comment
            platform: linkedin or twitter

        Returns:
            Dictionary with generated content and confidence score
        """
        logger.info(f"Generating {content_type} for {platform}")
        context = get_current_context()
        voice_prompt = self.build_voice_prompt(voice_profile, content_type, platform)

        user_prompt = f"""{context['context_prompt']}

{voice_prompt}

Topic/Instruction: {prompt}

Generate a {content_type} for {platform} that matches the voice profile exactly.

Requirements:
- Write as of {context['current_date']}
- Sound authentic to the voice profile
- Include relevant hashtags if appropriate for the voice style
- Keep within platform limits (LinkedIn: 3000 chars, Twitter: 280 chars)
- Make it engaging and valuable to the target audience

Respond with ONLY the content, no additional formatting or explanation."""

        system_prompt = (
            "You are an expert content creator who writes in the exact voice and style "
            "of the provided voice profile."
        )

        try:
            response = await self.call_openai(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=0.7,
                max_tokens=100 if platform == "twitter" else 800
            )
        except Exception as e:
            logger.error(f"Content generation error: {e}", exc_info=True)
            raise AuthorityPilotError("Failed to generate content") from e

        content = (response or "").strip()
        if not content:
            raise AuthorityPilotError("Failed to generate content")

        confidence = self.calculate_confidence_score(content, voice_profile)
        logger.info(f"Generated {len(content)} chars (confidence {confidence:.2f})")

        return {"content": content, "confidence": confidence}

    def build_voice_prompt(self, voice_profile: VoiceProfile, content_type: str, platform: str) -> str:
        """Render voice profile guidelines for the generation prompt."""
        tone = voice_profile.tone_attributes or {}
        vocab = voice_profile.vocabulary_preferences or {}
        structure = voice_profile.sentence_structure or {}
        emoji = voice_profile.emoji_usage or {}
        hashtags = voice_profile.hashtag_style or {}

        tone_lines = "\n".join(
            f"- {name.capitalize()}: {round((tone.get(name) or default) * 100)}%"
            for name, default in PROMPT_TONE_DEFAULTS.items()
        )

        if voice_profile.key_messages:
            key_messages = "\n".join(f"- {msg}" for msg in voice_profile.key_messages)
        else:
            key_messages = "- Focus on professional expertise and insights"

        if voice_profile.brand_personality:
            personality = "\n".join(
                f"{key}: {', '.join(value) if isinstance(value, list) else value}"
                for key, value in voice_profile.brand_personality.items()
            )
        else:
            personality = "Professional and authentic"

        return f"""Voice Profile Guidelines:

TONE (match these percentages):
{tone_lines}

VOCABULARY:
- Preferred words/phrases: {', '.join(vocab.get('use') or []) or 'None specified'}
- Words to avoid: {', '.join(vocab.get('avoid') or []) or 'None specified'}

SENTENCE STRUCTURE:
- Average sentence length: {structure.get('average_length') or 15} words
- Complexity: {structure.get('complexity') or 'medium'}
- Paragraph length: {structure.get('paragraph_length') or 3} sentences

EMOJI USAGE:
- Frequency: {emoji.get('frequency') or 'low'}
- Preferred emojis: {' '.join(emoji.get('preferred') or []) or 'None'}

HASHTAG STYLE:
- Count: {hashtags.get('count') or 3}
- Placement: {hashtags.get('placement') or 'end'}
- Format: {hashtags.get('format') or 'camelCase'}

KEY MESSAGES/THEMES:
{key_messages}

BRAND PERSONALITY:
{personality}

Write {content_type} content for {platform} that exactly matches this voice profile.
Make it sound like this person wrote it themselves."""

    def calculate_confidence_score(self, content: str, voice_profile: VoiceProfile) -> float:
        """Score how closely content matches the voice profile (0-1)."""
        score = 0.5

        emoji_count = len(EMOJI_PATTERN.findall(content))
        frequency = (voice_profile.emoji_usage or {}).get("frequency", "low")
        if (
            (frequency == "none" and emoji_count == 0)
            or (frequency == "low" and emoji_count <= 2)
            or (frequency == "medium" and emoji_count <= 5)
            or (frequency == "high" and emoji_count > 3)
        ):
            score += 0.2

        hashtag_count = len(re.findall(r"#\w+", content))
        expected_hashtags = (voice_profile.hashtag_style or {}).get("count", 3)
        if abs(hashtag_count - expected_hashtags) <= 1:
            score += 0.2

        sentences = [s for s in SENTENCE_SPLIT.split(content) if s.strip()]
        if sentences:
            avg_length = sum(len(s.split()) for s in sentences) / len(sentences)
            expected_length = (voice_profile.sentence_structure or {}).get("average_length", 15)
            if abs(avg_length - expected_length) <= 5:
                score += 0.1

        return min(1.0, max(0.0, score))

    # ==================== QUIZ MAPPING ====================

    def process_quiz_answers(self, quiz_data: str) -> Dict[str, Any]:
        """Convert personality quiz answers into a voice analysis."""
        try:
            answers = json.loads(quiz_data[len(QUIZ_PREFIX):].strip())
            if not isinstance(answers, dict):
                raise ValueError("Quiz payload must be an object")
        except ValueError as e:
            logger.error(f"Error processing quiz answers: {e}")
            return default_voice_analysis()

        tone = answers.get("tone")
        humor = answers.get("humor")
        expertise = answers.get("expertise")
        length = answers.get("length")
        stories = answers.get("stories")

        logger.info(f"Mapping quiz answers (tone={tone}, humor={humor}, expertise={expertise})")

        return {
            "tone_attributes": {
                "professional": 0.8 if tone in ("formal", "authoritative") else 0.5,
                "casual": 0.7 if tone in ("conversational", "friendly") else 0.3,
                "humorous": HUMOR_SCORES.get(humor, 0.2),
                "inspirational": 0.6 if expertise in ("innovative", "confident") else 0.2,
                "educational": 0.7 if stories in ("facts", "examples") else 0.4,
            },
            "vocabulary_preferences": {
                "use": self._vocabulary_preferences(answers),
                "avoid": self._avoid_words(answers),
            },
            "sentence_structure": {
                "average_length": SENTENCE_LENGTHS.get(length, 15),
                "complexity": self._complexity(tone, stories),
                "paragraph_length": PARAGRAPH_LENGTHS.get(length, 3),
            },
            "emoji_usage": {
                "frequency": self._emoji_frequency(tone, humor),
                "preferred": self._preferred_emojis(tone, expertise),
            },
            "hashtag_style": {"count": 3, "placement": "end", "format": "camelCase"},
            "key_messages": self._key_messages(answers),
            "brand_personality": {
                "communication_style": tone,
                "humor_level": humor,
                "expertise_position": expertise,
                "content_length": length,
                "insight_style": stories,
            },
            "training_version": 1,
        }

    def _complexity(self, tone: str, stories: str) -> str:
        if tone == "formal" or stories == "facts":
            return "complex"
        if tone == "friendly" or stories == "stories":
            return "simple"
        return "medium"

    def _emoji_frequency(self, tone: str, humor: str) -> str:
        if tone == "formal":
            return "none"
        if humor == "frequent":
            return "high"
        if humor == "moderate":
            return "medium"
        return "low"

    def _preferred_emojis(self, tone: str, expertise: str) -> List[str]:
        emojis = []
        if tone == "friendly":
            emojis.extend(["😊", "👍"])
        if expertise == "innovative":
            emojis.extend(["💡", "🚀"])
        if expertise == "confident":
            emojis.extend(["💪", "🎯"])
        return emojis

    def _vocabulary_preferences(self, answers: Dict[str, Any]) -> List[str]:
        vocab = []
        if answers.get("tone") == "authoritative":
            vocab.extend(["demonstrates", "establishes", "proven"])
        if answers.get("tone") == "conversational":
            vocab.extend(["let's explore", "what if", "imagine"])
        if answers.get("expertise") == "innovative":
            vocab.extend(["cutting-edge", "breakthrough", "revolutionary"])
        return vocab

    def _avoid_words(self, answers: Dict[str, Any]) -> List[str]:
        avoid = []
        if answers.get("tone") == "formal":
            avoid.extend(["gonna", "wanna", "super cool"])
        if answers.get("humor") == "never":
            avoid.extend(["lol", "haha", "funny thing"])
        return avoid

    def _key_messages(self, answers: Dict[str, Any]) -> List[str]:
        messages = []
        if answers.get("expertise") == "innovative":
            messages.append("Driving innovation in the industry")
        if answers.get("expertise") == "collaborative":
            messages.append("Building strong professional relationships")
        if answers.get("stories") == "stories":
            messages.append("Sharing real-world experiences and lessons")
        return messages

    # ==================== PROMPTS ====================

    def _get_analysis_system_prompt(self) -> str:
        return (
            "You are an expert writing style analyst. Analyze writing samples and extract "
            "voice characteristics in the exact JSON format requested."
        )

    def _get_analysis_user_prompt(self, samples: List[str]) -> str:
        context = get_current_context()
        rendered = "\n".join(f"Sample {i + 1}:\n{sample}\n" for i, sample in enumerate(samples))
        return f"""{context['context_prompt']}

Analyze the following writing samples and extract the author's voice characteristics.

Writing Samples:
{rendered}

Respond with a JSON object of this structure:
{{
  "tone_attributes": {{"professional": 0.0-1.0, "casual": 0.0-1.0, "humorous": 0.0-1.0, "inspirational": 0.0-1.0, "educational": 0.0-1.0}},
  "vocabulary_preferences": {{"use": ["commonly used words/phrases"], "avoid": ["words/phrases to avoid"]}},
  "sentence_structure": {{"average_length": number, "complexity": "simple|medium|complex", "paragraph_length": number}},
  "emoji_usage": {{"frequency": "none|low|medium|high", "preferred": ["preferred emojis if any"]}},
  "hashtag_style": {{"count": number, "placement": "inline|end|both", "format": "lowercase|camelCase|mixed"}},
  "key_messages": ["main themes/topics the author discusses"],
  "brand_personality": {{"traits": ["key personality traits"], "values": ["core values expressed"], "expertise": ["areas of expertise"]}}
}}

Base your analysis on tone, vocabulary, sentence structure, emoji and hashtag habits, and recurring themes."""


# Global voice trainer
voice_trainer = VoiceTrainerAgent()
